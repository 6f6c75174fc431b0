from __future__ import annotations

import os
import time
from dataclasses import dataclass, replace
from typing import Callable, Mapping

import requests

DEFAULT_BASE_URL = "https://kakuyomu.jp"
DEFAULT_TIMEOUT = 5.0
DEFAULT_RETRIES = 5
DEFAULT_BACKOFF = 1.0
DEFAULT_MAX_BACKOFF = 30.0
MAX_REDIRECTS = 5

_DEBUG_LOG = False


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def _debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[kakudump debug] {message}")


class FetchError(RuntimeError):
    """Raised when a page cannot be downloaded."""


class FetchStatusError(FetchError):
    """Raised when the server answers with a non-200 status."""

    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"Request failed with status={status}")
        self.status = status
        self.url = url


class FetchTransportError(FetchError):
    """Raised when the server cannot be reached or the response cannot be read."""


def _env_number(env: Mapping[str, str], name: str, default: float, cast: type) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass(slots=True)
class FetchConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    retries: int = DEFAULT_RETRIES
    backoff: float = DEFAULT_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "FetchConfig":
        if env is None:
            env = os.environ
        base_url = (env.get("KAKUDUMP_BASE_URL") or DEFAULT_BASE_URL).strip()
        return cls(
            base_url=base_url.rstrip("/"),
            timeout=float(_env_number(env, "KAKUDUMP_TIMEOUT", DEFAULT_TIMEOUT, float)),
            retries=int(_env_number(env, "KAKUDUMP_RETRIES", DEFAULT_RETRIES, int)),
            backoff=float(_env_number(env, "KAKUDUMP_BACKOFF", DEFAULT_BACKOFF, float)),
        )

    def with_overrides(
        self,
        *,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> "FetchConfig":
        config = self
        if timeout is not None:
            config = replace(config, timeout=timeout)
        if retries is not None:
            config = replace(config, retries=retries)
        return config

    def delay_for(self, attempt: int) -> float:
        return min(self.backoff * (2 ** max(attempt - 1, 0)), self.max_backoff)


def _user_agent() -> str:
    from . import __version__

    return f"kakudump/{__version__}"


class KakuyomuClient:
    def __init__(
        self,
        config: FetchConfig | None = None,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or FetchConfig()
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = _user_agent()
        self._session.max_redirects = MAX_REDIRECTS
        self._session.trust_env = True
        self._sleep = sleep

    def work_url(self, novel_id: str) -> str:
        return f"{self.config.base_url}/works/{novel_id}"

    def episode_url(self, novel_id: str, chapter_id: str) -> str:
        return f"{self.work_url(novel_id)}/episodes/{chapter_id}"

    def get_text(self, url: str) -> str:
        _debug_log(f"GET {url}")
        try:
            resp = self._session.get(url, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise FetchTransportError(f"Unable to connect: {exc}") from exc

        _debug_log(f"{url} -> {resp.status_code}")
        if resp.status_code != 200:
            raise FetchStatusError(resp.status_code, url)
        if resp.encoding is None or resp.encoding.lower() == "iso-8859-1":
            resp.encoding = resp.apparent_encoding or "utf-8"
        try:
            return resp.text
        except (requests.RequestException, LookupError) as exc:
            raise FetchTransportError(f"Unable to read response: {exc}") from exc

    def get_text_with_retry(
        self,
        url: str,
        *,
        on_retry: Callable[[int, FetchError], None] | None = None,
    ) -> str:
        """
        Fetch ``url``, retrying transport failures and non-404 statuses with
        exponential backoff. The last error is raised once retries run out.
        """
        attempt = 0
        while True:
            try:
                return self.get_text(url)
            except FetchStatusError as exc:
                if exc.status == 404:
                    raise
                error: FetchError = exc
            except FetchTransportError as exc:
                error = exc
            attempt += 1
            if attempt > self.config.retries:
                raise error
            if on_retry is not None:
                on_retry(attempt, error)
            delay = self.config.delay_for(attempt)
            _debug_log(f"retry {attempt}/{self.config.retries} for {url} in {delay:.1f}s: {error}")
            self._sleep(delay)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "KakuyomuClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "FetchConfig",
    "FetchError",
    "FetchStatusError",
    "FetchTransportError",
    "KakuyomuClient",
    "set_debug_logging",
]
