from __future__ import annotations

from importlib import metadata
from pathlib import Path

import tomllib


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - defensive
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("kakudump")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


from .client import (  # noqa: E402
    FetchConfig,
    FetchError,
    FetchStatusError,
    FetchTransportError,
    KakuyomuClient,
)
from .core import (  # noqa: E402
    Break,
    ChapterContent,
    ChapterIndexDecodeError,
    Document,
    Index,
    Paragraph,
    Title,
    decode_chapter_list,
    segment_chapter,
    split_title,
)

__all__ = [
    "__version__",
    "Break",
    "ChapterContent",
    "ChapterIndexDecodeError",
    "Document",
    "FetchConfig",
    "FetchError",
    "FetchStatusError",
    "FetchTransportError",
    "Index",
    "KakuyomuClient",
    "Paragraph",
    "Title",
    "decode_chapter_list",
    "segment_chapter",
    "split_title",
]
