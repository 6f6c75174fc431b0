from __future__ import annotations

import json
import warnings
from dataclasses import dataclass, field
from typing import Iterator

from bs4 import (
    BeautifulSoup,
    FeatureNotFound,
    NavigableString,
    Tag,
    XMLParsedAsHTMLWarning,
)  # type: ignore

SITE_TITLE_SUFFIX = " - カクヨム"
AUTHOR_START = "（"
AUTHOR_END = "）"

NEXT_DATA_SCRIPT_ID = "__NEXT_DATA__"
NEXT_DATA_SCRIPT_TYPE = "application/json"
APOLLO_STATE_PATH = ("props", "pageProps", "__APOLLO_STATE__")
EPISODE_KEY_PREFIX = "Episode:"

CHAPTER_TITLE_SELECTOR = ".widget-episodeTitle"
CHAPTER_BODY_SELECTOR = ".widget-episodeBody.js-episode-body"
CHAPTER_LINE_TAG = "p"
BREAK_LINE_CLASS = "blank"


class ChapterIndexDecodeError(ValueError):
    """Raised when the embedded page state is present but cannot be decoded."""


@dataclass(frozen=True)
class Title:
    name: str
    author: str | None = None


def split_title(title: str) -> Title:
    """
    Split a work page title such as ``作品名（著者） - カクヨム`` into the bare
    name and the author annotation.

    Only the last full-width bracket pair is treated as the author. Closing
    brackets nested inside that pair pull the opening position further back,
    one opening bracket per nested close. When the title runs out of opening
    brackets the last one found wins; the split never fails. Closing brackets
    before the author pair are deliberately not counted, so earlier pairs such
    as ``作品（上）名（著者）`` stay part of the name.
    """
    title = title.strip()
    if title.endswith(SITE_TITLE_SUFFIX):
        title = title[: -len(SITE_TITLE_SUFFIX)]

    end = title.rfind(AUTHOR_END)
    if end == -1:
        return Title(name=title)
    start = title.rfind(AUTHOR_START, 0, end)
    if start == -1:
        return Title(name=title)

    nested = title.count(AUTHOR_END, start + 1, end)
    while nested > 0:
        outer = title.rfind(AUTHOR_START, 0, start)
        if outer == -1:
            break
        start = outer
        nested -= 1

    return Title(name=title[:start], author=title[start + 1 : end])


@dataclass(frozen=True)
class Index:
    title: str | None
    chapters: list[str] = field(default_factory=list)


class _Pairs(list):
    """JSON object kept as ordered (key, value) pairs, duplicates included."""


def _lookup(node: object, key: str, path: str) -> object:
    if not isinstance(node, _Pairs):
        raise ChapterIndexDecodeError(f"Expected {path or 'document'} to be a JSON object")
    found = [value for name, value in node if name == key]
    if not found:
        raise ChapterIndexDecodeError(f"Missing field `{key}` in {path or 'document'}")
    if len(found) > 1:
        raise ChapterIndexDecodeError(f"Duplicate field `{key}` in {path or 'document'}")
    return found[0]


def _reject_constant(name: str) -> object:
    raise ChapterIndexDecodeError(f"Invalid embedded JSON: unsupported constant {name}")


def decode_chapter_list(json_text: str) -> list[str]:
    """
    Return episode ids from ``props.pageProps.__APOLLO_STATE__`` in key order.

    Every key of the state object starting with ``Episode:`` contributes its
    remainder; the values and all other keys are ignored.
    """
    try:
        document = json.loads(
            json_text,
            object_pairs_hook=_Pairs,
            parse_constant=_reject_constant,
        )
    except json.JSONDecodeError as exc:
        raise ChapterIndexDecodeError(f"Invalid embedded JSON: {exc}") from exc
    except RecursionError as exc:
        raise ChapterIndexDecodeError("Embedded JSON is nested too deeply") from exc

    node: object = document
    path = ""
    for key in APOLLO_STATE_PATH:
        node = _lookup(node, key, path)
        path = f"{path}.{key}" if path else key
    if not isinstance(node, _Pairs):
        raise ChapterIndexDecodeError(f"Expected {path} to contain a JSON object")

    chapters: list[str] = []
    for key, _value in node:
        if key.startswith(EPISODE_KEY_PREFIX) and len(key) > len(EPISODE_KEY_PREFIX):
            chapters.append(key[len(EPISODE_KEY_PREFIX) :])
    return chapters


@dataclass(frozen=True)
class Paragraph:
    markup: str


@dataclass(frozen=True)
class Break:
    pass


Line = Paragraph | Break


@dataclass(frozen=True)
class ChapterContent:
    title: str | None
    lines: Iterator[Line]


def _classify_line(element: Tag) -> Line:
    if element.get("class") == BREAK_LINE_CLASS:
        return Break()
    return Paragraph(element.decode_contents())


def _iter_lines(body: Tag) -> Iterator[Line]:
    for child in body.children:
        if isinstance(child, Tag) and child.name == CHAPTER_LINE_TAG:
            yield _classify_line(child)


def segment_chapter(page: BeautifulSoup | Tag) -> ChapterContent | None:
    """
    Locate the episode title and body of a chapter page.

    Returns ``None`` when the body container is missing. The returned lines
    are generated on demand from ``page`` and can be consumed only once.
    """
    body = page.select_one(CHAPTER_BODY_SELECTOR)
    if body is None:
        return None
    title_tag = page.select_one(CHAPTER_TITLE_SELECTOR)
    title = title_tag.decode_contents() if title_tag is not None else None
    return ChapterContent(title=title, lines=_iter_lines(body))


def parse_html(html: str) -> BeautifulSoup:
    # Class attributes stay plain strings so "blank" can be matched exactly.
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        try:
            return BeautifulSoup(html, "lxml", multi_valued_attributes=None)
        except FeatureNotFound:
            return BeautifulSoup(html, "html.parser", multi_valued_attributes=None)


def _first_text(tag: Tag) -> str | None:
    for child in tag.children:
        if isinstance(child, NavigableString):
            return str(child)
    return None


class Document:
    """A parsed Kakuyomu page."""

    def __init__(self, html: str) -> None:
        self.soup = parse_html(html)

    def page_title(self) -> str | None:
        title_tag = self.soup.find("title")
        if title_tag is None:
            return None
        return _first_text(title_tag)

    def next_data(self) -> str | None:
        for script in self.soup.find_all("script"):
            if script.get("type") != NEXT_DATA_SCRIPT_TYPE:
                continue
            if script.get("id") != NEXT_DATA_SCRIPT_ID:
                continue
            text = _first_text(script)
            if text is not None:
                return text
        return None

    def get_index(self) -> Index | None:
        """
        Return the work title and chapter ids, or ``None`` when the page has
        no embedded state script. Raises ``ChapterIndexDecodeError`` when the
        script is present but malformed.
        """
        json_text = self.next_data()
        if json_text is None:
            return None
        chapters = decode_chapter_list(json_text)
        return Index(title=self.page_title(), chapters=chapters)

    def get_chapter_content(self) -> ChapterContent | None:
        return segment_chapter(self.soup)


__all__ = [
    "Break",
    "ChapterContent",
    "ChapterIndexDecodeError",
    "Document",
    "Index",
    "Line",
    "Paragraph",
    "Title",
    "decode_chapter_list",
    "parse_html",
    "segment_chapter",
    "split_title",
]
