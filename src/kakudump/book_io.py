from __future__ import annotations

import re
from pathlib import Path
from typing import IO, Iterable, Iterator

from .core import Break, Line, Paragraph

NOVEL_TITLE_RULE = "==================="
CHAPTER_TITLE_RULE = "-------------------"
MARKDOWN_SUFFIX = ".md"
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def default_output_path(title: str, directory: Path | str = ".") -> Path:
    name = _UNSAFE_FILENAME_CHARS.sub("_", title).strip() or "novel"
    return Path(directory) / f"{name}{MARKDOWN_SUFFIX}"


def render_header(title: str, source_url: str) -> str:
    return f"{title}\n{NOVEL_TITLE_RULE}\nOriginal: {source_url}\n"


def render_line(line: Line) -> str:
    if isinstance(line, Break):
        return "<br/>\n"
    if isinstance(line, Paragraph):
        return f"{line.markup}\n\n"
    raise TypeError(f"Unsupported line type: {type(line).__name__}")


def render_chapter(title: str | None, lines: Iterable[Line], number: int) -> Iterator[str]:
    """Yield the Markdown pieces for one chapter; ``number`` is 1-based."""
    heading = title if title is not None else f"Chapter {number}"
    yield f"\n{heading}\n{CHAPTER_TITLE_RULE}\n"
    for line in lines:
        yield render_line(line)


def pandoc_command(path: Path | str) -> str:
    return (
        "pandoc --embed-resources --standalone --shift-heading-level-by=-1 "
        f'--from=gfm -o novel.epub "{path}"'
    )


class NovelWriter:
    """Writes a novel as Markdown, one chapter at a time."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._handle: IO[str] | None = None
        self.chapters_written = 0

    def __enter__(self) -> "NovelWriter":
        if self.path.parent != Path(""):
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open("w", encoding="utf-8", newline="\n")
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _write(self, text: str) -> None:
        if self._handle is None:
            raise RuntimeError("NovelWriter is not open")
        self._handle.write(text)

    def write_header(self, title: str, source_url: str) -> None:
        self._write(render_header(title, source_url))

    def write_chapter(self, title: str | None, lines: Iterable[Line], number: int) -> None:
        for piece in render_chapter(title, lines, number):
            self._write(piece)
        self.chapters_written += 1

    def flush(self) -> None:
        if self._handle is not None:
            self._handle.flush()


__all__ = [
    "NovelWriter",
    "default_output_path",
    "pandoc_command",
    "render_chapter",
    "render_header",
    "render_line",
]
