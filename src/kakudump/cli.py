from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.prompt import Prompt

from . import __version__
from .book_io import NovelWriter, default_output_path, pandoc_command
from .client import (
    FetchConfig,
    FetchError,
    FetchStatusError,
    KakuyomuClient,
    set_debug_logging,
)
from .core import ChapterIndexDecodeError, Document, Index, split_title

_WORK_URL_PATTERN = re.compile(r"/works/([^/?#\s]+)")
_NOVEL_ID_PATTERN = re.compile(r"^[0-9A-Za-z_-]+$")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value!r}") from exc
    if number < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value!r}")
    return number


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a number of seconds, got {value!r}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number of seconds, got {value!r}")
    return number


def parse_novel_id(value: str) -> str:
    """Accept either a bare work id or a work/episode URL."""
    value = value.strip()
    match = _WORK_URL_PATTERN.search(value)
    if match:
        return match.group(1)
    if _NOVEL_ID_PATTERN.match(value):
        return value
    raise ValueError(f"Not a Kakuyomu novel id or work URL: {value!r}")


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"kakudump {__version__}",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="kakudump",
        description="Utility to download the text of Kakuyomu novels as Markdown.",
    )
    _add_version_flag(ap)
    ap.add_argument(
        "novel",
        help="Id of the novel to dump (e.g. 1177354054883819762) or its work URL",
    )
    ap.add_argument(
        "--from",
        dest="start",
        type=_positive_int,
        default=1,
        help="Chapter to start dumping from. Default: 1.",
    )
    ap.add_argument(
        "--to",
        dest="end",
        type=_positive_int,
        help="Last chapter to dump. Default: the last chapter.",
    )
    ap.add_argument(
        "-o",
        "--out",
        help="Output file name. By default writes ./<title>.md",
    )
    ap.add_argument(
        "--timeout",
        type=_positive_float,
        help="Per-request timeout in seconds (overrides KAKUDUMP_TIMEOUT).",
    )
    ap.add_argument(
        "--retries",
        type=_non_negative_int,
        help="Retries for failed downloads (overrides KAKUDUMP_RETRIES).",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging of HTTP requests.",
    )
    return ap


def _prompt_novel(console: Console) -> str:
    return Prompt.ask("Novel id or URL", console=console, default="", show_default=False).strip()


def _fail(err_console: Console, message: str) -> int:
    err_console.print(escape(message))
    return 1


def _chapter_range(index: Index, start: int, end: int | None) -> tuple[int, int]:
    total = len(index.chapters)
    if end is not None and end > total:
        raise ValueError(
            f"Novel has only {total} chapters, but option --to is set to '{end}'"
        )
    last = end if end is not None else total
    if start > last:
        raise ValueError(
            f"Option --from is set to '{start}', but the last chapter to download is {last}"
        )
    return start, last


def _dump(
    args: argparse.Namespace,
    novel_id: str,
    client: KakuyomuClient,
    console: Console,
    err_console: Console,
) -> int:
    novel_url = client.work_url(novel_id)

    def _report_retry(attempt: int, error: FetchError) -> None:
        err_console.print(
            f"{escape(str(error))} (retry {attempt}/{client.config.retries})"
        )

    try:
        body = client.get_text_with_retry(novel_url, on_retry=_report_retry)
    except FetchStatusError as exc:
        console.print(f">>>{escape(novel_url)}: Fetch novel index...ERR")
        if exc.status == 404:
            return _fail(err_console, "No such novel found")
        return _fail(err_console, str(exc))
    except FetchError as exc:
        console.print(f">>>{escape(novel_url)}: Fetch novel index...ERR")
        return _fail(err_console, str(exc))
    console.print(f">>>{escape(novel_url)}: Fetch novel index...OK")

    try:
        index = Document(body).get_index()
    except ChapterIndexDecodeError as exc:
        return _fail(err_console, f"Unable to deserialize chapter index: {exc}")
    if index is None:
        return _fail(err_console, "Unable to fetch chapter index")

    try:
        start, last = _chapter_range(index, args.start, args.end)
    except ValueError as exc:
        return _fail(err_console, str(exc))

    if index.title is None:
        return _fail(err_console, "Unable to recognize novel's title")
    title = split_title(index.title)
    console.print(f"Title: {escape(title.name)}")
    if title.author is not None:
        console.print(f"Author: {escape(title.author)}")

    output_path = Path(args.out) if args.out else default_output_path(title.name)
    console.print(f"Number of chapters: {len(index.chapters)}")
    console.print(f"Download chapters: {start}..{last}")

    try:
        with NovelWriter(output_path) as writer:
            writer.write_header(title.name, novel_url)
            code = _download_chapters(
                index.chapters,
                start,
                last,
                novel_id=novel_id,
                client=client,
                writer=writer,
                console=console,
                err_console=err_console,
                report_retry=_report_retry,
            )
            if code != 0:
                return code
            writer.flush()
    except OSError as exc:
        return _fail(err_console, f"{output_path}: Cannot write: {exc}")

    console.print("-------------------")
    console.print(f"Chapters written: {writer.chapters_written}")
    console.print(f"Output: {escape(str(output_path))}")
    console.print("Pandoc command to generate EPUB:")
    console.print(escape(pandoc_command(output_path)))
    return 0


def _download_chapters(
    chapters: list[str],
    start: int,
    last: int,
    *,
    novel_id: str,
    client: KakuyomuClient,
    writer: NovelWriter,
    console: Console,
    err_console: Console,
    report_retry: Callable[[int, FetchError], None],
) -> int:
    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=True,
        disable=not console.is_terminal,
    )
    with progress:
        task = progress.add_task("Downloading chapters", total=last - start + 1)
        for number in range(start, last + 1):
            url = client.episode_url(novel_id, chapters[number - 1])
            try:
                page = client.get_text_with_retry(url, on_retry=report_retry)
            except FetchError as exc:
                console.print(f">>>{escape(url)}: Downloading...ERR")
                err_console.print(escape(str(exc)))
                progress.advance(task, 1)
                continue

            document = Document(page)
            content = document.get_chapter_content()
            if content is None:
                console.print(f">>>{escape(url)}: Downloading...ERR")
                return _fail(err_console, "!!!Cannot find chapter content")
            console.print(f">>>{escape(url)}: Downloading...OK")
            writer.write_chapter(content.title, content.lines, number)
            progress.advance(task, 1)
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    console = Console(highlight=False, emoji=False, soft_wrap=True)
    err_console = Console(stderr=True, highlight=False, emoji=False, soft_wrap=True)
    parser = build_parser()

    if not argv:
        answer = _prompt_novel(console)
        if not answer:
            parser.print_help()
            return 0
        argv = [answer]

    args = parser.parse_args(argv)
    try:
        novel_id = parse_novel_id(args.novel)
    except ValueError as exc:
        parser.error(str(exc))

    set_debug_logging(bool(args.debug))
    try:
        config = FetchConfig.from_env().with_overrides(
            timeout=args.timeout,
            retries=args.retries,
        )
    except ValueError as exc:
        return _fail(err_console, str(exc))

    with KakuyomuClient(config) as client:
        return _dump(args, novel_id, client, console, err_console)


if __name__ == "__main__":
    raise SystemExit(main())
