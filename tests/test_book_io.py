from __future__ import annotations

from pathlib import Path

from kakudump.book_io import (
    NovelWriter,
    default_output_path,
    pandoc_command,
    render_chapter,
    render_line,
)
from kakudump.core import Break, Paragraph


def test_render_line() -> None:
    assert render_line(Break()) == "<br/>\n"
    assert render_line(Paragraph("<ruby>漢<rt>かん</rt></ruby>字")) == "<ruby>漢<rt>かん</rt></ruby>字\n\n"


def test_render_chapter_falls_back_to_number() -> None:
    pieces = list(render_chapter(None, [Paragraph("本文")], 3))
    assert "".join(pieces) == "\nChapter 3\n-------------------\n本文\n\n"


def test_novel_writer_emits_markdown(tmp_path: Path) -> None:
    target = tmp_path / "out" / "novel.md"
    with NovelWriter(target) as writer:
        writer.write_header("作品名", "https://kakuyomu.jp/works/1")
        writer.write_chapter("第1話", iter([Paragraph("一"), Break(), Paragraph("二")]), 1)
        writer.write_chapter(None, iter([]), 2)
    assert writer.chapters_written == 2
    assert target.read_text(encoding="utf-8") == (
        "作品名\n===================\n"
        "Original: https://kakuyomu.jp/works/1\n"
        "\n第1話\n-------------------\n"
        "一\n\n<br/>\n二\n\n"
        "\nChapter 2\n-------------------\n"
    )


def test_novel_writer_truncates_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "novel.md"
    target.write_text("old content that is longer than the new one\n" * 10, encoding="utf-8")
    with NovelWriter(target) as writer:
        writer.write_header("新", "https://kakuyomu.jp/works/2")
    assert target.read_text(encoding="utf-8") == (
        "新\n===================\nOriginal: https://kakuyomu.jp/works/2\n"
    )


def test_default_output_path_sanitizes_title(tmp_path: Path) -> None:
    assert default_output_path("作品名", tmp_path) == tmp_path / "作品名.md"
    assert default_output_path("上/下: 完結?", tmp_path) == tmp_path / "上_下_ 完結_.md"
    assert default_output_path("   ", tmp_path) == tmp_path / "novel.md"
    assert default_output_path("作品名") == Path("作品名.md")


def test_pandoc_command_quotes_path() -> None:
    command = pandoc_command(Path("out dir/作品名.md"))
    assert command.startswith("pandoc --embed-resources --standalone --shift-heading-level-by=-1")
    assert command.endswith('--from=gfm -o novel.epub "out dir/作品名.md"')
