from __future__ import annotations

import pytest

from kakudump.core import Title, split_title


def test_site_suffix_and_author_are_split() -> None:
    title = split_title("魔法使いの嫁（ヤマザキコレ） - カクヨム")
    assert title.name == "魔法使いの嫁"
    assert title.author == "ヤマザキコレ"


def test_author_with_nested_brackets_keeps_inner_pair() -> None:
    title = split_title("作品名（著者（雅号）） - カクヨム")
    assert title.name == "作品名"
    assert title.author == "著者（雅号）"


def test_doubly_nested_author_brackets() -> None:
    title = split_title("作品名（著者（雅（号））） - カクヨム")
    assert title.name == "作品名"
    assert title.author == "著者（雅（号））"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  作品名 - カクヨム  ", "作品名"),
        ("作品名", "作品名"),
        ("作品名（上", "作品名（上"),
        ("Title (ASCII brackets)", "Title (ASCII brackets)"),
    ],
)
def test_titles_without_closing_bracket_have_no_author(raw: str, expected: str) -> None:
    assert split_title(raw) == Title(name=expected, author=None)


def test_closing_bracket_without_opening_keeps_whole_title() -> None:
    assert split_title("作品名）") == Title(name="作品名）", author=None)


def test_empty_title() -> None:
    assert split_title("") == Title(name="", author=None)
    assert split_title("   ") == Title(name="", author=None)


def test_empty_bracket_pair_gives_empty_author() -> None:
    title = split_title("作品名（）")
    assert title.name == "作品名"
    assert title.author == ""


def test_only_last_bracket_pair_is_author() -> None:
    title = split_title("作品（上）名（著者） - カクヨム")
    assert title.name == "作品（上）名"
    assert title.author == "著者"


def test_unbalanced_nesting_falls_back_to_last_opening_bracket() -> None:
    # Two closes but a single opening bracket: the opening bracket found is used.
    title = split_title("作品名（雅号）） - カクヨム")
    assert title.name == "作品名"
    assert title.author == "雅号）"


def test_name_is_not_trimmed_again() -> None:
    title = split_title("作品名 （著者）")
    assert title.name == "作品名 "
    assert title.author == "著者"


@pytest.mark.parametrize(
    "raw",
    [
        "魔法使いの嫁（ヤマザキコレ） - カクヨム",
        "作品名（著者（雅号）） - カクヨム",
        "作品名 - カクヨム",
    ],
)
def test_split_name_is_a_fixed_point(raw: str) -> None:
    once = split_title(raw)
    twice = split_title(once.name)
    assert twice.name == once.name
    assert twice.author is None
