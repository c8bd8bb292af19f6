"""Tests for slug and summary helpers."""

import pytest

from inkwell.utils.text import is_hex_color, slugify, strip_html, summarize


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Hello, World!", "hello-world"),
        ("  Spaces   everywhere ", "spaces-everywhere"),
        ("snake_case_title", "snake-case-title"),
        ("Café au lait", "café-au-lait"),
        ("!!!", ""),
    ],
)
def test_slugify(text: str, expected: str) -> None:
    assert slugify(text) == expected


def test_strip_html_replaces_nbsp() -> None:
    assert strip_html("  <p>a&nbsp;<em>b</em></p> ") == "a b"


def test_summarize_truncates_with_ellipsis() -> None:
    assert summarize("short") == "short"
    assert summarize("x" * 151) == "x" * 150 + "..."
    assert summarize("<b>" + "y" * 10 + "</b>", length=4) == "yyyy..."


def test_is_hex_color() -> None:
    assert is_hex_color("#fff")
    assert is_hex_color("#6B7280")
    assert not is_hex_color("6b7280")
    assert not is_hex_color("#12345")
