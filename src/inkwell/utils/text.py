# src/inkwell/utils/text.py
"""Helpers for deriving slugs and summaries from user-supplied text."""

from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]*>")
_NON_WORD_RE = re.compile(r"[\W_]+", re.UNICODE)
_HEX_COLOR_RE = re.compile(r"^#([0-9a-f]{3}){1,2}$", re.IGNORECASE)


def slugify(text: str) -> str:
    """Return a URL-friendly slug; word characters of any script are kept.

    Runs of whitespace and punctuation collapse into one hyphen and leading or
    trailing hyphens are removed, so ``"Hello, World!"`` becomes
    ``"hello-world"``.
    """
    return _NON_WORD_RE.sub("-", text.strip().lower()).strip("-")


def strip_html(text: str) -> str:
    """Remove markup tags and non-breaking space entities."""
    plain = _TAG_RE.sub("", text).replace("&nbsp;", " ")
    return plain.strip()


def summarize(content: str, length: int = 150) -> str:
    """Return the first ``length`` characters of the plain text, with an ellipsis if cut."""
    plain = strip_html(content)
    if len(plain) > length:
        return plain[:length] + "..."
    return plain


def is_hex_color(value: str) -> bool:
    """Return True for ``#rgb`` or ``#rrggbb`` colour codes."""
    return bool(_HEX_COLOR_RE.match(value))
