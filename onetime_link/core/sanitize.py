"""Input sanitization helpers for request payloads."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")


def clean_single_line(value: str | None) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    value = "".join(ch for ch in value if unicodedata.category(ch) != "Cc")
    return _WHITESPACE_RE.sub(" ", value.strip())


def clean_email(value: str | None) -> str:
    return clean_single_line(value).lower()
