"""Text normalisation applied to extracted document text before chunking."""
from __future__ import annotations

import re
import unicodedata

_HORIZONTAL_SPACE_RE = re.compile(r"[ \t\f\v\u00a0]+")
_TRAILING_SPACE_RE = re.compile(r" +\n")
_MULTIPLE_NEWLINES_RE = re.compile(r"\n{3,}")
# Words hyphenated across a line break by PDF layout ("infor-\nmation").
_HYPHENATED_BREAK_RE = re.compile(r"(?<=\w)-\n(?=[a-z])")
_INVISIBLE_CHARS = dict.fromkeys(map(ord, "\u200b\u200c\u200d\ufeff\x00"), None)


def normalize_text(text: str) -> str:
    """Normalise Unicode form, line endings and whitespace runs."""

    normalized = unicodedata.normalize("NFC", text).translate(_INVISIBLE_CHARS)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _HYPHENATED_BREAK_RE.sub("", normalized)
    normalized = _HORIZONTAL_SPACE_RE.sub(" ", normalized)
    normalized = _TRAILING_SPACE_RE.sub("\n", normalized)
    normalized = _MULTIPLE_NEWLINES_RE.sub("\n\n", normalized)
    return normalized.strip()


def count_words(text: str) -> int:
    """Number of whitespace separated tokens in ``text``."""

    return len(text.split())
