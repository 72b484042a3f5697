"""
Text normalization helpers.
"""

import re
from typing import Optional

_WS_RE = re.compile(r'\s+')


def normalize_title(text: Optional[str]) -> str:
    """Trim and collapse internal whitespace."""
    if not text:
        return ""
    return _WS_RE.sub(' ', text).strip()


def text_differs(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two texts after trimming surrounding whitespace."""
    return (left or "").strip() != (right or "").strip()


def casefold_equal(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive equality after whitespace normalization."""
    return normalize_title(left).casefold() == normalize_title(right).casefold()
