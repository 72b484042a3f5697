"""
Utility modules for obs-taskmaster.
"""

from .io import safe_read_json, update_json, atomic_write, UnreadableJSONError
from .date import now_iso, parse_timestamp, from_mtime
from .tags import normalize_tag, merge_tags
from .text import normalize_title, text_differs, casefold_equal

__all__ = [
    'safe_read_json',
    'update_json',
    'atomic_write',
    'UnreadableJSONError',
    'now_iso',
    'parse_timestamp',
    'from_mtime',
    'normalize_tag',
    'merge_tags',
    'normalize_title',
    'text_differs',
    'casefold_equal',
]
