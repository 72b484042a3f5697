"""
Utilities for normalizing tag labels.

Tags are stored without the leading ``#`` in ordered, de-duplicated lists.
"""

from typing import Any, Iterable, List


def normalize_tag(tag: Any) -> str:
    """Strip whitespace and leading ``#`` characters from a tag label."""
    if tag is None:
        return ""
    return str(tag).strip().lstrip('#').strip()


def merge_tags(*groups: Iterable[Any]) -> List[str]:
    """
    Merge tag lists, removing duplicates while preserving first-seen order.

    Args:
        groups: Tag iterables, with or without ``#`` prefixes

    Returns:
        Merged list of unique tags without ``#``
    """
    seen = set()
    result = []
    for group in groups:
        for tag in group or []:
            normalized = normalize_tag(tag)
            if normalized and normalized not in seen:
                seen.add(normalized)
                result.append(normalized)
    return result
