"""
Cross-reference tokens: mapping ``[[Title]]`` links to task ids and back.
"""

import re
from typing import Any, Iterator, Optional, Tuple, Union

from obs_taskmaster.core.exceptions import ValidationError
from obs_taskmaster.core.models import LinkValidation, Partition, Task


DOTTED_ID_RE = re.compile(r'^\d+(?:\.\d+)+$')
TaskRef = Union[int, str]


def _strip_brackets(token: str) -> str:
    text = token.strip()
    if text.startswith('[['):
        text = text[2:]
    if text.endswith(']]'):
        text = text[:-2]
    return text.strip()


def _iter_subtasks(partition: Partition) -> Iterator[Tuple[Task, Task]]:
    for task in partition.tasks:
        for subtask in task.subtasks:
            yield task, subtask


def resolve_to_id(token: Optional[str], partition: Optional[Partition]) -> Optional[TaskRef]:
    """
    Resolve a ``[[Title]]`` token to a task id.

    Matching is case-insensitive and tries, in order: exact top-level title,
    exact subtask title, substring of a top-level title, substring of a
    subtask title. The first match in store order wins.

    Returns:
        An int for top-level tasks, a ``"parent.sub"`` string for subtasks,
        or None when nothing matches
    """
    if not token or partition is None:
        return None
    needle = _strip_brackets(token).casefold()
    if not needle:
        return None

    for task in partition.tasks:
        if task.title.casefold() == needle:
            return task.id
    for parent, subtask in _iter_subtasks(partition):
        if subtask.title.casefold() == needle:
            return f"{parent.id}.{subtask.id}"
    for task in partition.tasks:
        if needle in task.title.casefold():
            return task.id
    for parent, subtask in _iter_subtasks(partition):
        if needle in subtask.title.casefold():
            return f"{parent.id}.{subtask.id}"
    return None


def find_task(partition: Optional[Partition], ref: Any) -> Optional[Task]:
    """Look up a task by int id, numeric string or dotted subtask id."""
    if partition is None or ref is None or isinstance(ref, bool):
        return None
    text = str(ref).strip()
    if text.isdecimal():
        return partition.find_task(int(text))
    if DOTTED_ID_RE.match(text) and text.count('.') == 1:
        parent_id, sub_id = (int(part) for part in text.split('.'))
        parent = partition.find_task(parent_id)
        if parent is None:
            return None
        for subtask in parent.subtasks:
            if subtask.id == sub_id:
                return subtask
    return None


def resolve_to_token(ref: Any, partition: Optional[Partition]) -> Optional[str]:
    """Render the ``[[Title]]`` token for a task id, or None if it does not exist."""
    task = find_task(partition, ref)
    if task is None:
        return None
    return f"[[{task.title}]]"


def format_id(value: Any) -> str:
    """
    Canonical display form of a task reference.

    Numbers are stringified, dotted ids lose leading zeros (``"01.02"`` ->
    ``"1.2"``), ``[[tokens]]`` pass through untouched and other strings are
    trimmed. Applying it twice gives the same result as applying it once.

    Raises:
        ValidationError: None, empty or boolean input
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Invalid task reference: {value!r}", reason="empty reference")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))

    text = str(value)
    stripped = text.strip()
    if not stripped:
        raise ValidationError("Task reference cannot be empty", reason="empty reference")
    if stripped.startswith('[[') and stripped.endswith(']]'):
        return text
    if stripped.isdecimal():
        return str(int(stripped))
    if DOTTED_ID_RE.match(stripped):
        return '.'.join(str(int(part)) for part in stripped.split('.'))
    return stripped


def validate_link(token: Any) -> LinkValidation:
    """Check that a token is a well-formed ``[[...]]`` link."""
    if not isinstance(token, str):
        return LinkValidation(False, "link must be a string")
    if not token.startswith('[['):
        return LinkValidation(False, "link must start with [[")
    if not token.endswith(']]') or len(token) < 4:
        return LinkValidation(False, "link must end with ]]")
    inner = token[2:-2]
    if '[[' in inner or ']]' in inner:
        return LinkValidation(False, "link must not contain nested [[ or ]]")
    if not inner.strip():
        return LinkValidation(False, "link text cannot be empty")
    return LinkValidation(True)


def require_valid_link(token: Any) -> str:
    """Return the token unchanged or raise ValidationError with the reason."""
    validation = validate_link(token)
    if not validation:
        raise ValidationError(f"Invalid link {token!r}: {validation.reason}", reason=validation.reason)
    return token
