"""
Projection of canonical tasks into markdown notes.
"""

import json
from typing import List

from obs_taskmaster.core.models import Task, TaskStatus
from obs_taskmaster.utils.text import casefold_equal

from .links import format_id
from .parser import TASK_RE


def checkbox_mark(status: TaskStatus) -> str:
    """Checkbox character for a status: ``x`` done, ``-`` cancelled, blank otherwise."""
    if status == TaskStatus.DONE:
        return 'x'
    if status == TaskStatus.CANCELLED:
        return '-'
    return ' '


def _format_dependency(dep) -> str:
    text = format_id(dep)
    if text.startswith('[['):
        return f"- {text}"
    return f"- Task {text}"


def _format_note(note: str) -> str:
    note = note.strip()
    if note.startswith('[[') and note.endswith(']]'):
        return f"- {note}"
    return f"- [[{note}]]"


def render_task(task: Task) -> str:
    """
    Render a task as a complete note.

    The output depends only on the task, so rendering the same task twice
    yields identical text.
    """
    lines: List[str] = [
        "---",
        f"task_id: {task.id}",
        f"priority: {task.priority.value}",
        f"status: {task.status.value}",
    ]
    if task.tags:
        lines.append(f"tags: [{', '.join(json.dumps(tag, ensure_ascii=False) for tag in task.tags)}]")
    lines.extend([
        "---",
        "",
        f"# {task.title}",
        "",
        f"- [{checkbox_mark(task.status)}] {task.title}",
        "",
    ])

    def section(heading: str, body_lines: List[str]) -> None:
        lines.append(f"## {heading}")
        lines.extend(body_lines)
        lines.append("")

    if task.description:
        section("Description", [task.description.strip()])
    if task.details:
        section("Details", [task.details.strip()])
    if task.test_strategy:
        section("Test Strategy", [task.test_strategy.strip()])
    if task.dependencies:
        section("Dependencies", [_format_dependency(dep) for dep in task.dependencies])
    if task.subtasks:
        section("Subtasks", [
            f"- {task.id}.{subtask.id} {subtask.title} ({subtask.status.value})"
            for subtask in task.subtasks
        ])
    if task.linked_notes:
        section("Related Notes", [_format_note(note) for note in task.linked_notes])

    return "\n".join(lines)


def update_text(existing: str, task: Task) -> str:
    """
    Bring an existing note in line with a task's completion state.

    Only the bracket character of the first checkbox whose text equals the
    task title (case-insensitive) is touched. When no such checkbox exists a
    new one is appended. Applying the update twice changes nothing further.
    """
    wanted = checkbox_mark(task.status)
    offset = 0
    for line in existing.splitlines(keepends=True):
        match = TASK_RE.match(line.rstrip('\r\n'))
        if match and casefold_equal(match.group(3), task.title):
            current = match.group(2)
            if current == wanted or (wanted == 'x' and current == 'X'):
                return existing
            position = offset + match.start(2)
            return existing[:position] + wanted + existing[position + 1:]
        offset += len(line)

    separator = "\n" if existing and not existing.endswith("\n") else ""
    return f"{existing}{separator}- [{wanted}] {task.title}\n"
