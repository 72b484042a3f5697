#!/usr/bin/env python3
"""Tests for rendering task notes and updating existing ones."""

import pytest

from obs_taskmaster.core.models import Priority, Task, TaskStatus
from obs_taskmaster.obsidian.parser import parse_document
from obs_taskmaster.obsidian.projector import checkbox_mark, render_task, update_text


def _task(**fields) -> Task:
    values = dict(id=7, title="Auth System", source_file="Tasks/Auth System.md")
    values.update(fields)
    return Task(**values)


@pytest.mark.unit
class TestRenderTask:

    def test_full_note(self):
        task = _task(
            description="Login and sessions.",
            details="Use JWT.",
            test_strategy="Integration tests.",
            priority=Priority.HIGH,
            status=TaskStatus.IN_PROGRESS,
            dependencies=[3, "[[Database Layer]]"],
            subtasks=[Task(id=1, title="Token refresh")],
            tags=["auth", "backend"],
            linked_notes=["Security Notes"],
        )
        assert render_task(task) == "\n".join([
            "---",
            "task_id: 7",
            "priority: high",
            "status: in-progress",
            'tags: ["auth", "backend"]',
            "---",
            "",
            "# Auth System",
            "",
            "- [ ] Auth System",
            "",
            "## Description",
            "Login and sessions.",
            "",
            "## Details",
            "Use JWT.",
            "",
            "## Test Strategy",
            "Integration tests.",
            "",
            "## Dependencies",
            "- Task 3",
            "- [[Database Layer]]",
            "",
            "## Subtasks",
            "- 7.1 Token refresh (pending)",
            "",
            "## Related Notes",
            "- [[Security Notes]]",
            "",
        ])

    def test_deterministic(self):
        task = _task(description="Same", tags=["a"])
        assert render_task(task) == render_task(task)

    @pytest.mark.parametrize("status,mark", [
        (TaskStatus.DONE, "x"),
        (TaskStatus.CANCELLED, "-"),
        (TaskStatus.PENDING, " "),
        (TaskStatus.REVIEW, " "),
    ])
    def test_checkbox_mark(self, status, mark):
        assert checkbox_mark(status) == mark

    def test_round_trip_keeps_title_and_completion(self):
        for status in (TaskStatus.PENDING, TaskStatus.DONE):
            task = _task(status=status, description="Text", dependencies=[3])
            records = parse_document(render_task(task), task.source_file)

            assert len(records) == 1
            record = records[0]
            assert record.title == task.title
            assert record.completed is (status == TaskStatus.DONE)
            assert record.task_id == 7
            assert record.description == "Text"
            assert record.dependency_refs == ["3"]


@pytest.mark.unit
class TestUpdateText:

    EXISTING = "# Auth System\n\nIntro text.\n\n- [ ] Other task\n- [ ] auth system\n\nFooter\n"

    def test_toggles_only_the_matching_bracket(self):
        updated = update_text(self.EXISTING, _task(status=TaskStatus.DONE))
        assert updated == self.EXISTING.replace("- [ ] auth system", "- [x] auth system")

    def test_idempotent(self):
        task = _task(status=TaskStatus.DONE)
        once = update_text(self.EXISTING, task)
        assert update_text(once, task) == once

    def test_uppercase_x_counts_as_done(self):
        text = "- [X] Auth System\n"
        assert update_text(text, _task(status=TaskStatus.DONE)) == text

    def test_reopen(self):
        assert update_text("- [x] Auth System\n", _task()) == "- [ ] Auth System\n"

    def test_appends_missing_checkbox(self):
        assert update_text("Some notes", _task()) == "Some notes\n- [ ] Auth System\n"
        assert update_text("Some notes\n", _task(status=TaskStatus.DONE)) == "Some notes\n- [x] Auth System\n"

    def test_crlf_is_preserved(self):
        text = "intro\r\n- [ ] Auth System\r\nend\r\n"
        assert update_text(text, _task(status=TaskStatus.DONE)) == "intro\r\n- [x] Auth System\r\nend\r\n"

    @pytest.mark.parametrize("title", ["Write  docs", "Line one\nline two", "  Tabbed\ttitle  "])
    def test_messy_titles_survive_render_and_update(self, title):
        task = _task(title=title)
        assert task.title == " ".join(title.split())

        records = parse_document(render_task(task), task.source_file)
        assert [record.title for record in records] == [task.title]

        once = update_text("", task)
        assert update_text(once, task) == once
        assert once.count("- [ ]") == 1
