#!/usr/bin/env python3
"""
Integration tests for SyncEngine.

Each test builds a temporary vault and tasks file, runs a pass and checks
both the returned counters and what ended up on disk.
"""

import logging
import os

import pytest

from obs_taskmaster.core.config import SyncConfig
from obs_taskmaster.core.exceptions import PartitionNotFoundError, ValidationError
from obs_taskmaster.core.models import (
    BidirectionalResult,
    SyncDirection,
    SyncStatus,
    TaskStatus,
)
from obs_taskmaster.store.tasks_file import TaskStore
from obs_taskmaster.sync.engine import SyncEngine
from tests.conftest import (
    count_files,
    make_task,
    read_note,
    read_tasks_file,
    tag_document,
    write_note,
    write_tasks_file,
)


OLD_SYNC = "2020-01-01T00:00:00+00:00"


def _load(config: SyncConfig, tag: str = "master"):
    return TaskStore(config.tasks_path).require_partition(tag)


@pytest.mark.integration
class TestFromText:

    def test_creates_task_from_note(self, config):
        write_note(config.vault_path, "note.md", "- [ ] Write docs\n")

        result = SyncEngine(config).from_text()

        assert result.created == 1
        assert result.persisted
        partition = _load(config)
        assert len(partition.tasks) == 1
        task = partition.tasks[0]
        assert task.id == 1
        assert task.title == "Write docs"
        assert task.status == TaskStatus.PENDING
        assert task.source_file == "note.md"
        assert task.sync_status == SyncStatus.SYNCED
        assert task.last_sync_at
        assert partition.metadata.vault_path == config.vault_path

    def test_first_sync_takes_checkbox_without_conflict(self, config):
        write_tasks_file(config.tasks_path, tag_document([make_task(1, "Setup", sourceFile="setup.md")]))
        write_note(config.vault_path, "setup.md", "- [x] Setup\n")

        result = SyncEngine(config).from_text()

        assert result.updated == 1
        assert result.conflicts == 0
        task = _load(config).find_task(1)
        assert task.status == TaskStatus.DONE
        assert task.sync_status == SyncStatus.SYNCED

    def test_new_ids_follow_the_highest_existing_id(self, config):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(1, "One", sourceFile="a.md", lastSyncAt=OLD_SYNC, syncStatus="synced"),
            make_task(5, "Five"),
        ]))
        write_note(config.vault_path, "b.md", "- [ ] New one\n- [ ] New two\n")

        SyncEngine(config).from_text()

        assert _load(config).task_ids() == [1, 5, 6, 7]

    def test_unchanged_pass_does_not_write(self, config):
        write_note(config.vault_path, "note.md", "- [ ] Write docs\n")
        engine = SyncEngine(config)
        engine.from_text()
        before = os.stat(config.tasks_path).st_mtime_ns

        result = engine.from_text()

        assert result.unchanged == 1
        assert result.created == result.updated == result.conflicts == 0
        assert not result.persisted
        assert os.stat(config.tasks_path).st_mtime_ns == before

    def test_edit_after_sync_is_flagged_as_conflict(self, config):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(1, "Setup", sourceFile="setup.md", syncStatus="synced", lastSyncAt=OLD_SYNC),
        ]))
        write_note(config.vault_path, "setup.md", "- [x] Setup\n")
        engine = SyncEngine(config)

        result = engine.from_text()

        assert result.conflicts == 1
        assert result.conflict_ids == [1]
        assert result.updated == 0
        task = _load(config).find_task(1)
        assert task.sync_status == SyncStatus.CONFLICT
        assert task.status == TaskStatus.PENDING
        assert task.last_sync_at == OLD_SYNC

        again = engine.from_text()
        assert again.conflicts == 1
        assert not again.persisted

    def test_retitled_task_note_is_a_title_conflict(self, config):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(4, "Old name", sourceFile="Tasks/Old name.md", syncStatus="synced", lastSyncAt=OLD_SYNC),
        ]))
        write_note(config.vault_path, "Tasks/Old name.md", "---\ntask_id: 4\n---\n# New name\n\n- [ ] New name\n")

        result = SyncEngine(config).from_text()

        assert result.conflicts == 1
        assert result.created == 0
        assert _load(config).task_ids() == [4]

    def test_dependencies_are_resolved_and_filtered(self, config):
        write_tasks_file(config.tasks_path, tag_document([make_task(1, "Database Layer")]))
        write_note(config.vault_path, "Tasks/API.md", "\n".join([
            "# API",
            "",
            "- [ ] API",
            "",
            "## Dependencies",
            "- [[Database Layer]]",
            "- Task 42",
            "- [[Nowhere]]",
            "",
        ]))

        SyncEngine(config).from_text()

        task = _load(config).find_by_natural_key("Tasks/API.md", "API")
        assert task.dependencies == [1]

    def test_dependencies_only_point_at_earlier_tasks(self, config):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(1, "Alpha", sourceFile="Alpha.md", syncStatus="synced", lastSyncAt=OLD_SYNC),
            make_task(2, "Beta", sourceFile="Beta.md", syncStatus="synced", lastSyncAt=OLD_SYNC),
        ]))
        write_note(config.vault_path, "Alpha.md", "# Alpha\n\n- [ ] Alpha\n\n## Dependencies\n- Task 2\n")
        write_note(config.vault_path, "Beta.md", "# Beta\n\n- [ ] Beta\n\n## Dependencies\n- Task 1\n")

        SyncEngine(config).from_text()

        partition = _load(config)
        assert partition.find_task(1).dependencies == []
        assert partition.find_task(2).dependencies == [1]

    def test_disallowed_status_is_a_file_issue(self, vault, tasks_path):
        config = SyncConfig(
            vault_path=vault,
            tasks_path=tasks_path,
            allowed_statuses=["pending", "in-progress"],
        )
        write_note(vault, "note.md", "- [x] Finished\n- [ ] Open\n")

        result = SyncEngine(config).from_text()

        assert result.created == 1
        assert len(result.errors) == 1
        assert result.errors[0].path == "note.md"
        assert [t.title for t in _load(config).tasks] == ["Open"]

    def test_dry_run_counts_but_does_not_write(self, config, caplog):
        caplog.set_level(logging.INFO)
        write_note(config.vault_path, "note.md", "- [ ] Write docs\n")

        result = SyncEngine(config).from_text(dry_run=True)

        assert result.created == 1
        assert not result.persisted
        assert not os.path.exists(config.tasks_path)
        assert "[DRY RUN] Would create task 1 'Write docs'" in caplog.text

    def test_empty_vault_returns_zero_counts(self, config, caplog):
        caplog.set_level(logging.INFO)

        result = SyncEngine(config).from_text()

        assert result.created == result.updated == result.unchanged == 0
        assert "No tasks found in vault" in caplog.text
        assert not os.path.exists(config.tasks_path)


@pytest.mark.integration
class TestToText:

    def test_task_without_source_file_is_ignored(self, config):
        write_tasks_file(config.tasks_path, tag_document([make_task(1, "Floating", sourceFile="")]))
        files_before = count_files(config.vault_path)

        result = SyncEngine(config).to_text()

        assert result.created == result.updated == result.unchanged == 0
        assert result.errors == []
        assert count_files(config.vault_path) == files_before

    def test_dry_run_logs_each_task_and_writes_nothing(self, config, caplog):
        caplog.set_level(logging.INFO)
        write_tasks_file(config.tasks_path, tag_document([
            make_task(i, f"Task {i}", sourceFile=f"Tasks/Task {i}.md") for i in range(1, 6)
        ]))
        files_before = count_files(config.vault_path)

        result = SyncEngine(config).to_text(dry_run=True)

        dry_lines = [r for r in caplog.records if r.getMessage().startswith("[DRY RUN] Would")]
        assert len(dry_lines) == 5
        assert result.created == 5
        assert count_files(config.vault_path) == files_before

    def test_creates_then_updates_then_leaves_alone(self, config):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(1, "Write docs", sourceFile="Tasks/Write docs.md", description="All of it"),
        ]))
        engine = SyncEngine(config)

        first = engine.to_text()
        assert first.created == 1
        content = read_note(config.vault_path, "Tasks/Write docs.md")
        assert "- [ ] Write docs" in content
        assert "## Description\nAll of it" in content

        second = engine.to_text()
        assert second.unchanged == 1

        document = read_tasks_file(config.tasks_path)
        document["master"]["tasks"][0]["status"] = "done"
        write_tasks_file(config.tasks_path, document)

        third = engine.to_text()
        assert third.updated == 1
        assert read_note(config.vault_path, "Tasks/Write docs.md") == content.replace(
            "- [ ] Write docs", "- [x] Write docs"
        )

    def test_many_tasks_in_one_note_are_all_written(self, vault, tasks_path):
        config = SyncConfig(vault_path=vault, tasks_path=tasks_path, max_workers=8)
        write_note(vault, "note.md", "".join(f"- [ ] Item {i}\n" for i in range(1, 31)))
        write_tasks_file(tasks_path, tag_document([
            make_task(i, f"Item {i}", sourceFile="note.md", status="done") for i in range(1, 31)
        ]))

        result = SyncEngine(config).to_text()

        assert result.updated == 30
        assert result.files_scanned == 1
        content = read_note(vault, "note.md")
        assert "- [ ]" not in content
        assert content.count("- [x]") == 30

    def test_new_note_shared_by_several_tasks(self, config):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(1, "Plan", sourceFile="Tasks/Plan.md"),
            make_task(2, "Review plan", sourceFile="Tasks/Plan.md", status="done"),
        ]))

        result = SyncEngine(config).to_text()

        assert result.created == 2
        content = read_note(config.vault_path, "Tasks/Plan.md")
        assert "- [ ] Plan" in content
        assert content.endswith("- [x] Review plan\n")
        assert SyncEngine(config).to_text().unchanged == 2

    def test_path_outside_vault_is_a_task_error(self, config, temp_dir):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(1, "Escape", sourceFile="../outside.md"),
            make_task(2, "Inside", sourceFile="inside.md"),
        ]))

        result = SyncEngine(config).to_text()

        assert [issue.task_id for issue in result.errors] == [1]
        assert result.created == 1
        assert not os.path.exists(os.path.join(temp_dir, "outside.md"))

    def test_missing_tag_context(self, config):
        with pytest.raises(PartitionNotFoundError):
            SyncEngine(config).to_text()


@pytest.mark.integration
class TestBidirectional:

    def test_runs_both_phases(self, config):
        write_note(config.vault_path, "note.md", "- [ ] Write docs\n")

        result = SyncEngine(config).sync("bidirectional")

        assert isinstance(result, BidirectionalResult)
        assert result.from_text.created == 1
        assert result.to_text.direction == SyncDirection.TO_TEXT
        assert result.to_text.unchanged == 1
        assert result.success

    def test_empty_vault_and_store(self, config):
        result = SyncEngine(config).bidirectional()
        assert result.from_text.created == 0
        assert result.to_text.created == 0

    def test_done_in_store_reaches_the_note(self, config):
        write_note(config.vault_path, "note.md", "- [ ] Write docs\n")
        engine = SyncEngine(config)
        engine.from_text()

        document = read_tasks_file(config.tasks_path)
        document["master"]["tasks"][0]["status"] = "done"
        write_tasks_file(config.tasks_path, document)

        result = engine.bidirectional()

        assert result.from_text.conflicts == 0
        assert result.to_text.updated == 1
        assert read_note(config.vault_path, "note.md") == "- [x] Write docs\n"


@pytest.mark.integration
class TestImportDrafts:

    def test_ids_and_dependency_filter(self, config):
        drafts = [
            {"id": 1, "title": "Schema", "dependencies": [2], "priority": "high"},
            {"id": 2, "title": "API", "dependencies": [1, 99]},
            {"id": 3, "title": "UI", "dependencies": ["[[API]]", 3]},
        ]

        result = SyncEngine(config).import_drafts(drafts, source_files=["a.md", "b.md"])

        assert result.imported_ids == [1, 2, 3]
        assert result.dropped_dependencies == [(1, 2), (2, 99), (3, 3)]
        partition = _load(config)
        assert [t.dependencies for t in partition.tasks] == [[], [1], [2]]
        assert all(t.sync_status == SyncStatus.PENDING for t in partition.tasks)
        metadata = read_tasks_file(config.tasks_path)["master"]["metadata"]
        assert metadata["description"] == "Tasks for master context (extracted from Obsidian notes)"
        assert metadata["sourceFiles"] == ["a.md", "b.md"]
        assert metadata["totalSourceFiles"] == 2
        assert metadata["syncSettings"]["conflictResolution"] == "manual"

    def test_refuses_non_empty_tag_without_flag(self, config):
        write_tasks_file(config.tasks_path, tag_document([make_task(1, "Existing")]))

        with pytest.raises(ValidationError) as excinfo:
            SyncEngine(config).import_drafts([{"id": 1, "title": "New"}])
        assert excinfo.value.reason == "tag not empty"

    def test_append_keeps_existing_tasks(self, config):
        write_tasks_file(config.tasks_path, tag_document([make_task(1, "Existing"), make_task(2, "Other")]))

        result = SyncEngine(config).import_drafts(
            [{"id": 10, "title": "New", "dependencies": [1]}],
            append=True,
        )

        assert result.imported_ids == [3]
        partition = _load(config)
        assert partition.task_ids() == [1, 2, 3]
        assert partition.find_task(3).dependencies == [1]

    def test_force_replaces_tasks(self, config):
        write_tasks_file(config.tasks_path, tag_document([make_task(1, "Existing"), make_task(2, "Other")]))

        result = SyncEngine(config).import_drafts([{"id": 1, "title": "Fresh"}], force=True)

        assert result.total_tasks == 1
        assert [t.title for t in _load(config).tasks] == ["Fresh"]

    def test_other_tags_are_untouched(self, vault, tasks_path):
        write_tasks_file(tasks_path, tag_document([make_task(1, "Main")]))
        config = SyncConfig(vault_path=vault, tasks_path=tasks_path, tag="feature")

        SyncEngine(config).import_drafts([{"id": 1, "title": "Feature"}])

        document = read_tasks_file(tasks_path)
        assert document["master"] == tag_document([make_task(1, "Main")])["master"]
        assert document["feature"]["tasks"][0]["title"] == "Feature"

    def test_invalid_status_rejects_the_batch(self, config):
        with pytest.raises(ValidationError):
            SyncEngine(config).import_drafts([{"id": 1, "title": "Bad", "status": "blocked"}])
        assert not os.path.exists(config.tasks_path)

    def test_dry_run(self, config):
        result = SyncEngine(config).import_drafts([{"id": 1, "title": "Draft"}], dry_run=True)
        assert result.imported == 1
        assert not os.path.exists(config.tasks_path)


@pytest.mark.integration
class TestResolveConflict:

    @pytest.fixture
    def conflicted(self, config):
        write_tasks_file(config.tasks_path, tag_document([
            make_task(1, "Setup", sourceFile="setup.md", syncStatus="conflict", lastSyncAt=OLD_SYNC),
        ]))
        write_note(config.vault_path, "setup.md", "- [x] Setup\n")
        return config

    def test_keep_text(self, conflicted):
        task = SyncEngine(conflicted).resolve_conflict(1, keep="text")

        assert task.status == TaskStatus.DONE
        stored = _load(conflicted).find_task(1)
        assert stored.status == TaskStatus.DONE
        assert stored.sync_status == SyncStatus.SYNCED
        assert stored.last_sync_at != OLD_SYNC

    def test_keep_store(self, conflicted):
        SyncEngine(conflicted).resolve_conflict(1, keep="store")

        assert read_note(conflicted.vault_path, "setup.md") == "- [ ] Setup\n"
        stored = _load(conflicted).find_task(1)
        assert stored.status == TaskStatus.PENDING
        assert stored.sync_status == SyncStatus.SYNCED

    def test_resolved_task_no_longer_conflicts(self, conflicted):
        engine = SyncEngine(conflicted)
        engine.resolve_conflict(1, keep="store")

        assert engine.from_text().conflicts == 0

    def test_task_not_in_conflict(self, config):
        write_tasks_file(config.tasks_path, tag_document([make_task(1, "Setup", sourceFile="setup.md")]))
        with pytest.raises(ValidationError):
            SyncEngine(config).resolve_conflict(1, keep="text")

    def test_invalid_side(self, conflicted):
        with pytest.raises(ValidationError):
            SyncEngine(conflicted).resolve_conflict(1, keep="both")
