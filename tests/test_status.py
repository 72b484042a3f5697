#!/usr/bin/env python3
"""Tests for the read-only status report."""

import os

import pytest

from obs_taskmaster.core.config import SyncConfig
from obs_taskmaster.sync.engine import SyncEngine
from obs_taskmaster.sync.status import StatusReporter
from tests.conftest import make_task, tag_document, write_note, write_tasks_file


@pytest.mark.integration
def test_in_sync_after_a_sync_pass(config):
    write_note(config.vault_path, "note.md", "- [ ] Write docs\n")
    SyncEngine(config).from_text()

    report = StatusReporter(config).report()

    assert report.tasks_in_store == 1
    assert report.tasks_in_vault == 1
    assert report.in_sync
    assert report.last_sync is not None
    assert report.to_dict()["inSync"] is True


@pytest.mark.integration
def test_drift_in_both_directions(config):
    write_tasks_file(config.tasks_path, tag_document([
        make_task(1, "Shared", sourceFile="note.md", syncStatus="synced", lastSyncAt="2020-01-01T00:00:00+00:00"),
        make_task(2, "Store only", sourceFile="gone.md"),
        make_task(3, "Flagged", sourceFile="flagged.md", syncStatus="conflict"),
    ]))
    write_note(config.vault_path, "note.md", "- [x] Shared\n- [ ] Vault only\n")
    before = os.stat(config.tasks_path).st_mtime_ns

    report = StatusReporter(config).report()

    assert report.only_in_store == [("gone.md", "Store only"), ("flagged.md", "Flagged")]
    assert report.only_in_vault == [("note.md", "Vault only")]
    assert [(c.task_id, c.fields) for c in report.conflicts] == [(1, ["status"]), (3, ["flagged"])]
    assert report.last_sync == "2020-01-01T00:00:00+00:00"
    assert not report.in_sync
    assert os.stat(config.tasks_path).st_mtime_ns == before


@pytest.mark.integration
def test_missing_store_and_empty_vault_degrade_to_warnings(config):
    report = StatusReporter(config).report()

    assert report.tasks_in_store == 0
    assert report.tasks_in_vault == 0
    assert len(report.warnings) == 2
    assert "No tasks data found for tag 'master'" in report.warnings[0]
    assert "Could not scan vault" in report.warnings[1]


@pytest.mark.integration
def test_last_sync_falls_back_to_initialized(vault, tasks_path):
    config = SyncConfig(vault_path=vault, tasks_path=tasks_path, initialized="2024-02-02T00:00:00+00:00")
    write_tasks_file(tasks_path, tag_document([make_task(1, "Never synced")]))

    assert StatusReporter(config).report().last_sync == "2024-02-02T00:00:00+00:00"
