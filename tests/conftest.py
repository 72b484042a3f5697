#!/usr/bin/env python3
"""
Global pytest configuration and fixtures.

This module provides:
- Custom markers
- Temporary vault and tasks file fixtures
- Helpers for writing notes and tasks files
"""

import json
import os
import shutil
import sys
import tempfile
from typing import Any, Dict, Generator, List

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from obs_taskmaster.core.config import SyncConfig


def pytest_configure(config):
    """Configure pytest environment."""
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests that touch a temporary vault and tasks file")


# Common test fixtures

@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = tempfile.mkdtemp(prefix="obs_taskmaster_test_")
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def vault(temp_dir: str) -> str:
    """An empty Obsidian vault (has a .obsidian directory)."""
    vault_path = os.path.join(temp_dir, "vault")
    os.makedirs(os.path.join(vault_path, ".obsidian"))
    return vault_path


@pytest.fixture
def tasks_path(temp_dir: str) -> str:
    return os.path.join(temp_dir, "project", ".taskmaster", "tasks", "tasks.json")


@pytest.fixture
def config(vault: str, tasks_path: str) -> SyncConfig:
    return SyncConfig(vault_path=vault, tasks_path=tasks_path, max_workers=2)


@pytest.fixture
def sample_vault(vault: str) -> str:
    """Vault with a daily note, a project note and a template that is never scanned."""
    write_note(vault, "Daily/2024-03-01.md", """---
tags: [daily]
---
# 2024-03-01

- [ ] Buy groceries #personal
- [x] Call dentist
See [[Project Alpha]].
""")
    write_note(vault, "Project Alpha.md", """# Project Alpha

- [ ] Design phase #work
- [ ] Development phase #work #dev
""")
    write_note(vault, "Templates/Daily.md", "- [ ] Template task\n")
    return vault


# Helper functions for tests

def write_note(vault_path: str, rel_path: str, content: str) -> str:
    """Write a markdown note below the vault and return its full path."""
    full_path = os.path.join(vault_path, *rel_path.split("/"))
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, "w", encoding="utf-8") as handle:
        handle.write(content)
    return full_path


def read_note(vault_path: str, rel_path: str) -> str:
    with open(os.path.join(vault_path, *rel_path.split("/")), "r", encoding="utf-8") as handle:
        return handle.read()


def write_tasks_file(path: str, document: Dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(document, handle, indent=2)


def read_tasks_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def make_task(task_id: int, title: str, **fields: Any) -> Dict[str, Any]:
    """A tasks.json entry with sensible defaults."""
    entry: Dict[str, Any] = {
        "id": task_id,
        "title": title,
        "description": "",
        "status": "pending",
        "priority": "medium",
        "dependencies": [],
        "subtasks": [],
    }
    entry.update(fields)
    return entry


def tag_document(tasks: List[Dict[str, Any]], tag: str = "master") -> Dict[str, Any]:
    return {tag: {"tasks": tasks, "metadata": {"created": "2024-01-01T00:00:00+00:00"}}}


def count_files(root: str) -> int:
    return sum(len(files) for _, _, files in os.walk(root))
