"""
Configuration management for obs-taskmaster.

The engine owns one JSON file inside each vault (``.taskmaster-sync.json``)
recording where the tasks file lives and which tag context the vault
mirrors. It is written once by ``init`` and never overwritten afterwards.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError
from .models import TaskStatus


CONFIG_VERSION = "1.0.0"
VAULT_CONFIG_FILE = ".taskmaster-sync.json"
README_FILE = "TaskMaster-README.md"
DEFAULT_TASKS_PATH = os.path.join(".taskmaster", "tasks", "tasks.json")
DEFAULT_TAG = "master"

DEFAULT_INCLUDE_PATTERNS = ["**/*.md"]
DEFAULT_EXCLUDE_PATTERNS = [
    "**/Templates/**",
    "**/Archive/**",
    "**/.obsidian/**",
    "**/Tasks/**",
]
# Sync passes must read back the task files they project into Tasks/
SYNC_EXCLUDE_PATTERNS = [
    "**/Templates/**",
    "**/Archive/**",
    "**/.obsidian/**",
]
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_MAX_DEPTH = 10
DEFAULT_FILE_TIMEOUT = 10.0
DEFAULT_MAX_WORKERS = 4

logger = logging.getLogger(__name__)


def _normalize_path(path: str) -> str:
    """Expand user and convert to absolute path."""
    return os.path.abspath(os.path.expanduser(path))


def resolve_tasks_path(project_root: Optional[str] = None, explicit: Optional[str] = None) -> str:
    """Resolve the tasks file location, relative paths anchored at the project root."""
    root = _normalize_path(project_root or os.getcwd())
    if explicit:
        expanded = os.path.expanduser(explicit)
        if os.path.isabs(expanded):
            return os.path.abspath(expanded)
        return os.path.abspath(os.path.join(root, expanded))
    return os.path.join(root, DEFAULT_TASKS_PATH)


@dataclass
class SyncConfig:
    """Configuration for sync operations."""

    vault_path: str = ""
    tasks_path: str = ""
    tag: str = DEFAULT_TAG
    project_root: Optional[str] = None
    include_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    sync_exclude_patterns: List[str] = field(default_factory=lambda: list(SYNC_EXCLUDE_PATTERNS))
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_depth: int = DEFAULT_MAX_DEPTH
    file_timeout: float = DEFAULT_FILE_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS
    allowed_statuses: List[TaskStatus] = field(default_factory=lambda: list(TaskStatus))
    conflict_resolution: str = "manual"
    initialized: Optional[str] = None
    version: str = CONFIG_VERSION

    def __post_init__(self) -> None:
        if self.vault_path:
            self.vault_path = _normalize_path(self.vault_path)
        if not self.tasks_path:
            self.tasks_path = resolve_tasks_path(self.project_root)
        else:
            self.tasks_path = resolve_tasks_path(self.project_root, self.tasks_path)
        if not self.tag:
            self.tag = DEFAULT_TAG
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        if self.file_timeout <= 0:
            raise ConfigurationError("file_timeout must be positive")
        self.allowed_statuses = [TaskStatus.parse(s) for s in self.allowed_statuses]
        if not self.allowed_statuses:
            raise ConfigurationError("allowed_statuses cannot be empty")

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    @property
    def vault_config_path(self) -> str:
        return os.path.join(self.vault_path, VAULT_CONFIG_FILE)

    @property
    def sync_settings(self) -> Dict[str, Any]:
        return {
            "autoSync": False,
            "bidirectional": True,
            "conflictResolution": self.conflict_resolution,
        }

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "vaultPath": self.vault_path,
            "tasksPath": self.tasks_path,
            "tag": self.tag,
            "projectRoot": self.project_root,
            "initialized": self.initialized,
            "version": self.version,
            "scan": {
                "includePatterns": self.include_patterns,
                "excludePatterns": self.exclude_patterns,
                "syncExcludePatterns": self.sync_exclude_patterns,
                "maxFileSize": self.max_file_size,
                "maxDepth": self.max_depth,
                "fileTimeout": self.file_timeout,
                "maxWorkers": self.max_workers,
            },
            "sync": {
                "allowedStatuses": [status.value for status in self.allowed_statuses],
                "conflictResolution": self.conflict_resolution,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **overrides: Any) -> SyncConfig:
        scan = data.get("scan", {}) or {}
        sync = data.get("sync", {}) or {}
        values: Dict[str, Any] = {
            "vault_path": data.get("vaultPath", ""),
            "tasks_path": data.get("tasksPath", ""),
            "tag": data.get("tag", DEFAULT_TAG),
            "project_root": data.get("projectRoot"),
            "include_patterns": scan.get("includePatterns", list(DEFAULT_INCLUDE_PATTERNS)),
            "exclude_patterns": scan.get("excludePatterns", list(DEFAULT_EXCLUDE_PATTERNS)),
            "sync_exclude_patterns": scan.get("syncExcludePatterns", list(SYNC_EXCLUDE_PATTERNS)),
            "max_file_size": scan.get("maxFileSize", DEFAULT_MAX_FILE_SIZE),
            "max_depth": scan.get("maxDepth", DEFAULT_MAX_DEPTH),
            "file_timeout": scan.get("fileTimeout", DEFAULT_FILE_TIMEOUT),
            "max_workers": scan.get("maxWorkers", DEFAULT_MAX_WORKERS),
            "allowed_statuses": sync.get("allowedStatuses", [s.value for s in TaskStatus]),
            "conflict_resolution": sync.get("conflictResolution", "manual"),
            "initialized": data.get("initialized"),
            "version": data.get("version", CONFIG_VERSION),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @classmethod
    def load_from_vault(cls, vault_path: str, **overrides: Any) -> SyncConfig:
        """Load the vault's sync config, falling back to defaults when absent."""
        vault_path = _normalize_path(vault_path)
        config_path = os.path.join(vault_path, VAULT_CONFIG_FILE)
        data: Dict[str, Any] = {}
        if os.path.exists(config_path):
            try:
                with open(config_path, "r", encoding="utf-8") as handle:
                    data = json.load(handle)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Ignoring unreadable sync config %s: %s", config_path, exc)
                data = {}
            if not isinstance(data, dict):
                data = {}

        if not overrides.get("vault_path"):
            overrides["vault_path"] = vault_path
        return cls.from_dict(data, **overrides)

    def save_to_vault(self, overwrite: bool = False) -> bool:
        """Write the sync config into the vault. Returns False if it already existed."""
        if os.path.exists(self.vault_config_path) and not overwrite:
            return False
        if not self.initialized:
            self.initialized = datetime.now(timezone.utc).isoformat()
        with open(self.vault_config_path, "w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        return True
