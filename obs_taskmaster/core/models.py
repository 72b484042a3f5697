"""
Domain models for obs-taskmaster.

This module contains the core data structures shared by the extractor,
the tasks file accessor, the reconciliation engine and the projector.
JSON field names follow the tasks.json layout (camelCase); Python
attributes use snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .exceptions import ValidationError
from ..utils.text import normalize_title


def _parse_enum(enum_cls, value: Any, label: str, allowed: Optional[Iterable] = None):
    """Coerce a raw value into a member of ``enum_cls`` or raise ValidationError."""
    if isinstance(value, enum_cls):
        member = value
    else:
        text = str(value).strip().lower() if value is not None else ""
        try:
            member = enum_cls(text)
        except ValueError:
            choices = ", ".join(m.value for m in enum_cls)
            raise ValidationError(
                f"Invalid {label} {value!r} (expected one of: {choices})",
                reason=f"unknown {label}",
            ) from None

    if allowed is not None:
        allowed_set = set(allowed)
        if member not in allowed_set:
            choices = ", ".join(m.value for m in enum_cls if m in allowed_set)
            raise ValidationError(
                f"{label.capitalize()} {member.value!r} is not enabled (allowed: {choices})",
                reason=f"{label} not allowed",
            )
    return member


class TaskStatus(Enum):
    """Task lifecycle status."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"
    REVIEW = "review"

    @classmethod
    def parse(cls, value: Any, allowed: Optional[Iterable[TaskStatus]] = None) -> TaskStatus:
        return _parse_enum(cls, value, "status", allowed)


class Priority(Enum):
    """Task priority levels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any) -> Priority:
        return _parse_enum(cls, value, "priority")


class SyncStatus(Enum):
    """Reconciliation state of a task."""

    PENDING = "pending"
    SYNCED = "synced"
    CONFLICT = "conflict"

    @classmethod
    def parse(cls, value: Any) -> SyncStatus:
        return _parse_enum(cls, value, "sync status")


class SyncDirection(Enum):
    """Direction of a reconciliation pass."""

    TO_TEXT = "to-text"
    FROM_TEXT = "from-text"
    BIDIRECTIONAL = "bidirectional"

    @classmethod
    def parse(cls, value: Any) -> SyncDirection:
        return _parse_enum(cls, value, "sync direction")


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def _parse_task_id(value: Any, label: str = "task id") -> int:
    # bool is a subclass of int and never a valid id
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}: {value!r}", reason=f"invalid {label}")
    try:
        task_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}: {value!r}", reason=f"invalid {label}") from None
    if task_id <= 0 or (isinstance(value, float) and value != task_id):
        raise ValidationError(f"Invalid {label}: {value!r}", reason=f"invalid {label}")
    return task_id


def _coerce_dependency(value: Any) -> Optional[Union[int, str]]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdecimal():
        return int(text)
    return text or None


# ----------------------------------------------------------------------
# Canonical task records
# ----------------------------------------------------------------------

_TASK_KEYS = {
    "id", "title", "description", "details", "testStrategy", "priority",
    "dependencies", "status", "subtasks", "sourceFile", "tags",
    "obsidianTags", "linkedNotes", "syncStatus", "lastSyncAt",
}


@dataclass
class Task:
    """A canonical task record. Subtasks use the same shape."""

    id: int
    title: str
    description: str = ""
    details: str = ""
    test_strategy: str = ""
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    dependencies: List[Union[int, str]] = field(default_factory=list)
    subtasks: List[Task] = field(default_factory=list)
    source_file: str = ""
    tags: List[str] = field(default_factory=list)
    linked_notes: List[str] = field(default_factory=list)
    sync_status: SyncStatus = SyncStatus.PENDING
    last_sync_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # A checkbox line holds one line of text with single spaces
        self.title = normalize_title(self.title)

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.source_file, self.title)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "details": self.details,
            "testStrategy": self.test_strategy,
            "priority": self.priority.value,
            "dependencies": list(self.dependencies),
            "status": self.status.value,
            "subtasks": [subtask.to_dict() for subtask in self.subtasks],
            "sourceFile": self.source_file,
            "tags": list(self.tags),
            "linkedNotes": list(self.linked_notes),
            "syncStatus": self.sync_status.value,
        }
        if self.last_sync_at:
            data["lastSyncAt"] = self.last_sync_at
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        allowed_statuses: Optional[Iterable[TaskStatus]] = None,
    ) -> Task:
        if not isinstance(data, dict):
            raise ValidationError(f"Task entry must be an object, got {type(data).__name__}")

        task_id = _parse_task_id(data.get("id"))
        title = normalize_title(str(data.get("title") or ""))
        if not title:
            raise ValidationError(f"Task {task_id} has an empty title", reason="empty title")

        tags = list(data.get("tags") or []) + list(data.get("obsidianTags") or [])
        dependencies = [
            dep for dep in (_coerce_dependency(v) for v in data.get("dependencies") or [])
            if dep is not None
        ]

        sync_value = data.get("syncStatus")
        return cls(
            id=task_id,
            title=title,
            description=data.get("description") or "",
            details=data.get("details") or "",
            test_strategy=data.get("testStrategy") or "",
            priority=Priority.parse(data.get("priority") or Priority.MEDIUM.value),
            status=TaskStatus.parse(data.get("status") or TaskStatus.PENDING.value, allowed_statuses),
            dependencies=dependencies,
            subtasks=[
                cls.from_dict(entry, allowed_statuses) for entry in data.get("subtasks") or []
            ],
            source_file=data.get("sourceFile") or "",
            tags=_unique(str(tag).lstrip("#") for tag in tags),
            linked_notes=_unique(str(note) for note in data.get("linkedNotes") or []),
            sync_status=SyncStatus.parse(sync_value) if sync_value else SyncStatus.PENDING,
            last_sync_at=data.get("lastSyncAt") or None,
            extra={k: v for k, v in data.items() if k not in _TASK_KEYS},
        )


_METADATA_KEYS = {"created", "updated", "description", "vaultPath", "syncSettings"}


@dataclass
class PartitionMetadata:
    """Metadata stored alongside a tag context."""

    created: Optional[str] = None
    updated: Optional[str] = None
    description: str = ""
    vault_path: Optional[str] = None
    sync_settings: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "created": self.created,
            "updated": self.updated,
            "description": self.description,
        }
        if self.vault_path:
            data["vaultPath"] = self.vault_path
        if self.sync_settings:
            data["syncSettings"] = dict(self.sync_settings)
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> PartitionMetadata:
        data = data if isinstance(data, dict) else {}
        return cls(
            created=data.get("created"),
            updated=data.get("updated"),
            description=data.get("description") or "",
            vault_path=data.get("vaultPath"),
            sync_settings=dict(data.get("syncSettings") or {}),
            extra={k: v for k, v in data.items() if k not in _METADATA_KEYS},
        )


@dataclass
class Partition:
    """A named, independently writable collection of tasks (a tag context)."""

    name: str
    tasks: List[Task] = field(default_factory=list)
    metadata: PartitionMetadata = field(default_factory=PartitionMetadata)

    def task_ids(self) -> List[int]:
        return [task.id for task in self.tasks]

    def next_id(self) -> int:
        return max(self.task_ids(), default=0) + 1

    def find_task(self, task_id: int) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def find_by_natural_key(self, source_file: str, title: str) -> Optional[Task]:
        for task in self.tasks:
            if task.source_file == source_file and task.title == title:
                return task
        return None

    def touch(self, timestamp: str) -> None:
        if not self.metadata.created:
            self.metadata.created = timestamp
        self.metadata.updated = timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks": [task.to_dict() for task in self.tasks],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        name: str,
        data: Optional[Dict[str, Any]],
        allowed_statuses: Optional[Iterable[TaskStatus]] = None,
    ) -> Partition:
        data = data if isinstance(data, dict) else {}
        return cls(
            name=name,
            tasks=[Task.from_dict(entry, allowed_statuses) for entry in data.get("tasks") or []],
            metadata=PartitionMetadata.from_dict(data.get("metadata")),
        )


# ----------------------------------------------------------------------
# Extraction output
# ----------------------------------------------------------------------

@dataclass
class VaultRecord:
    """A task-like record extracted from a markdown file."""

    title: str
    completed: bool
    source_file: str
    tags: List[str] = field(default_factory=list)
    linked_notes: List[str] = field(default_factory=list)
    front_matter: Dict[str, Any] = field(default_factory=dict)
    line_number: int = 0
    modified_at: Optional[datetime] = None
    cancelled: bool = False
    # Only set for the primary task of a file (checkbox text == H1 heading)
    task_id: Optional[int] = None
    priority: Optional[Priority] = None
    status_hint: Optional[TaskStatus] = None
    description: Optional[str] = None
    details: Optional[str] = None
    test_strategy: Optional[str] = None
    dependency_refs: Optional[List[str]] = None

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.source_file, self.title)


@dataclass
class FileSummary:
    """What a single scanned file contributed."""

    path: str
    size: int
    modified: Optional[str]
    front_matter: Dict[str, Any] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    task_count: int = 0
    body: str = field(default="", repr=False)


@dataclass
class ScanStats:
    """Consolidated scan statistics; combined by value, never mutated in place."""

    files_scanned: int = 0
    bytes_scanned: int = 0
    tags: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    completed_tasks: int = 0
    incomplete_tasks: int = 0
    skipped_files: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def total_tasks(self) -> int:
        return self.completed_tasks + self.incomplete_tasks

    def combine(self, other: ScanStats) -> ScanStats:
        return ScanStats(
            files_scanned=self.files_scanned + other.files_scanned,
            bytes_scanned=self.bytes_scanned + other.bytes_scanned,
            tags=_unique(self.tags + other.tags),
            links=_unique(self.links + other.links),
            completed_tasks=self.completed_tasks + other.completed_tasks,
            incomplete_tasks=self.incomplete_tasks + other.incomplete_tasks,
            skipped_files=self.skipped_files + other.skipped_files,
            warnings=self.warnings + other.warnings,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_scanned": self.files_scanned,
            "bytes_scanned": self.bytes_scanned,
            "tags": list(self.tags),
            "links": list(self.links),
            "completed_tasks": self.completed_tasks,
            "incomplete_tasks": self.incomplete_tasks,
            "skipped_files": self.skipped_files,
            "warnings": list(self.warnings),
        }


@dataclass
class VaultScan:
    """Result of scanning a vault."""

    root: str
    records: List[VaultRecord] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
    files: List[FileSummary] = field(default_factory=list)
    scanned_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def render_digest(self) -> str:
        """Consolidated vault text handed to a task-generation collaborator."""
        sections = []
        for summary in self.files:
            header = [f"--- FILE: {summary.path} ---"]
            if summary.modified:
                header.append(f"Modified: {summary.modified}")
            header.append(f"Size: {round(summary.size / 1024)}KB")
            fm_tags = summary.front_matter.get("tags")
            if fm_tags:
                if isinstance(fm_tags, list):
                    fm_tags = ", ".join(str(t) for t in fm_tags)
                header.append(f"Tags: {fm_tags}")
            header.append(f"Internal Links: {', '.join(summary.links)}")
            header.append(f"Existing Tasks: {summary.task_count}")
            header.append("---")
            sections.append("\n".join(header) + "\n\n" + summary.body)

        stats = self.stats
        sections.append(
            "--- VAULT SUMMARY ---\n"
            f"Total Files Analyzed: {stats.files_scanned}\n"
            f"Total Size: {round(stats.bytes_scanned / 1024)}KB\n"
            f"Unique Tags: {', '.join('#' + t for t in stats.tags)}\n"
            f"Unique Links: {', '.join(stats.links)}\n"
            f"Existing Tasks Found: {stats.total_tasks}\n"
            f"Completed Tasks: {stats.completed_tasks}\n"
            f"Pending Tasks: {stats.incomplete_tasks}"
        )
        return "\n\n".join(sections)


# ----------------------------------------------------------------------
# Operation results
# ----------------------------------------------------------------------

@dataclass
class FileIssue:
    """A per-file failure recorded without aborting the batch."""

    message: str
    task_id: Optional[int] = None
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"task": self.task_id, "file": self.path, "error": self.message}


@dataclass
class SyncResult:
    """Counters accumulated by one reconciliation pass."""

    direction: SyncDirection
    dry_run: bool = False
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    conflicts: int = 0
    conflict_ids: List[int] = field(default_factory=list)
    errors: List[FileIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    files_scanned: int = 0
    persisted: bool = False

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "dry_run": self.dry_run,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "conflicts": self.conflicts,
            "conflict_ids": list(self.conflict_ids),
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": list(self.warnings),
            "files_scanned": self.files_scanned,
            "persisted": self.persisted,
        }


@dataclass
class BidirectionalResult:
    """Tallies of the two sequential phases of a bidirectional run."""

    from_text: SyncResult
    to_text: SyncResult

    @property
    def success(self) -> bool:
        return self.from_text.success and self.to_text.success

    def to_dict(self) -> Dict[str, Any]:
        return {"from_text": self.from_text.to_dict(), "to_text": self.to_text.to_dict()}


@dataclass
class DraftImportResult:
    """Outcome of importing generated draft tasks into a tag context."""

    tag: str
    imported_ids: List[int] = field(default_factory=list)
    dropped_dependencies: List[Tuple[int, Any]] = field(default_factory=list)
    total_tasks: int = 0
    dry_run: bool = False

    @property
    def imported(self) -> int:
        return len(self.imported_ids)


@dataclass
class LinkValidation:
    """Result of validating a [[wikilink]] token."""

    valid: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


@dataclass
class ConflictInfo:
    """A detected or flagged disagreement between the tasks file and the vault."""

    task_id: int
    title: str
    source_file: str
    fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "source_file": self.source_file,
            "fields": list(self.fields),
        }


@dataclass
class StatusReport:
    """Read-only drift summary between the tasks file and the vault."""

    vault_path: str
    tasks_path: str
    tag: str
    tasks_in_store: int = 0
    tasks_in_vault: int = 0
    only_in_store: List[Tuple[str, str]] = field(default_factory=list)
    only_in_vault: List[Tuple[str, str]] = field(default_factory=list)
    conflicts: List[ConflictInfo] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    last_sync: Optional[str] = None

    @property
    def out_of_sync(self) -> List[Tuple[str, str]]:
        return self.only_in_store + self.only_in_vault

    @property
    def in_sync(self) -> bool:
        return not self.out_of_sync and not self.conflicts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vaultPath": self.vault_path,
            "tasksPath": self.tasks_path,
            "tag": self.tag,
            "tasksInTaskMaster": self.tasks_in_store,
            "tasksInObsidian": self.tasks_in_vault,
            "onlyInTaskMaster": [list(key) for key in self.only_in_store],
            "onlyInObsidian": [list(key) for key in self.only_in_vault],
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "warnings": list(self.warnings),
            "lastSync": self.last_sync,
            "inSync": self.in_sync,
        }
