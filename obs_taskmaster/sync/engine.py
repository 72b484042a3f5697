"""Reconciliation engine between the canonical tasks file and the vault."""

import dataclasses
import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from ..core.config import SyncConfig
from ..core.exceptions import (
    EmptyVaultError,
    PartitionNotFoundError,
    SyncError,
    TaskNotFoundError,
    ValidationError,
)
from ..core.models import (
    BidirectionalResult,
    DraftImportResult,
    FileIssue,
    Partition,
    Priority,
    SyncDirection,
    SyncResult,
    SyncStatus,
    Task,
    VaultRecord,
)
from ..obsidian.links import find_task, resolve_to_id
from ..obsidian.parser import parse_document
from ..obsidian.projector import render_task, update_text
from ..obsidian.scanner import VaultScanner
from ..obsidian.vault import validate_vault
from ..store.tasks_file import TaskStore
from ..utils.concurrency import run_bounded
from ..utils.date import from_mtime, now_iso
from ..utils.io import atomic_write
from .resolver import ConflictResolver, match_task


DependencyRef = Union[int, str]


class SyncEngine:
    """Main engine for vault <-> tasks file reconciliation."""

    def __init__(
        self,
        config: SyncConfig,
        store: Optional[TaskStore] = None,
        scanner: Optional[VaultScanner] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.store = store or TaskStore(config.tasks_path, config.allowed_statuses, logger=self.logger)
        self.scanner = scanner or VaultScanner(config, logger=self.logger)
        self.resolver = ConflictResolver(logger=self.logger)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def sync(
        self,
        direction: Union[str, SyncDirection] = SyncDirection.BIDIRECTIONAL,
        dry_run: bool = False,
    ) -> Union[SyncResult, BidirectionalResult]:
        direction = SyncDirection.parse(direction)
        if direction == SyncDirection.TO_TEXT:
            return self.to_text(dry_run=dry_run)
        if direction == SyncDirection.FROM_TEXT:
            return self.from_text(dry_run=dry_run)
        return self.bidirectional(dry_run=dry_run)

    def bidirectional(self, dry_run: bool = False) -> BidirectionalResult:
        """Run ``from_text`` to completion (store write included), then ``to_text``."""
        from_result = self.from_text(dry_run=dry_run)
        try:
            to_result = self.to_text(dry_run=dry_run)
        except PartitionNotFoundError as exc:
            # Nothing was extracted, so there is nothing to project yet
            self.logger.info("Skipping to-text: %s", exc)
            to_result = SyncResult(direction=SyncDirection.TO_TEXT, dry_run=dry_run)
        return BidirectionalResult(from_text=from_result, to_text=to_result)

    # ------------------------------------------------------------------
    # Vault -> tasks file
    # ------------------------------------------------------------------
    def from_text(self, dry_run: bool = False) -> SyncResult:
        """
        Merge vault records into the configured tag context.

        Records are matched to tasks by ``(source_file, title)``. Matches are
        checked for conflicts and either flagged or merged; unmatched records
        become new tasks. The tasks file is written only when something was
        created, updated or newly flagged.
        """
        result = SyncResult(direction=SyncDirection.FROM_TEXT, dry_run=dry_run)
        vault_path = validate_vault(self.config.vault_path, self.logger)

        try:
            scan = self.scanner.scan(vault_path, exclude_patterns=self.config.sync_exclude_patterns)
        except EmptyVaultError:
            self.logger.info("No tasks found in vault")
            return result

        result.files_scanned = scan.stats.files_scanned
        result.warnings.extend(scan.stats.warnings)
        if not scan.records:
            self.logger.info("No tasks found in vault")
            return result

        partition = self.store.load_partition(self.config.tag) or Partition(name=self.config.tag)
        timestamp = now_iso()
        changed = False

        for record in scan.records:
            task = match_task(partition, record)
            if task is None:
                try:
                    task = self._create_task(partition, record, timestamp)
                except ValidationError as exc:
                    self._record_issue(result, record, exc)
                    continue
                partition.tasks.append(task)
                result.created += 1
                changed = True
                self._log_action(dry_run, f"create task {task.id} '{task.title}' from {record.source_file}")
                continue

            if task.sync_status == SyncStatus.CONFLICT:
                # Stays flagged until resolved explicitly
                result.conflicts += 1
                result.conflict_ids.append(task.id)
                self.logger.debug("Task %s is awaiting conflict resolution", task.id)
                continue

            fields = self.resolver.detect(task, record)
            if fields:
                task.sync_status = SyncStatus.CONFLICT
                result.conflicts += 1
                result.conflict_ids.append(task.id)
                changed = True
                self._log_action(
                    dry_run,
                    f"flag conflict on task {task.id} '{task.title}' ({', '.join(fields)})",
                    level=logging.WARNING,
                )
                continue

            try:
                merged = self._merge(task, record, partition)
            except ValidationError as exc:
                self._record_issue(result, record, exc, task.id)
                continue
            if merged.to_dict() == task.to_dict() and task.sync_status == SyncStatus.SYNCED:
                result.unchanged += 1
                continue

            self._apply(task, merged, timestamp)
            result.updated += 1
            changed = True
            self._log_action(dry_run, f"update task {task.id} '{task.title}' from {record.source_file}")

        if changed and not dry_run:
            partition.touch(timestamp)
            if not partition.metadata.vault_path:
                partition.metadata.vault_path = vault_path
            self.store.save_partition(partition)
            result.persisted = True

        self.logger.info(
            "from-text: %d created, %d updated, %d unchanged, %d conflicts",
            result.created, result.updated, result.unchanged, result.conflicts,
        )
        return result

    def _record_issue(self, result: SyncResult, record: VaultRecord, exc: Exception, task_id: Optional[int] = None) -> None:
        message = f"{record.source_file}:{record.line_number}: {exc}"
        self.logger.warning(message)
        result.errors.append(FileIssue(message=message, task_id=task_id, path=record.source_file))

    def _create_task(self, partition: Partition, record: VaultRecord, timestamp: str) -> Task:
        task_id = partition.next_id()
        return Task(
            id=task_id,
            title=record.title,
            description=record.description or "",
            details=record.details or "",
            test_strategy=record.test_strategy or "",
            priority=record.priority or Priority.MEDIUM,
            status=self._allowed(self.resolver.incoming_status(record, None)),
            dependencies=self._resolve_dependencies(record.dependency_refs or [], partition, task_id),
            source_file=record.source_file,
            tags=list(record.tags),
            linked_notes=list(record.linked_notes),
            sync_status=SyncStatus.SYNCED,
            last_sync_at=timestamp,
        )

    def _merge(self, task: Task, record: VaultRecord, partition: Partition, force: bool = False) -> Task:
        """
        Task with the record's fields merged in; ``task`` itself is not modified.

        Title, source file, tags and links always follow the text. Status and
        the section fields follow it only when the file changed after the
        last sync (or ``force`` is set).
        """
        changes: Dict[str, Any] = {
            "title": record.title,
            "source_file": record.source_file,
            "tags": list(record.tags),
            "linked_notes": list(record.linked_notes),
        }
        if force or self.resolver.is_newer(task, record):
            changes["status"] = self._allowed(self.resolver.incoming_status(record, task))
            if record.description is not None:
                changes["description"] = record.description
            if record.details is not None:
                changes["details"] = record.details
            if record.test_strategy is not None:
                changes["test_strategy"] = record.test_strategy
            if record.dependency_refs is not None:
                changes["dependencies"] = self._resolve_dependencies(record.dependency_refs, partition, task.id)
        return dataclasses.replace(task, **changes)

    def _apply(self, task: Task, merged: Task, timestamp: str) -> None:
        for field in dataclasses.fields(Task):
            setattr(task, field.name, getattr(merged, field.name))
        task.sync_status = SyncStatus.SYNCED
        task.last_sync_at = timestamp

    def _allowed(self, status):
        allowed = self.config.allowed_statuses
        if status in allowed:
            return status
        raise ValidationError(
            f"Status {status.value!r} is not enabled (allowed: {', '.join(s.value for s in allowed)})",
            reason="status not allowed",
        )

    def _resolve_dependencies(
        self,
        refs: Iterable[DependencyRef],
        partition: Partition,
        task_id: int,
    ) -> List[DependencyRef]:
        """
        Map dependency references onto existing task ids, dropping the rest.

        Only tasks created before ``task_id`` qualify, so dependencies never
        point forward and cannot form a cycle. A dotted subtask reference
        is judged by its parent id.
        """
        resolved: List[DependencyRef] = []
        for ref in refs:
            text = str(ref).strip()
            if text.startswith('[['):
                target = resolve_to_id(text, partition)
            elif find_task(partition, text) is not None:
                target = int(text) if text.isdecimal() else text
            else:
                target = None

            if target is None:
                self.logger.info("Dropping unresolved dependency %s of task %s", text, task_id)
                continue
            if int(str(target).split('.')[0]) >= task_id:
                self.logger.info("Dropping dependency %s of task %s: not an earlier task", target, task_id)
                continue
            if target not in resolved:
                resolved.append(target)
        return resolved

    # ------------------------------------------------------------------
    # Tasks file -> vault
    # ------------------------------------------------------------------
    def to_text(self, dry_run: bool = False) -> SyncResult:
        """
        Project every task with a source file into the vault.

        Tasks are grouped by note so each note is read and written by a
        single worker. Missing notes are rendered fresh; existing notes only
        get their checkboxes updated and are left alone when nothing changes.
        Per-task failures are collected in ``errors``.
        """
        result = SyncResult(direction=SyncDirection.TO_TEXT, dry_run=dry_run)
        vault_path = validate_vault(self.config.vault_path, self.logger)
        partition = self.store.require_partition(self.config.tag)

        eligible = [task for task in partition.tasks if task.source_file.strip()]
        skipped = len(partition.tasks) - len(eligible)
        if skipped:
            self.logger.debug("Skipping %d tasks without a source file", skipped)

        groups: Dict[str, List[Task]] = {}
        for task in eligible:
            try:
                target = self._target_path(vault_path, task.source_file)
            except SyncError as exc:
                self._record_task_error(result, task, str(exc))
                continue
            groups.setdefault(target, []).append(task)

        outcomes = run_bounded(
            lambda target: self._project_file(target, groups[target], dry_run),
            list(groups),
            max_workers=self.config.max_workers,
            timeout=self.config.file_timeout,
        )
        for outcome in outcomes:
            tasks = groups[outcome.item]
            if outcome.ok:
                for action in outcome.value:
                    if action == "created":
                        result.created += 1
                    elif action == "updated":
                        result.updated += 1
                    else:
                        result.unchanged += 1
                continue

            if outcome.timed_out:
                message = f"Timed out writing {tasks[0].source_file}"
            else:
                message = str(outcome.error)
            for task in tasks:
                self._record_task_error(result, task, message)

        result.files_scanned = len(groups)
        self.logger.info(
            "to-text: %d created, %d updated, %d unchanged, %d errors",
            result.created, result.updated, result.unchanged, len(result.errors),
        )
        return result

    def _record_task_error(self, result: SyncResult, task: Task, message: str) -> None:
        self.logger.error("Task %s: %s", task.id, message)
        result.errors.append(FileIssue(message=message, task_id=task.id, path=task.source_file))

    def _target_path(self, vault_path: str, source_file: str) -> str:
        target = os.path.normpath(os.path.join(vault_path, source_file.strip()))
        if os.path.commonpath([vault_path, target]) != vault_path or target == vault_path:
            raise SyncError(f"Source file {source_file!r} is outside the vault")
        return target

    def _project_file(self, target: str, tasks: List[Task], dry_run: bool) -> List[str]:
        """
        Write every task that lives in one note, then save the note once.

        Returns one action per task: ``created``, ``updated`` or ``unchanged``.
        A missing note is rendered from its first task and the others are
        appended to it; all of them count as created.
        """
        source_file = tasks[0].source_file
        ids = ', '.join(str(task.id) for task in tasks)

        if not os.path.exists(target):
            content = render_task(tasks[0])
            for task in tasks[1:]:
                content = update_text(content, task)
            if dry_run:
                for task in tasks:
                    self._log_action(True, f"create {source_file} for task {task.id}")
            else:
                self._write(target, content)
                self.logger.debug("Created %s for tasks %s", source_file, ids)
            return ["created"] * len(tasks)

        with open(target, 'r', encoding='utf-8') as handle:
            existing = handle.read()

        content = existing
        actions = []
        for task in tasks:
            updated = update_text(content, task)
            if updated == content:
                actions.append("unchanged")
                continue
            content = updated
            actions.append("updated")
            if dry_run:
                self._log_action(True, f"update {source_file} for task {task.id}")

        if content != existing and not dry_run:
            self._write(target, content)
            self.logger.debug("Updated %s for tasks %s", source_file, ids)
        return actions

    def _write(self, target: str, content: str) -> None:
        if not atomic_write(target, content, lock=False):
            raise SyncError(f"Could not write {target}")

    # ------------------------------------------------------------------
    # Draft import
    # ------------------------------------------------------------------
    def import_drafts(
        self,
        drafts: Union[List[Dict[str, Any]], Dict[str, Any]],
        append: bool = False,
        force: bool = False,
        dry_run: bool = False,
        source_files: Optional[List[str]] = None,
    ) -> DraftImportResult:
        """
        Import draft tasks produced by a task-generation collaborator.

        Drafts carry provisional ids. They are renumbered sequentially after
        the highest existing id; a dependency survives only when it points at
        an earlier draft in the batch or at a task already in the tag
        context. Imported tasks start with ``syncStatus`` pending.

        Raises:
            ValidationError: malformed drafts, or a non-empty tag context
                without ``append`` or ``force``
        """
        if isinstance(drafts, dict):
            drafts = drafts.get("tasks") or []
        if not isinstance(drafts, list):
            raise ValidationError("Drafts must be a list of task objects", reason="invalid drafts")

        tag = self.config.tag
        partition = self.store.load_partition(tag) or Partition(name=tag)
        if partition.tasks and not (append or force):
            raise ValidationError(
                f"Tag '{tag}' already contains {len(partition.tasks)} tasks. "
                "Use force to overwrite or append to add to existing tasks.",
                reason="tag not empty",
            )
        if force and not append:
            partition.tasks = []

        result = DraftImportResult(tag=tag, dry_run=dry_run)
        existing_ids: Set[int] = set(partition.task_ids())
        provisional = [
            str(draft.get("id")).strip() if isinstance(draft, dict) and draft.get("id") is not None else None
            for draft in drafts
        ]
        id_map: Dict[str, int] = {}
        next_id = partition.next_id()
        new_tasks: List[Task] = []

        for index, draft in enumerate(drafts):
            if not isinstance(draft, dict):
                raise ValidationError(f"Draft {index + 1} is not an object", reason="invalid drafts")
            new_id = next_id + index
            later = {p for p in provisional[index + 1:] if p is not None}

            dependencies: List[DependencyRef] = []
            for dep in draft.get("dependencies") or []:
                key = str(dep).strip()
                if key == provisional[index] or (key in later and key not in id_map):
                    target = None
                elif key in id_map:
                    target = id_map[key]
                elif key.startswith('[['):
                    target = resolve_to_id(key, Partition(name=tag, tasks=partition.tasks + new_tasks))
                elif key.isdecimal() and int(key) in existing_ids:
                    target = int(key)
                else:
                    target = None

                if target is None or target == new_id:
                    result.dropped_dependencies.append((new_id, dep))
                    self.logger.info("Dropping dependency %r of draft %r", dep, provisional[index])
                elif target not in dependencies:
                    dependencies.append(target)

            payload = dict(draft)
            payload.update({
                "id": new_id,
                "dependencies": dependencies,
                "subtasks": draft.get("subtasks") or [],
                "syncStatus": SyncStatus.PENDING.value,
            })
            payload.pop("lastSyncAt", None)
            task = Task.from_dict(payload, self.config.allowed_statuses)
            new_tasks.append(task)
            if provisional[index] is not None:
                id_map.setdefault(provisional[index], new_id)
            result.imported_ids.append(new_id)

        partition.tasks.extend(new_tasks)
        result.total_tasks = len(partition.tasks)

        timestamp = now_iso()
        partition.touch(timestamp)
        metadata = partition.metadata
        metadata.description = f"Tasks for {tag} context (extracted from Obsidian notes)"
        if self.config.vault_path:
            metadata.vault_path = self.config.vault_path
        metadata.sync_settings = self.config.sync_settings
        if source_files is not None:
            metadata.extra["sourceFiles"] = list(source_files)
            metadata.extra["totalSourceFiles"] = len(source_files)
        metadata.extra["extractionDate"] = timestamp

        if dry_run:
            self._log_action(True, f"import {result.imported} tasks into tag '{tag}'")
        else:
            self.store.save_partition(partition)
            self.logger.info("Imported %d tasks into tag '%s'", result.imported, tag)
        return result

    # ------------------------------------------------------------------
    # Conflict resolution
    # ------------------------------------------------------------------
    def resolve_conflict(self, task_id: int, keep: str = "text") -> Task:
        """
        Settle a flagged conflict by keeping one side.

        ``keep="text"`` merges the task's note into the tasks file;
        ``keep="store"`` re-projects the task into its note. Either way the
        task ends up synced.
        """
        keep = (keep or "").strip().lower()
        if keep not in ("text", "store"):
            raise ValidationError(f"Invalid side {keep!r} (expected text or store)", reason="invalid side")

        vault_path = validate_vault(self.config.vault_path, self.logger)
        partition = self.store.require_partition(self.config.tag)
        task = partition.find_task(int(task_id))
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found in tag '{self.config.tag}'")
        if task.sync_status != SyncStatus.CONFLICT:
            raise ValidationError(f"Task {task_id} is not in conflict", reason="not in conflict")
        if not task.source_file.strip():
            raise ValidationError(f"Task {task_id} has no source file", reason="no source file")

        if keep == "text":
            record = self._read_record(vault_path, task)
            self._apply(task, self._merge(task, record, partition, force=True), now_iso())
        else:
            self._project_file(self._target_path(vault_path, task.source_file), [task], dry_run=False)
            task.sync_status = SyncStatus.SYNCED
            task.last_sync_at = now_iso()

        partition.touch(task.last_sync_at)
        self.store.save_partition(partition)
        self.logger.info("Resolved conflict on task %s keeping %s", task.id, keep)
        return task

    def _read_record(self, vault_path: str, task: Task) -> VaultRecord:
        target = self._target_path(vault_path, task.source_file)
        try:
            with open(target, 'r', encoding='utf-8') as handle:
                content = handle.read()
            modified = from_mtime(os.stat(target).st_mtime)
        except (OSError, UnicodeDecodeError) as exc:
            raise SyncError(f"Could not read {task.source_file}: {exc}") from exc

        records = parse_document(content, task.source_file, modified)
        for record in records:
            if record.title == task.title:
                return record
        for record in records:
            if record.task_id == task.id:
                return record
        raise TaskNotFoundError(f"No checkbox for task {task.id} in {task.source_file}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _log_action(self, dry_run: bool, action: str, level: int = logging.INFO) -> None:
        if dry_run:
            self.logger.log(level, "[DRY RUN] Would %s", action)
        else:
            self.logger.log(level if level > logging.INFO else logging.DEBUG, "%s%s", action[0].upper(), action[1:])
