"""Read-only drift report between the tasks file and the vault."""

import logging
from typing import Dict, List, Optional, Tuple

from ..core.config import SyncConfig
from ..core.exceptions import ObsTaskmasterError
from ..core.models import ConflictInfo, Partition, StatusReport, SyncStatus, VaultRecord
from ..obsidian.scanner import VaultScanner
from ..store.tasks_file import TaskStore
from ..utils.date import parse_timestamp
from .resolver import ConflictResolver, match_task


class StatusReporter:
    """Compares a tag context with a fresh vault scan without writing anything."""

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

    def report(self) -> StatusReport:
        report = StatusReport(
            vault_path=self.config.vault_path,
            tasks_path=self.config.tasks_path,
            tag=self.config.tag,
        )
        partition = self._load_partition(report)
        records = self._scan_vault(report)

        report.tasks_in_store = len(partition.tasks)
        report.tasks_in_vault = len(records)

        matched: Dict[int, VaultRecord] = {}
        seen_vault_keys = set()
        for record in records:
            task = match_task(partition, record)
            if task is None:
                if record.natural_key not in seen_vault_keys:
                    seen_vault_keys.add(record.natural_key)
                    report.only_in_vault.append(record.natural_key)
                continue
            matched.setdefault(task.id, record)

        for task in partition.tasks:
            record = matched.get(task.id)
            if record is None:
                report.only_in_store.append(task.natural_key)
            fields = self.resolver.detect(task, record) if record is not None else []
            if task.sync_status == SyncStatus.CONFLICT and not fields:
                fields = ["flagged"]
            if fields:
                report.conflicts.append(ConflictInfo(
                    task_id=task.id,
                    title=task.title,
                    source_file=task.source_file,
                    fields=fields,
                ))

        report.last_sync = self._last_sync(partition)
        return report

    def _load_partition(self, report: StatusReport) -> Partition:
        try:
            partition = self.store.load_partition(self.config.tag)
        except ObsTaskmasterError as exc:
            self._warn(report, f"Could not read tasks for tag '{self.config.tag}': {exc}")
            return Partition(name=self.config.tag)
        if partition is None:
            self._warn(report, f"No tasks data found for tag '{self.config.tag}'")
            return Partition(name=self.config.tag)
        return partition

    def _scan_vault(self, report: StatusReport) -> List[VaultRecord]:
        try:
            scan = self.scanner.scan(
                self.config.vault_path,
                exclude_patterns=self.config.sync_exclude_patterns,
            )
        except ObsTaskmasterError as exc:
            self._warn(report, f"Could not scan vault: {exc}")
            return []
        report.warnings.extend(scan.stats.warnings)
        return scan.records

    def _last_sync(self, partition: Partition) -> Optional[str]:
        stamps: List[Tuple[object, str]] = []
        for task in partition.tasks:
            parsed = parse_timestamp(task.last_sync_at)
            if parsed is not None:
                stamps.append((parsed, task.last_sync_at))
        if stamps:
            return max(stamps, key=lambda item: item[0])[1]
        return self.config.initialized

    def _warn(self, report: StatusReport, message: str) -> None:
        self.logger.warning(message)
        report.warnings.append(message)
