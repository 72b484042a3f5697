"""Conflict detection between canonical tasks and vault records."""

import logging
from datetime import datetime
from typing import List, Optional, Union

from ..core.models import Partition, Task, TaskStatus, VaultRecord
from ..utils.date import parse_timestamp
from ..utils.text import text_differs


class ConflictResolver:
    """Classifies how a re-scanned vault record relates to its canonical task.

    Conflicts are only ever reported, never resolved automatically.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def incoming_status(self, record: VaultRecord, task: Optional[Task] = None) -> TaskStatus:
        """
        Status the record implies for its canonical task.

        A ticked box means done and ``- [-]`` means cancelled. An open box
        keeps the canonical status unless that status was done or cancelled,
        in which case the task has been reopened. New tasks take the front
        matter status when present.
        """
        if record.completed:
            return TaskStatus.DONE
        if record.cancelled:
            return TaskStatus.CANCELLED
        if task is None:
            hint = record.status_hint
            if hint is not None and hint not in (TaskStatus.DONE, TaskStatus.CANCELLED):
                return hint
            return TaskStatus.PENDING
        if task.status in (TaskStatus.DONE, TaskStatus.CANCELLED):
            return TaskStatus.PENDING
        return task.status

    def is_newer(self, task: Task, record: VaultRecord) -> bool:
        """True when the record was modified after the task's last sync, or no sync happened yet."""
        synced_at = self._parse_time(task.last_sync_at)
        if synced_at is None:
            return True
        if record.modified_at is None:
            return False
        return record.modified_at > synced_at

    def detect(self, task: Task, record: VaultRecord) -> List[str]:
        """
        Fields in conflict between a canonical task and a vault record.

        A conflict needs a previous ``lastSyncAt`` on the task, modification
        evidence on the record newer than it, and a difference in title,
        status or description. Description is only compared when the record
        carries one.

        Returns:
            Names of the differing fields; empty when there is no conflict
        """
        synced_at = self._parse_time(task.last_sync_at)
        if synced_at is None or record.modified_at is None:
            return []
        if record.modified_at <= synced_at:
            return []

        fields = []
        if text_differs(task.title, record.title):
            fields.append("title")
        if self.incoming_status(record, task) != task.status:
            fields.append("status")
        if record.description is not None and text_differs(task.description, record.description):
            fields.append("description")

        if fields:
            self.logger.debug(
                "Conflict on task %s (%s): %s changed since %s",
                task.id, record.source_file, ", ".join(fields), task.last_sync_at,
            )
        return fields

    def _parse_time(self, time_value: Optional[Union[str, datetime]]) -> Optional[datetime]:
        """Parse timestamp from ISO string or datetime object."""
        if not time_value:
            return None
        return parse_timestamp(time_value)


def match_task(partition: Partition, record: VaultRecord) -> Optional[Task]:
    """Find the canonical task a vault record belongs to.

    Matches on ``(source_file, title)``; a task note whose heading was
    retitled is still found through its front matter ``task_id``.
    """
    task = partition.find_by_natural_key(record.source_file, record.title)
    if task is not None:
        return task
    if record.task_id is not None:
        task = partition.find_task(record.task_id)
        if task is not None and task.source_file == record.source_file:
            return task
    return None
