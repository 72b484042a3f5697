"""
Access to the canonical tasks file.

The file is one JSON document keyed by tag context::

    {"master": {"tasks": [...], "metadata": {...}}, "feature-x": {...}}

Each write replaces exactly one tag context; the others are carried through
as untouched JSON values.
"""

import copy
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from obs_taskmaster.core.config import DEFAULT_TAG
from obs_taskmaster.core.exceptions import PartitionNotFoundError, StoreError
from obs_taskmaster.core.models import Partition, TaskStatus
from obs_taskmaster.utils.io import UnreadableJSONError, safe_read_json, update_json


def _is_legacy(document: Dict[str, Any]) -> bool:
    """Old single-list layout: ``{"tasks": [...], "metadata": {...}}``."""
    return isinstance(document.get("tasks"), list)


def _upgrade_legacy(document: Dict[str, Any]) -> Dict[str, Any]:
    upgraded = {key: value for key, value in document.items() if key not in ("tasks", "metadata")}
    upgraded[DEFAULT_TAG] = {
        "tasks": document.get("tasks") or [],
        "metadata": document.get("metadata") or {},
    }
    return upgraded


class TaskStore:
    """Reads and writes tag contexts in a tasks.json file."""

    def __init__(
        self,
        tasks_path: str,
        allowed_statuses: Optional[Iterable[TaskStatus]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.tasks_path = os.path.abspath(os.path.expanduser(tasks_path))
        self.allowed_statuses = list(allowed_statuses) if allowed_statuses else None
        self.logger = logger or logging.getLogger(__name__)

    def exists(self) -> bool:
        return os.path.exists(self.tasks_path)

    def read_document(self) -> Dict[str, Any]:
        """
        Read the whole tasks file.

        Returns:
            The document keyed by tag, or an empty dict when the file is
            missing or unreadable
        """
        if not self.exists():
            self.logger.debug("Tasks file %s does not exist yet", self.tasks_path)
            return {}

        document = safe_read_json(self.tasks_path, default={})
        if not isinstance(document, dict):
            self.logger.warning("Ignoring tasks file %s: top level is not an object", self.tasks_path)
            return {}
        if _is_legacy(document):
            return _upgrade_legacy(document)
        return document

    def list_partitions(self) -> List[str]:
        return [name for name, value in self.read_document().items() if isinstance(value, dict)]

    def load_partition(self, tag: str) -> Optional[Partition]:
        """Load one tag context, or None when it is absent."""
        data = self.read_document().get(tag)
        if not isinstance(data, dict):
            return None
        return Partition.from_dict(tag, data, self.allowed_statuses)

    def require_partition(self, tag: str) -> Partition:
        partition = self.load_partition(tag)
        if partition is None:
            raise PartitionNotFoundError(tag, self.tasks_path)
        return partition

    def save_partition(self, partition: Partition) -> None:
        """
        Persist one tag context atomically.

        The current file is re-read under an exclusive lock so concurrent
        writers to other tags are not lost.

        Raises:
            StoreError: the existing file is unreadable or the write failed
        """
        payload = partition.to_dict()

        def _merge(current: Dict[str, Any]) -> Dict[str, Any]:
            document = _upgrade_legacy(current) if _is_legacy(current) else current
            document[partition.name] = copy.deepcopy(payload)
            return document

        try:
            update_json(self.tasks_path, _merge)
        except UnreadableJSONError as exc:
            raise StoreError(str(exc)) from exc
        except (OSError, TimeoutError) as exc:
            raise StoreError(f"Could not write tasks file {self.tasks_path}: {exc}") from exc

        self.logger.debug(
            "Saved %d tasks to tag '%s' in %s", len(partition.tasks), partition.name, self.tasks_path,
        )
