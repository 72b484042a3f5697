"""Resolve commands - translate task references and settle conflicts."""

import logging

from ..core.config import SyncConfig
from ..core.exceptions import ObsTaskmasterError
from ..obsidian.links import format_id, require_valid_link, resolve_to_id, resolve_to_token
from ..store.tasks_file import TaskStore
from ..sync.engine import SyncEngine


class ResolveCommand:
    """Maps a ``[[Title]]`` token to its task id, or a task id to its token."""

    def __init__(self, config: SyncConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self, ref: str) -> bool:
        try:
            store = TaskStore(self.config.tasks_path, self.config.allowed_statuses, logger=self.logger)
            partition = store.require_partition(self.config.tag)
            if ref.strip().startswith('[['):
                token = require_valid_link(ref.strip())
                task_id = resolve_to_id(token, partition)
                if task_id is None:
                    print(f"❌ {token}: not found in tag '{self.config.tag}'")
                    return False
                print(format_id(task_id))
                return True

            task_ref = format_id(ref)
            token = resolve_to_token(task_ref, partition)
            if token is None:
                print(f"❌ Task {task_ref}: not found in tag '{self.config.tag}'")
                return False
            print(token)
            return True
        except ObsTaskmasterError as e:
            print(f"❌ {e}")
            return False


class ResolveConflictCommand:
    """Settles a flagged conflict by keeping the vault or the tasks file version."""

    def __init__(self, config: SyncConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self, task_id: int, keep: str = "text") -> bool:
        try:
            task = SyncEngine(self.config, logger=self.logger).resolve_conflict(task_id, keep=keep)
        except ObsTaskmasterError as e:
            print(f"❌ Could not resolve conflict: {e}")
            return False

        side = "vault note" if keep == "text" else "tasks file"
        print(f"✅ Task {task.id} '{task.title}' resolved using the {side} ({task.status.value})")
        return True
