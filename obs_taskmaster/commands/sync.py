"""Sync command - reconcile the tasks file with the vault."""

import logging
from typing import Union

from ..core.config import SyncConfig
from ..core.exceptions import ObsTaskmasterError
from ..core.models import BidirectionalResult, SyncDirection, SyncResult
from ..sync.engine import SyncEngine


class SyncCommand:
    """Command for synchronizing tasks between the tasks file and the vault."""

    def __init__(self, config: SyncConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self, direction: str = "bidirectional", dry_run: bool = False) -> bool:
        """Run the sync command."""
        try:
            direction = SyncDirection.parse(direction)
            engine = SyncEngine(self.config, logger=self.logger)
            print(f"\n🔄 Syncing {direction.value}: {self.config.vault_path}")
            print(f"   Tasks file: {self.config.tasks_path} (tag '{self.config.tag}')")
            result = engine.sync(direction, dry_run=dry_run)
        except ObsTaskmasterError as e:
            print(f"❌ Sync failed: {e}")
            return False

        self._print_result(result)
        if dry_run:
            print("\n💡 This was a dry run. Re-run without --dry-run to apply changes.")
        return result.success

    def _print_result(self, result: Union[SyncResult, BidirectionalResult]) -> None:
        if isinstance(result, BidirectionalResult):
            self._print_pass("Vault → tasks file", result.from_text)
            self._print_pass("Tasks file → vault", result.to_text)
        elif result.direction == SyncDirection.FROM_TEXT:
            self._print_pass("Vault → tasks file", result)
        else:
            self._print_pass("Tasks file → vault", result)

    def _print_pass(self, title: str, result: SyncResult) -> None:
        verb = "to make" if result.dry_run else "made"
        print(f"\n{title} (changes {verb}):")
        if result.direction == SyncDirection.FROM_TEXT:
            print(f"  Files scanned: {result.files_scanned}")
            print(f"  Tasks created: {result.created}")
            print(f"  Tasks updated: {result.updated}")
        else:
            print(f"  Files created: {result.created}")
            print(f"  Files updated: {result.updated}")
        print(f"  Unchanged: {result.unchanged}")
        if result.conflicts:
            ids = ", ".join(str(task_id) for task_id in result.conflict_ids)
            print(f"  ⚠️  Conflicts: {result.conflicts} (tasks {ids})")
            print("     Resolve with: obs-taskmaster resolve-conflict ID --keep text|store")
        for warning in result.warnings:
            print(f"  ⚠️  {warning}")
        for issue in result.errors:
            label = f"task {issue.task_id}" if issue.task_id is not None else issue.path
            print(f"  ❌ {label}: {issue.message}")
        if not result.errors:
            print("  ✅ Done")
