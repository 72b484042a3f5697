"""Import-drafts command - load generated draft tasks into a tag context."""

import json
import logging
from typing import List, Optional

from ..core.config import SyncConfig
from ..core.exceptions import ObsTaskmasterError
from ..obsidian.scanner import VaultScanner
from ..sync.engine import SyncEngine


class ImportDraftsCommand:
    """Imports draft tasks from a JSON file and optionally projects them into the vault."""

    def __init__(self, config: SyncConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(
        self,
        drafts_path: str,
        append: bool = False,
        force: bool = False,
        no_sync: bool = False,
        dry_run: bool = False,
    ) -> bool:
        try:
            with open(drafts_path, 'r', encoding='utf-8') as handle:
                drafts = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            print(f"❌ Could not read drafts from {drafts_path}: {e}")
            return False

        try:
            engine = SyncEngine(self.config, logger=self.logger)
            result = engine.import_drafts(
                drafts,
                append=append,
                force=force,
                dry_run=dry_run,
                source_files=self._source_files(),
            )
        except ObsTaskmasterError as e:
            print(f"❌ Import failed: {e}")
            return False

        verb = "Would import" if dry_run else "Imported"
        print(f"\n📥 {verb} {result.imported} tasks into tag '{result.tag}' ({result.total_tasks} total)")
        if result.imported_ids:
            print(f"  Task ids: {result.imported_ids[0]}-{result.imported_ids[-1]}")
        for task_id, dep in result.dropped_dependencies:
            print(f"  ⚠️  Task {task_id}: dropped dependency {dep!r}")

        if dry_run or no_sync or not self.config.vault_path:
            return True

        try:
            sync_result = engine.to_text()
        except ObsTaskmasterError as e:
            print(f"❌ Could not write task notes: {e}")
            return False
        print(f"  📝 Task notes: {sync_result.created} created, {sync_result.updated} updated")
        for issue in sync_result.errors:
            print(f"  ❌ task {issue.task_id}: {issue.message}")
        return sync_result.success

    def _source_files(self) -> Optional[List[str]]:
        if not self.config.vault_path:
            return None
        try:
            scan = VaultScanner(self.config, logger=self.logger).scan()
        except ObsTaskmasterError as e:
            self.logger.warning("Could not list vault notes: %s", e)
            return None
        return [summary.path for summary in scan.files]
