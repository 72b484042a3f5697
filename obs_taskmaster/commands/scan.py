"""Scan command - summarize a vault's notes and tasks."""

import logging

from ..core.config import SyncConfig
from ..core.exceptions import ObsTaskmasterError
from ..obsidian.scanner import VaultScanner


class ScanCommand:
    """Scans a vault and prints statistics or the consolidated digest."""

    def __init__(self, config: SyncConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self, digest: bool = False) -> bool:
        try:
            scan = VaultScanner(self.config, logger=self.logger).scan()
        except ObsTaskmasterError as e:
            print(f"❌ Scan failed: {e}")
            return False

        if digest:
            print(scan.render_digest())
            return True

        stats = scan.stats
        print(f"\n📁 Vault: {scan.root}")
        print(f"  Files scanned: {stats.files_scanned} ({round(stats.bytes_scanned / 1024)}KB)")
        print(f"  Files skipped: {stats.skipped_files}")
        print(f"  Tasks: {stats.total_tasks} ({stats.completed_tasks} completed, {stats.incomplete_tasks} open)")
        print(f"  Tags: {', '.join('#' + tag for tag in stats.tags) or 'none'}")
        print(f"  Links: {len(stats.links)}")
        for warning in stats.warnings:
            print(f"  ⚠️  {warning}")
        return True
