"""Status command - show drift between the tasks file and the vault."""

import logging

from ..core.config import SyncConfig
from ..sync.status import StatusReporter


class StatusCommand:
    """Prints a read-only sync status report."""

    def __init__(self, config: SyncConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self) -> bool:
        report = StatusReporter(self.config, logger=self.logger).report()

        print("\n📊 Sync Status")
        print(f"  Vault: {report.vault_path}")
        print(f"  Tasks file: {report.tasks_path}")
        print(f"  Tag: {report.tag}")
        print(f"  Tasks in tasks file: {report.tasks_in_store}")
        print(f"  Tasks in vault: {report.tasks_in_vault}")
        print(f"  Last sync: {report.last_sync or 'never'}")

        if report.only_in_store:
            print(f"\n📤 Only in tasks file ({len(report.only_in_store)}):")
            for source_file, title in report.only_in_store:
                print(f"  • {title} ({source_file or 'no source file'})")
        if report.only_in_vault:
            print(f"\n📥 Only in vault ({len(report.only_in_vault)}):")
            for source_file, title in report.only_in_vault:
                print(f"  • {title} ({source_file})")
        if report.conflicts:
            print(f"\n⚠️  Conflicts ({len(report.conflicts)}):")
            for conflict in report.conflicts:
                print(f"  • Task {conflict.task_id} {conflict.title}: {', '.join(conflict.fields)}")
        for warning in report.warnings:
            print(f"\n⚠️  {warning}")

        if report.in_sync:
            print("\n✅ Everything is in sync.")
        else:
            print("\n💡 Run 'obs-taskmaster sync' to reconcile.")
        return True
