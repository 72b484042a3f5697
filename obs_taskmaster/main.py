#!/usr/bin/env python3
"""
obs-taskmaster - Keep a TaskMaster tasks file and an Obsidian vault in sync.
"""

import argparse
import logging
import sys

from obs_taskmaster.core import SyncConfig, ObsTaskmasterError
from obs_taskmaster.core.config import DEFAULT_TASKS_PATH
from obs_taskmaster.commands import (
    InitCommand,
    SyncCommand,
    StatusCommand,
    ResolveCommand,
    ResolveConflictCommand,
    ImportDraftsCommand,
    ScanCommand,
)


def _add_location_args(parser, vault_required=True):
    parser.add_argument(
        '--vault',
        required=vault_required,
        help='Path to the Obsidian vault'
    )
    parser.add_argument(
        '--file', '-f',
        help=f'Path to the tasks file (default: {DEFAULT_TASKS_PATH})'
    )
    parser.add_argument(
        '--tag',
        help='Tag context to sync (default: from vault config, else master)'
    )


def build_config(args) -> SyncConfig:
    """Merge the vault's sync config with command line overrides."""
    vault = getattr(args, 'vault', None)
    tasks_path = getattr(args, 'file', None)
    tag = getattr(args, 'tag', None)
    if vault:
        return SyncConfig.load_from_vault(vault, tasks_path=tasks_path, tag=tag)
    return SyncConfig(tasks_path=tasks_path or "", tag=tag or "")


def main(argv=None):
    """Main entry point for obs-taskmaster."""
    parser = argparse.ArgumentParser(
        description="Sync a TaskMaster tasks file with an Obsidian vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  obs-taskmaster init --vault ~/Notes                      # Prepare a vault
  obs-taskmaster sync --vault ~/Notes --dry-run            # Preview a bidirectional sync
  obs-taskmaster sync --vault ~/Notes --direction to-text  # Write task notes
  obs-taskmaster status --vault ~/Notes                    # Show drift
  obs-taskmaster resolve "[[Auth System]]"                 # Title -> task id
        """
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Init command
    init_parser = subparsers.add_parser('init', help='Prepare a vault for syncing')
    _add_location_args(init_parser)

    # Sync command
    sync_parser = subparsers.add_parser('sync', help='Sync tasks')
    _add_location_args(sync_parser)
    sync_parser.add_argument(
        '--direction',
        choices=['to-text', 'from-text', 'bidirectional'],
        default='bidirectional',
        help='Sync direction (default: bidirectional)'
    )
    sync_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be done without making changes'
    )

    # Status command
    status_parser = subparsers.add_parser('status', help='Show sync status')
    _add_location_args(status_parser)

    # Resolve command
    resolve_parser = subparsers.add_parser('resolve', help='Map a [[Title]] token to a task id or back')
    resolve_parser.add_argument('ref', help='A [[Title]] token or a task id such as 7 or 7.2')
    _add_location_args(resolve_parser, vault_required=False)

    # Resolve-conflict command
    conflict_parser = subparsers.add_parser('resolve-conflict', help='Settle a flagged conflict')
    conflict_parser.add_argument('task_id', type=int, help='Id of the conflicted task')
    conflict_parser.add_argument(
        '--keep',
        choices=['text', 'store'],
        required=True,
        help='Keep the vault note (text) or the tasks file entry (store)'
    )
    _add_location_args(conflict_parser)

    # Import-drafts command
    import_parser = subparsers.add_parser('import-drafts', help='Import generated draft tasks')
    import_parser.add_argument('drafts', help='JSON file with a list of draft tasks')
    _add_location_args(import_parser, vault_required=False)
    mode = import_parser.add_mutually_exclusive_group()
    mode.add_argument(
        '--append',
        action='store_true',
        help='Add to the existing tasks of the tag context'
    )
    mode.add_argument(
        '--force',
        action='store_true',
        help='Replace the existing tasks of the tag context'
    )
    import_parser.add_argument(
        '--no-sync',
        action='store_true',
        help='Do not write task notes into the vault afterwards'
    )
    import_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be imported without writing'
    )

    # Scan command
    scan_parser = subparsers.add_parser('scan', help='Summarize vault notes and tasks')
    _add_location_args(scan_parser)
    scan_parser.add_argument(
        '--digest',
        action='store_true',
        help='Print the consolidated vault text instead of statistics'
    )

    args = parser.parse_args(argv)

    # Configure logging if verbose mode is enabled
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Show help if no command specified
    if not args.command:
        parser.print_help()
        return 1

    # Execute command
    try:
        config = build_config(args)
        if args.verbose:
            print(f"Using tasks file: {config.tasks_path} (tag '{config.tag}')")

        if args.command == 'init':
            success = InitCommand(config, verbose=args.verbose).run()

        elif args.command == 'sync':
            cmd = SyncCommand(config, verbose=args.verbose)
            success = cmd.run(direction=args.direction, dry_run=args.dry_run)

        elif args.command == 'status':
            success = StatusCommand(config, verbose=args.verbose).run()

        elif args.command == 'resolve':
            success = ResolveCommand(config, verbose=args.verbose).run(args.ref)

        elif args.command == 'resolve-conflict':
            cmd = ResolveConflictCommand(config, verbose=args.verbose)
            success = cmd.run(args.task_id, keep=args.keep)

        elif args.command == 'import-drafts':
            cmd = ImportDraftsCommand(config, verbose=args.verbose)
            success = cmd.run(
                args.drafts,
                append=args.append,
                force=args.force,
                no_sync=args.no_sync,
                dry_run=args.dry_run,
            )

        elif args.command == 'scan':
            success = ScanCommand(config, verbose=args.verbose).run(digest=args.digest)

        else:
            print(f"Unknown command '{args.command}'.")
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 130
    except ObsTaskmasterError as e:
        print(f"Error: {e}")
        return 1
    except Exception as e:
        print(f"Error: {e}")
        if not args.verbose:
            print("Re-run with --verbose for more detail.")
        else:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
