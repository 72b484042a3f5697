"""
Command implementations for obs-taskmaster.
"""

from .init import InitCommand
from .sync import SyncCommand
from .status import StatusCommand
from .resolve import ResolveCommand, ResolveConflictCommand
from .import_drafts import ImportDraftsCommand
from .scan import ScanCommand

__all__ = [
    'InitCommand',
    'SyncCommand',
    'StatusCommand',
    'ResolveCommand',
    'ResolveConflictCommand',
    'ImportDraftsCommand',
    'ScanCommand',
]
