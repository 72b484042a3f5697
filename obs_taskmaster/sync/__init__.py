"""
Sync module for obs-taskmaster - handles reconciliation between the tasks file and the vault.
"""

from .engine import SyncEngine
from .resolver import ConflictResolver, match_task
from .status import StatusReporter

__all__ = ['SyncEngine', 'ConflictResolver', 'match_task', 'StatusReporter']
