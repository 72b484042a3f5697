"""
Core module for obs-taskmaster - contains domain models, configuration, and exceptions.
"""

from .models import (
    Task,
    Partition,
    PartitionMetadata,
    VaultRecord,
    VaultScan,
    ScanStats,
    SyncResult,
    BidirectionalResult,
    StatusReport,
    TaskStatus,
    Priority,
    SyncStatus,
    SyncDirection,
)

from .config import SyncConfig

from .exceptions import (
    ObsTaskmasterError,
    ConfigurationError,
    ValidationError,
    InvalidVaultError,
    NotFoundError,
    VaultNotFoundError,
    EmptyVaultError,
    PartitionNotFoundError,
    TaskNotFoundError,
    StoreError,
    SyncError,
)

__all__ = [
    # Models
    'Task',
    'Partition',
    'PartitionMetadata',
    'VaultRecord',
    'VaultScan',
    'ScanStats',
    'SyncResult',
    'BidirectionalResult',
    'StatusReport',
    'TaskStatus',
    'Priority',
    'SyncStatus',
    'SyncDirection',
    'SyncConfig',
    # Exceptions
    'ObsTaskmasterError',
    'ConfigurationError',
    'ValidationError',
    'InvalidVaultError',
    'NotFoundError',
    'VaultNotFoundError',
    'EmptyVaultError',
    'PartitionNotFoundError',
    'TaskNotFoundError',
    'StoreError',
    'SyncError',
]
