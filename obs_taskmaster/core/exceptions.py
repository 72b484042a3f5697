"""
Exception classes for obs-taskmaster.
"""


class ObsTaskmasterError(Exception):
    """Base exception for all obs-taskmaster errors."""
    pass


class ConfigurationError(ObsTaskmasterError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(ObsTaskmasterError):
    """Raised when input is malformed; nothing has been mutated yet."""

    def __init__(self, message: str, reason: str = ""):
        super().__init__(message)
        self.reason = reason or message


class InvalidVaultError(ValidationError):
    """Raised when a vault path is empty or not a directory."""
    pass


class NotFoundError(ObsTaskmasterError):
    """Base exception for missing targets."""
    pass


class VaultNotFoundError(NotFoundError):
    """Raised when an Obsidian vault cannot be found."""
    pass


class EmptyVaultError(NotFoundError):
    """Raised when a vault contains no matching markdown files."""
    pass


class PartitionNotFoundError(NotFoundError):
    """Raised when a tag context is missing from the tasks file."""

    def __init__(self, tag: str, tasks_path: str = ""):
        location = f" in {tasks_path}" if tasks_path else ""
        super().__init__(f"No tasks data found for tag '{tag}'{location}")
        self.tag = tag


class TaskNotFoundError(NotFoundError):
    """Raised when a task cannot be found."""
    pass


class StoreError(ObsTaskmasterError):
    """Raised when the tasks file cannot be read or written at all."""
    pass


class SyncError(ObsTaskmasterError):
    """Raised when sync operations fail."""
    pass
