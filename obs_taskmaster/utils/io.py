"""
Safe I/O operations with atomic writes and cooperative file locking.
"""

import contextlib
import errno
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

try:  # fcntl is only available on POSIX platforms
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - Windows fallback
    fcntl = None  # type: ignore


DEFAULT_LOCK_TIMEOUT = 8.0  # seconds
LOCK_SLEEP_INTERVAL = 0.05  # seconds

logger = logging.getLogger(__name__)


class UnreadableJSONError(ValueError):
    """Raised when an existing JSON file cannot be parsed during an update."""


def _lock_file_path(path: Path) -> Path:
    """Return the companion lock file path for the target file."""
    lock_name = f"{path.name}.lock"
    return path.parent / lock_name


@contextlib.contextmanager
def _file_lock(target_path: Path, exclusive: bool, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
    """Acquire a cooperative file lock around the target path.

    Uses POSIX advisory locking via fcntl when available; otherwise acts as a no-op.
    """
    if fcntl is None:
        yield
        return

    lock_path = _lock_file_path(target_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    lock_type = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
    deadline = time.monotonic() + timeout if timeout is not None else None

    with open(lock_path, "a") as lock_file:
        while True:
            try:
                flags = lock_type | fcntl.LOCK_NB if deadline is not None else lock_type
                fcntl.flock(lock_file.fileno(), flags)
                break
            except OSError as exc:  # pragma: no cover - depends on timing
                if exc.errno not in (errno.EACCES, errno.EAGAIN):
                    raise
                if deadline is not None and time.monotonic() >= deadline:
                    raise TimeoutError(f"Timed out waiting for lock on {target_path}") from exc
                time.sleep(LOCK_SLEEP_INTERVAL)

        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


def _replace_atomically(path_obj: Path, write: Callable[[Any], None], suffix: str = "") -> None:
    """Write through a temp file in the destination directory, then os.replace it."""
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            dir=str(path_obj.parent),
            prefix='.tmp_',
            suffix=suffix,
            delete=False,
            encoding='utf-8'
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            write(tmp_file)

        os.replace(str(tmp_path), str(path_obj))
    finally:
        if tmp_path and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass


def safe_read_json(file_path: str, default: Optional[Dict] = None, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> Dict[str, Any]:
    """
    Safely read JSON from file with error handling.

    Args:
        file_path: Path to JSON file
        default: Default value to return if file doesn't exist or is invalid

    Returns:
        Parsed JSON data or default value
    """
    if default is None:
        default = {}

    file_path = os.path.expanduser(file_path)
    path_obj = Path(file_path)

    if not path_obj.exists():
        return default

    try:
        with _file_lock(path_obj, exclusive=False, timeout=lock_timeout):
            with path_obj.open('r', encoding='utf-8') as handle:
                return json.load(handle)
    except TimeoutError as exc:
        logger.warning("Timed out waiting to read %s: %s", file_path, exc)
        return default
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        logger.warning("Failed to read %s: %s", file_path, exc)
        return default


def update_json(
    file_path: str,
    update: Callable[[Dict[str, Any]], Dict[str, Any]],
    indent: int = 2,
    *,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> Dict[str, Any]:
    """
    Read, transform and atomically replace a JSON document under one exclusive lock.

    A missing file is handed to ``update`` as an empty dict. An existing file
    that cannot be parsed raises UnreadableJSONError instead of being
    overwritten. Lock timeouts and OS errors propagate to the caller.

    Returns:
        The document that was written
    """
    file_path = os.path.expanduser(file_path)
    path_obj = Path(file_path)

    # Ensure directory exists
    path_obj.parent.mkdir(parents=True, exist_ok=True)

    with _file_lock(path_obj, exclusive=True, timeout=lock_timeout):
        current: Dict[str, Any] = {}
        if path_obj.exists():
            try:
                with path_obj.open('r', encoding='utf-8') as handle:
                    raw = handle.read()
                current = json.loads(raw) if raw.strip() else {}
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise UnreadableJSONError(f"Refusing to overwrite unreadable JSON in {file_path}: {exc}") from exc
            if not isinstance(current, dict):
                raise UnreadableJSONError(f"Refusing to overwrite non-object JSON in {file_path}")

        document = update(current)

        def _dump(handle) -> None:
            json.dump(document, handle, indent=indent, ensure_ascii=False)
            handle.write("\n")

        _replace_atomically(path_obj, _dump, suffix='.json')
    return document


def atomic_write(
    file_path: str,
    content: str,
    *,
    lock: bool = True,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> bool:
    """
    Atomically write content to file.

    Args:
        file_path: Path to write to
        content: Content to write
        lock: Take the companion lock file; vault notes are written without one

    Returns:
        True if successful, False otherwise
    """
    file_path = os.path.expanduser(file_path)
    path_obj = Path(file_path)

    try:
        # Ensure directory exists
        path_obj.parent.mkdir(parents=True, exist_ok=True)
        if lock:
            with _file_lock(path_obj, exclusive=True, timeout=lock_timeout):
                _replace_atomically(path_obj, lambda handle: handle.write(content))
        else:
            _replace_atomically(path_obj, lambda handle: handle.write(content))
        return True

    except TimeoutError as exc:
        logger.error("Error writing to %s: %s", file_path, exc)
    except OSError as exc:
        logger.error("Error writing to %s: %s", file_path, exc)

    return False
