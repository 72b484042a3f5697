"""
Obsidian vault validation, file discovery and initialization.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Pattern

from obs_taskmaster.core.config import README_FILE, SyncConfig
from obs_taskmaster.core.exceptions import (
    InvalidVaultError,
    ValidationError,
    VaultNotFoundError,
)


# Editor and tooling directories never descended into
SKIP_DIRS = {'.obsidian', '.trash', '.git', 'node_modules'}

README_TEMPLATE = """# TaskMaster Integration

This vault is kept in sync with a TaskMaster tasks file.

- Tasks file: `{tasks_path}`
- Tag context: `{tag}`

## Folders

- `Tasks/` holds one note per synced task. Tick the checkbox to mark a task done.
- `Tags/` is available for tag index notes.

## Commands

```
obs-taskmaster sync --vault "{vault_path}" --direction bidirectional
obs-taskmaster status --vault "{vault_path}"
```

Task notes use front matter with `task_id`, `priority` and `status`.
Reference other tasks with `[[Task Title]]` links.
"""


def validate_vault(path: Optional[str], logger: Optional[logging.Logger] = None) -> str:
    """
    Check that a vault path is usable.

    Returns:
        The absolute vault path

    Raises:
        ValidationError: empty path
        VaultNotFoundError: path does not exist
        InvalidVaultError: path is not a directory
    """
    log = logger or logging.getLogger(__name__)
    if not path or not str(path).strip():
        raise ValidationError("Vault path is required", reason="empty vault path")

    vault_path = os.path.abspath(os.path.expanduser(str(path).strip()))
    if not os.path.exists(vault_path):
        raise VaultNotFoundError(f"Vault not found: {vault_path}")
    if not os.path.isdir(vault_path):
        raise InvalidVaultError(
            f"Vault path is not a directory: {vault_path}",
            reason="not a directory",
        )
    if not os.path.isdir(os.path.join(vault_path, '.obsidian')):
        log.warning("No .obsidian directory in %s; it may not be an Obsidian vault", vault_path)
    return vault_path


def glob_to_regex(pattern: str) -> Pattern:
    """
    Compile a case-sensitive glob into a regex over ``/``-separated relative paths.

    ``**`` matches across directory boundaries (``**/`` may match nothing),
    ``*`` and ``?`` stay within one path segment.
    """
    regex = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith('**/', i):
            regex.append('(?:.*/)?')
            i += 3
        elif pattern.startswith('**', i):
            regex.append('.*')
            i += 2
        elif char == '*':
            regex.append('[^/]*')
            i += 1
        elif char == '?':
            regex.append('[^/]')
            i += 1
        else:
            regex.append(re.escape(char))
            i += 1
    return re.compile(''.join(regex) + r'\Z')


def _compile(patterns: Iterable[str]) -> List[Pattern]:
    return [glob_to_regex(pattern) for pattern in patterns or []]


def iter_markdown_files(
    root: str,
    include: Iterable[str] = ("**/*.md",),
    exclude: Iterable[str] = (),
    max_depth: int = 10,
) -> Iterator[str]:
    """
    Yield vault-relative ``/``-separated paths of files matching the patterns.

    Args:
        root: Vault directory
        include: Glob patterns a file must match (any)
        exclude: Glob patterns that drop a file (any)
        max_depth: Directories deeper than this below the root are not read

    Yields:
        Relative paths in sorted, deterministic order
    """
    include_res = _compile(include)
    exclude_res = _compile(exclude)

    for current, dirs, files in os.walk(root):
        rel_dir = os.path.relpath(current, root)
        depth = 0 if rel_dir == '.' else rel_dir.count(os.sep) + 1

        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        if depth >= max_depth:
            dirs.clear()

        for name in sorted(files):
            rel_path = name if rel_dir == '.' else os.path.join(rel_dir, name)
            rel_path = rel_path.replace(os.sep, '/')
            if not any(regex.match(rel_path) for regex in include_res):
                continue
            if any(regex.match(rel_path) for regex in exclude_res):
                continue
            yield rel_path


@dataclass
class InitResult:
    """Paths touched by vault initialization."""

    vault_path: str
    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)


def initialize_vault(config: SyncConfig, logger: Optional[logging.Logger] = None) -> InitResult:
    """
    Prepare a vault for syncing.

    Creates ``Tasks/`` and ``Tags/``, a README note and the sync config file.
    The README and config are written once and never overwritten.
    """
    log = logger or logging.getLogger(__name__)
    vault_path = validate_vault(config.vault_path, log)
    result = InitResult(vault_path=vault_path)

    for folder in ('Tasks', 'Tags'):
        folder_path = os.path.join(vault_path, folder)
        if os.path.isdir(folder_path):
            result.existing.append(folder)
        else:
            os.makedirs(folder_path, exist_ok=True)
            result.created.append(folder)

    readme_path = os.path.join(vault_path, README_FILE)
    if os.path.exists(readme_path):
        result.existing.append(README_FILE)
    else:
        with open(readme_path, 'w', encoding='utf-8') as handle:
            handle.write(README_TEMPLATE.format(
                tasks_path=config.tasks_path,
                tag=config.tag,
                vault_path=vault_path,
            ))
        result.created.append(README_FILE)

    config_name = os.path.basename(config.vault_config_path)
    if config.save_to_vault():
        result.created.append(config_name)
    else:
        result.existing.append(config_name)
        log.info("Sync config already present at %s; leaving it unchanged", config.vault_config_path)

    return result
