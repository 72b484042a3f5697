"""
Vault scanning: reads matching markdown files and extracts task records.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from obs_taskmaster.core.config import SyncConfig
from obs_taskmaster.core.exceptions import EmptyVaultError
from obs_taskmaster.core.models import FileSummary, ScanStats, VaultRecord, VaultScan
from obs_taskmaster.utils.concurrency import run_bounded
from obs_taskmaster.utils.date import from_mtime

from .parser import collect_tags, extract_links, parse_document, parse_frontmatter
from .vault import iter_markdown_files, validate_vault


@dataclass
class FileScan:
    """What one file contributes to a scan."""

    path: str
    records: List[VaultRecord] = field(default_factory=list)
    summary: Optional[FileSummary] = None
    stats: ScanStats = field(default_factory=ScanStats)


class VaultScanner:
    """Extracts task records and statistics from an Obsidian vault."""

    def __init__(self, config: Optional[SyncConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or SyncConfig()
        self.logger = logger or logging.getLogger(__name__)

    def scan(self, root: Optional[str] = None, exclude_patterns: Optional[Sequence[str]] = None) -> VaultScan:
        """
        Scan a vault.

        Args:
            root: Vault directory; defaults to the configured vault
            exclude_patterns: Overrides the configured exclude patterns

        Returns:
            VaultScan with records in path order

        Raises:
            ValidationError, VaultNotFoundError, InvalidVaultError: bad root
            EmptyVaultError: no file matched the patterns
        """
        vault_path = validate_vault(root or self.config.vault_path, self.logger)
        excludes = self.config.exclude_patterns if exclude_patterns is None else list(exclude_patterns)

        paths = list(iter_markdown_files(
            vault_path,
            include=self.config.include_patterns,
            exclude=excludes,
            max_depth=self.config.max_depth,
        ))
        if not paths:
            raise EmptyVaultError(f"No markdown files found in {vault_path}")

        self.logger.debug("Scanning %d files in %s", len(paths), vault_path)

        result = VaultScan(root=vault_path)
        stats = ScanStats()
        outcomes = run_bounded(
            lambda rel_path: self._scan_file(vault_path, rel_path),
            paths,
            max_workers=self.config.max_workers,
            timeout=self.config.file_timeout,
        )
        for outcome in outcomes:
            if outcome.timed_out:
                file_scan = self._warning(outcome.item, f"Timed out reading {outcome.item}")
            elif outcome.error is not None:
                file_scan = self._warning(outcome.item, f"Could not read {outcome.item}: {outcome.error}")
            else:
                file_scan = outcome.value

            stats = stats.combine(file_scan.stats)
            result.records.extend(file_scan.records)
            if file_scan.summary is not None:
                result.files.append(file_scan.summary)

        result.stats = stats
        self.logger.info(
            "Scanned %d files: %d tasks (%d completed)",
            stats.files_scanned, stats.total_tasks, stats.completed_tasks,
        )
        return result

    def _warning(self, rel_path: str, message: str) -> FileScan:
        self.logger.warning(message)
        return FileScan(path=rel_path, stats=ScanStats(skipped_files=1, warnings=[message]))

    def _scan_file(self, vault_path: str, rel_path: str) -> FileScan:
        full_path = os.path.join(vault_path, *rel_path.split('/'))
        try:
            stat = os.stat(full_path)
        except OSError as exc:
            return self._warning(rel_path, f"Could not read {rel_path}: {exc}")

        if stat.st_size > self.config.max_file_size:
            return self._warning(
                rel_path,
                f"Skipping {rel_path}: {stat.st_size} bytes exceeds limit of {self.config.max_file_size}",
            )

        try:
            with open(full_path, 'r', encoding='utf-8') as handle:
                content = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            return self._warning(rel_path, f"Could not read {rel_path}: {exc}")

        modified = from_mtime(stat.st_mtime)
        records = parse_document(content, rel_path, modified)
        front_matter, body = parse_frontmatter(content)
        tags = collect_tags(front_matter, body)
        links = extract_links(body)
        completed = sum(1 for record in records if record.completed)

        summary = FileSummary(
            path=rel_path,
            size=stat.st_size,
            modified=modified.isoformat(),
            front_matter=front_matter,
            tags=tags,
            links=links,
            task_count=len(records),
            body=body,
        )
        stats = ScanStats(
            files_scanned=1,
            bytes_scanned=stat.st_size,
            tags=list(tags),
            links=list(links),
            completed_tasks=completed,
            incomplete_tasks=len(records) - completed,
        )
        return FileScan(path=rel_path, records=records, summary=summary, stats=stats)
