"""
Markdown task parsing utilities.

Turns the raw text of one vault file into typed ``VaultRecord`` values.
Downstream components never re-parse raw text.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import yaml

from obs_taskmaster.core.exceptions import ValidationError
from obs_taskmaster.core.models import Priority, TaskStatus, VaultRecord
from obs_taskmaster.utils.date import parse_timestamp
from obs_taskmaster.utils.tags import merge_tags
from obs_taskmaster.utils.text import casefold_equal, normalize_title


# Regular expressions for parsing tasks
TASK_RE = re.compile(r'^(\s*)[-*]\s+\[([xX\- ])\]\s+(.*)$')
FRONTMATTER_RE = re.compile(r'^---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)', re.DOTALL)
# No match after word chars, slashes or brackets: skips headings, URL fragments and [[#anchors]]
TAG_RE = re.compile(r'(?<![\w/#&\[])#([A-Za-z0-9_][\w\-/]*)')
LINK_RE = re.compile(r'\[\[([^\[\]]+)\]\]')
H1_RE = re.compile(r'^#[ \t]+(.+?)[ \t]*$', re.MULTILINE)
SECTION_RE = re.compile(r'^##[ \t]+(.+?)[ \t]*$', re.MULTILINE)
HEADING_RE = re.compile(r'^#{1,2}[ \t]+', re.MULTILINE)
DEPENDENCY_RE = re.compile(r'^\s*[-*]\s+(?:Task\s+)?(\d+(?:\.\d+)?)\b', re.IGNORECASE)

MODIFIED_KEYS = ("updated", "modified", "last_modified")

logger = logging.getLogger(__name__)


def _parse_frontmatter_lines(block: str) -> Dict[str, Any]:
    """Lenient ``key: value`` fallback; lines that do not parse are ignored."""
    data: Dict[str, Any] = {}
    for line in block.splitlines():
        if ':' not in line:
            continue
        key, _, value = line.partition(':')
        key = key.strip()
        if not key or key.startswith('#'):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        data[key] = value
    return data


def parse_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split YAML front matter from the document body.

    Args:
        text: Full file content

    Returns:
        Tuple of (front matter dict, body). The dict is empty when the file
        has no front matter block.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text

    block = match.group(1)
    body = text[match.end():]
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        logger.debug("Front matter is not valid YAML, using line parser: %s", exc)
        return _parse_frontmatter_lines(block), body

    if data is None:
        return {}, body
    if not isinstance(data, dict):
        return _parse_frontmatter_lines(block), body
    return {str(key): value for key, value in data.items()}, body


def parse_markdown_task(line: str) -> Optional[Dict[str, Any]]:
    """
    Parse a markdown checkbox line into components.

    Args:
        line: Raw markdown line

    Returns:
        Dictionary with parsed task data or None if not a task
    """
    match = TASK_RE.match(line)
    if not match:
        return None

    mark = match.group(2)
    text = normalize_title(match.group(3))
    if not text:
        return None

    return {
        'indent': match.group(1),
        'mark': mark,
        'completed': mark.lower() == 'x',
        'cancelled': mark == '-',
        'text': text,
        'raw_line': line,
    }


def extract_tags(text: str) -> List[str]:
    """Inline ``#tags`` in first-seen order, without ``#``; numeric-only tokens are not tags."""
    tags = []
    for tag_match in TAG_RE.finditer(text or ""):
        tag = tag_match.group(1).rstrip('/-')
        if tag and not tag.isdigit():
            tags.append(tag)
    return merge_tags(tags)


def extract_links(text: str) -> List[str]:
    """``[[Note]]`` targets in first-seen order. Aliases and headings are dropped."""
    links = []
    seen = set()
    for link_match in LINK_RE.finditer(text or ""):
        target = link_match.group(1).split('|', 1)[0].strip()
        if target and target not in seen:
            seen.add(target)
            links.append(target)
    return links


def extract_sections(body: str) -> Dict[str, str]:
    """Map each ``## Heading`` to its trimmed text, up to the next level 1 or 2 heading."""
    sections: Dict[str, str] = {}
    matches = list(SECTION_RE.finditer(body or ""))
    for match in matches:
        start = match.end()
        next_heading = HEADING_RE.search(body, start)
        end = next_heading.start() if next_heading else len(body)
        sections.setdefault(match.group(1).strip(), body[start:end].strip())
    return sections


def extract_heading(body: str) -> Optional[str]:
    """Text of the first level-1 heading."""
    match = H1_RE.search(body or "")
    return normalize_title(match.group(1)) if match else None


def _frontmatter_tags(front_matter: Dict[str, Any]) -> List[str]:
    value = front_matter.get("tags")
    if not value:
        return []
    if isinstance(value, str):
        value = value.strip().strip('[]')
        return merge_tags(part.strip().strip('"\'') for part in re.split(r'[,\s]+', value))
    if isinstance(value, (list, tuple)):
        return merge_tags(str(v) for v in value if v is not None)
    return merge_tags([str(value)])


def collect_tags(front_matter: Dict[str, Any], body: str) -> List[str]:
    """Front matter tags followed by inline tags, de-duplicated."""
    return merge_tags(_frontmatter_tags(front_matter), extract_tags(body))


def _modification_evidence(front_matter: Dict[str, Any], fallback: Optional[datetime]) -> Optional[datetime]:
    for key in MODIFIED_KEYS:
        parsed = parse_timestamp(front_matter.get(key))
        if parsed is not None:
            return parsed
    return fallback


def _parse_dependency_section(section: str) -> List[str]:
    refs: List[str] = []
    for line in section.splitlines():
        if not line.strip():
            continue
        links = [f"[[{target}]]" for target in extract_links(line)]
        if links:
            refs.extend(links)
            continue
        match = DEPENDENCY_RE.match(line)
        if match:
            refs.append(match.group(1))
    return refs


def _optional_id(value: Any, source_file: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        task_id = int(str(value).strip())
    except ValueError:
        logger.warning("Ignoring non-numeric task_id %r in %s", value, source_file)
        return None
    return task_id if task_id > 0 else None


def _optional_enum(parse, value: Any, source_file: str):
    if value is None or value == "":
        return None
    try:
        return parse(value)
    except ValidationError as exc:
        logger.warning("Ignoring front matter value in %s: %s", source_file, exc)
        return None


def parse_document(
    text: str,
    source_file: str,
    modified_at: Optional[datetime] = None,
) -> List[VaultRecord]:
    """
    Extract task records from the text of one vault file.

    Every checkbox line becomes a record carrying the file's tags and links.
    The checkbox whose text matches the level-1 heading is the file's primary
    task; it additionally picks up ``task_id``, ``priority`` and ``status``
    from front matter and the Description, Details, Test Strategy and
    Dependencies sections.

    Args:
        text: Full file content
        source_file: Vault-relative path of the file
        modified_at: File mtime, used when front matter has no modified stamp

    Returns:
        Records in file order
    """
    front_matter, body = parse_frontmatter(text)
    tags = collect_tags(front_matter, body)
    links = extract_links(body)
    evidence = _modification_evidence(front_matter, modified_at)
    heading = extract_heading(body)

    # Line numbers are relative to the full file
    offset = text[:len(text) - len(body)].count('\n')

    records: List[VaultRecord] = []
    primary_found = False
    for index, line in enumerate(body.splitlines()):
        parsed = parse_markdown_task(line)
        if not parsed:
            continue

        record = VaultRecord(
            title=parsed['text'],
            completed=parsed['completed'],
            source_file=source_file,
            tags=list(tags),
            linked_notes=list(links),
            front_matter=dict(front_matter),
            line_number=offset + index + 1,
            modified_at=evidence,
        )
        if parsed['cancelled']:
            record.cancelled = True

        if not primary_found and heading and casefold_equal(parsed['text'], heading):
            primary_found = True
            _attach_primary_fields(record, front_matter, body, source_file)

        records.append(record)

    return records


def _attach_primary_fields(
    record: VaultRecord,
    front_matter: Dict[str, Any],
    body: str,
    source_file: str,
) -> None:
    record.task_id = _optional_id(front_matter.get("task_id"), source_file)
    record.priority = _optional_enum(Priority.parse, front_matter.get("priority"), source_file)
    record.status_hint = _optional_enum(TaskStatus.parse, front_matter.get("status"), source_file)

    sections = extract_sections(body)
    if "Description" in sections:
        record.description = sections["Description"]
    if "Details" in sections:
        record.details = sections["Details"]
    if "Test Strategy" in sections:
        record.test_strategy = sections["Test Strategy"]
    if "Dependencies" in sections:
        record.dependency_refs = _parse_dependency_section(sections["Dependencies"])
