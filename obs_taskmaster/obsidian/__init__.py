"""
Obsidian integration module for obs-taskmaster.
"""

from .vault import validate_vault, iter_markdown_files, initialize_vault
from .parser import parse_document, parse_frontmatter, parse_markdown_task
from .scanner import VaultScanner
from .links import (
    resolve_to_id,
    resolve_to_token,
    format_id,
    validate_link,
    require_valid_link,
)
from .projector import render_task, update_text

__all__ = [
    'validate_vault',
    'iter_markdown_files',
    'initialize_vault',
    'parse_document',
    'parse_frontmatter',
    'parse_markdown_task',
    'VaultScanner',
    'resolve_to_id',
    'resolve_to_token',
    'format_id',
    'validate_link',
    'require_valid_link',
    'render_task',
    'update_text',
]
