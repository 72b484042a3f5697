"""
Canonical tasks file access for obs-taskmaster.
"""

from .tasks_file import TaskStore

__all__ = ['TaskStore']
