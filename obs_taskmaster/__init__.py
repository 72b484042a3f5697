"""
obs-taskmaster - Keep a TaskMaster tasks file and an Obsidian vault in sync.
"""

__version__ = "1.0.0"
