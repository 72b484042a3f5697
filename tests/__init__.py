"""
Test suite for obs-taskmaster.

This package contains:
- Unit tests for parsing, identity resolution and projection
- Integration tests running sync passes against temporary vaults
"""
