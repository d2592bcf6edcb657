"""
btsnap test suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Save/restore round trips through a real SQLite file
"""
