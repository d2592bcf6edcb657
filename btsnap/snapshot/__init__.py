"""
Snapshot module for btsnap.

This module handles the local SQLite snapshot file:
- The fixed per-table layout cells are flattened into
- Opening, listing, recreating and streaming snapshot tables

Invariants:
    - One snapshot table per remote table, named identically
    - Each row carries the checksum computed at save time
"""

from .schema import SnapshotRow, quote_identifier
from .store import SnapshotStore

__all__ = ["SnapshotStore", "SnapshotRow", "quote_identifier"]
