"""
Remote table store abstraction for btsnap.

This module provides a pluggable table store interface supporting:
- Google Cloud Bigtable (emulator or real instance)
- In-memory (for testing)

Invariants:
    - Rows stream in key order over the full key range
    - Bulk writes report one result per item, in order
    - Backends raise btsnap.errors types only

How to change safely:
    - New backends must implement the TableStore protocol
    - Run the round-trip tests against every backend
"""

from .base import (
    Cell,
    MutationBatch,
    MutationFailed,
    MutationOk,
    MutationResult,
    ReadItem,
    RowData,
    TableStore,
    create_table_store,
    failed_results,
)
from .memory import InMemoryTableStore

__all__ = [
    # Protocol and types
    "TableStore",
    "Cell",
    "ReadItem",
    "RowData",
    "MutationBatch",
    "MutationOk",
    "MutationFailed",
    "MutationResult",
    "failed_results",
    # Factory
    "create_table_store",
    # Implementations (BigtableTableStore lives in .bigtable, imported on demand)
    "InMemoryTableStore",
]
