"""
Save/restore orchestration.

Lists tables, sorts them, and drives the save or restore pipeline once
per table.

Invariants:
    - Tables are processed strictly one at a time, in lexicographic order
    - The first error aborts the whole run; there is no partial-success
      continuation across tables
    - Restore clears every remote table before writing anything
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..config import DEFAULT_BATCH_SIZE
from ..snapshot.store import SnapshotStore
from ..store.base import TableStore
from .restore import restore_table
from .save import save_table

logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    """Result of a save run.

    Attributes:
        tables: Cells saved per table, in processing order
        duration_ms: Total duration
    """

    tables: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total_rows(self) -> int:
        return sum(self.tables.values())


@dataclass
class RestoreResult:
    """Result of a restore run.

    Attributes:
        cleared_tables: Remote tables whose rows were dropped
        tables: Cells restored per table, in processing order
        duration_ms: Total duration
    """

    cleared_tables: list[str] = field(default_factory=list)
    tables: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total_rows(self) -> int:
        return sum(self.tables.values())


async def save_all(table_store: TableStore, snapshot_store: SnapshotStore) -> SaveResult:
    """Save every remote table into the snapshot file.

    Raises:
        SyncError: The first failure; it names the table that aborted the run
    """
    start_time = time.time()
    result = SaveResult()

    tables = sorted(await table_store.list_tables())
    logger.info(f"Saving {len(tables)} tables", extra={"tables": tables})

    for table in tables:
        result.tables[table] = await save_table(table, table_store, snapshot_store)

    result.duration_ms = int((time.time() - start_time) * 1000)
    return result


async def restore(
    table_store: TableStore,
    snapshot_store: SnapshotStore,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> RestoreResult:
    """Replace the contents of the remote instance with the snapshot file.

    Every remote table is cleared first, then every snapshot table is
    replayed into the remote table of the same name.

    Raises:
        SyncError: The first failure; it names the table that aborted the run
    """
    start_time = time.time()
    result = RestoreResult()

    remote_tables = sorted(await table_store.list_tables())
    for table in remote_tables:
        await table_store.drop_all_rows(table)
        result.cleared_tables.append(table)
    logger.info(f"Cleared {len(remote_tables)} tables", extra={"tables": remote_tables})

    for table in snapshot_store.list_user_tables():
        result.tables[table] = await restore_table(
            table, table_store, snapshot_store, batch_size=batch_size
        )

    result.duration_ms = int((time.time() - start_time) * 1000)
    return result
