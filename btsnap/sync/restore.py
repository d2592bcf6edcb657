"""
Restore pipeline: snapshot table -> remote table.

For one table, the pipeline streams the snapshot rows in storage order,
verifies each row's checksum, and replays the cells into the remote
table in bulk writes of at most ``batch_size`` cells.

Invariants:
    - A row whose checksum does not match is never written, and neither
      is any row after it
    - Each MutationBatch is flushed by exactly one bulk call
    - A bulk call with rejected items aborts the restore; items before
      the rejected one in that batch stay applied (no rollback)

How to change safely:
    - The remote table must already be cleared; this module never
      deletes anything
    - Keep batch_size small enough that one bulk call stays well under
      the gRPC message limit
"""

from __future__ import annotations

import logging

from ..checksum import compute_checksum
from ..config import DEFAULT_BATCH_SIZE
from ..errors import ChecksumMismatchError, MutationItemError
from ..snapshot.schema import SnapshotRow
from ..snapshot.store import SnapshotStore
from ..store.base import MutationBatch, TableStore, failed_results

logger = logging.getLogger(__name__)


def verify_row(table_name: str, row: SnapshotRow) -> None:
    """Check a snapshot row against its recorded checksum.

    Raises:
        ChecksumMismatchError: If the recomputed checksum differs
    """
    computed = compute_checksum(row.key, row.column_family, row.column, row.value, row.timestamp)
    if computed != row.chk:
        raise ChecksumMismatchError(row.key, row.chk, computed, table=table_name)


async def flush_batch(table_name: str, table_store: TableStore, batch: MutationBatch) -> None:
    """Apply one batch and fail on the first rejected item.

    Raises:
        BulkWriteError: If the bulk call itself fails
        MutationItemError: If any item was rejected
    """
    results = await table_store.apply_batch(table_name, batch)
    failures = failed_results(results)
    if failures:
        first = failures[0]
        raise MutationItemError(
            len(failures), first.index, first.row_key, first.reason, table=table_name
        )
    logger.debug(f"flushed {len(batch)} cells to {table_name}")


async def restore_table(
    table_name: str,
    table_store: TableStore,
    snapshot_store: SnapshotStore,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Replay a snapshot table into the (already cleared) remote table.

    Args:
        table_name: Table to restore
        table_store: Connected remote store
        snapshot_store: Open snapshot store
        batch_size: Maximum cells per bulk write

    Returns:
        Number of cells restored

    Raises:
        StreamError: If reading the snapshot fails
        ChecksumMismatchError: On the first corrupted row
        BulkWriteError: If a bulk call fails
        MutationItemError: If a bulk call rejects an item
    """
    logger.info(f"restoring {table_name!r} table...")

    count = 0
    batch = MutationBatch(max_size=batch_size)
    for row in snapshot_store.stream_rows(table_name):
        verify_row(table_name, row)

        batch.add(row.to_cell())
        count += 1

        if batch.is_full:
            await flush_batch(table_name, table_store, batch)
            batch = MutationBatch(max_size=batch_size)

    if len(batch) > 0:
        await flush_batch(table_name, table_store, batch)

    logger.info(
        f"restored {count} rows for {table_name}", extra={"table": table_name, "rows": count}
    )
    return count
