"""
Save pipeline: remote table -> snapshot table.

For one table, the pipeline:
1. Drops and recreates the snapshot table
2. Streams every cell over the full key range
3. Strips the ``family:`` prefix some clients put on column names
4. Checksums each cell and inserts one snapshot row

Invariants:
    - A save is always a full overwrite of the snapshot table
    - The remote stream is closed on the first failed insert; no further
      rows are read
    - Each insert commits on its own; a failed save keeps the rows
      inserted before the failure

How to change safely:
    - Cell order inside a row must stay deterministic (families sorted,
      store order within a family) so repeated saves are identical
"""

from __future__ import annotations

import logging
from contextlib import aclosing

from ..checksum import checksum_cell
from ..snapshot.schema import SnapshotRow
from ..snapshot.store import SnapshotStore
from ..store.base import Cell, ReadItem, TableStore

logger = logging.getLogger(__name__)


def unqualified_column(family: str, column: str) -> str:
    """Strip a leading ``family:`` from a column name.

    Example:
        >>> unqualified_column("cf1", "cf1:mycolumn")
        'mycolumn'
    """
    return column.removeprefix(f"{family}:")


def cell_from_item(family: str, item: ReadItem) -> Cell:
    return Cell(
        row_key=item.row_key,
        family=family,
        column=unqualified_column(family, item.column),
        value=item.value,
        timestamp_ns=item.timestamp_ns,
    )


async def save_table(
    table_name: str,
    table_store: TableStore,
    snapshot_store: SnapshotStore,
) -> int:
    """Save every cell of a remote table into its snapshot table.

    Args:
        table_name: Table to save
        table_store: Connected remote store
        snapshot_store: Open snapshot store

    Returns:
        Number of cells saved

    Raises:
        TableClearError: If the old snapshot table cannot be dropped
        SnapshotSchemaError: If the snapshot table cannot be created
        StreamError: If streaming from the remote store fails
        SnapshotWriteError: On the first failed insert
    """
    logger.info(f"saving {table_name!r} table...")

    snapshot_store.recreate_table(table_name)

    count = 0
    async with aclosing(table_store.read_rows(table_name)) as rows:
        async for row in rows:
            for family, items in sorted(row.families.items()):
                for item in items:
                    cell = cell_from_item(family, item)
                    snapshot_store.insert_row(
                        table_name, SnapshotRow.from_cell(cell, checksum_cell(cell))
                    )
                    count += 1

    logger.info(f"saved {count} rows for {table_name}", extra={"table": table_name, "rows": count})
    return count
