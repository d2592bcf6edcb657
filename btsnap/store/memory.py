"""
In-memory table store implementation for testing.

This module provides a simple in-memory TableStore backend for:
- Unit tests
- Integration tests (save -> restore round trips without an emulator)

It follows Bigtable's cell semantics: a cell is addressed by
(row key, family, column, timestamp), and writing the same address
twice overwrites the value.

Invariants:
    - All data is lost on process exit
    - Rows are streamed in row-key order; within a row, families and
      columns are sorted and versions are newest first
    - Provides the same per-item result contract as the Bigtable backend

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the TableStore protocol
    - Add failure hooks here rather than monkeypatching in tests
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field

from ..errors import (
    BulkWriteError,
    StoreConnectionError,
    StreamError,
    TableClearError,
    TableListError,
)
from .base import Cell, MutationBatch, MutationFailed, MutationOk, MutationResult, ReadItem, RowData

logger = logging.getLogger(__name__)

_CellAddress = tuple[bytes, str, str, int]


@dataclass
class InMemoryTable:
    """In-memory table storage."""

    cells: dict[_CellAddress, bytes] = field(default_factory=dict)


class InMemoryTableStore:
    """In-memory implementation of TableStore for testing.

    Attributes:
        qualify_columns: If True, streamed items report their column as
            ``family:column`` the way some Bigtable clients do
        apply_calls: (table, size) of every bulk call received, in order
        rows_streamed: Total rows yielded by read_rows()
        read_tables: Table names in the order read_rows() was called
        cleared_tables: Table names in the order drop_all_rows() was called

    Failure injection:
        fail_list: Make list_tables() raise TableListError
        fail_clear: Tables whose drop_all_rows() raises TableClearError
        fail_read_after: Raise StreamError after yielding this many rows
        fail_apply_call: Make every apply_batch() raise BulkWriteError
        reject_rows: Row keys whose writes are reported as MutationFailed

    Example:
        >>> store = InMemoryTableStore()
        >>> await store.connect()
        >>> store.put_cells("users", [Cell(b"r1", "cf", "name", b"ann", 1000)])
        >>> async for row in store.read_rows("users"):
        ...     print(row.row_key)
    """

    def __init__(self, qualify_columns: bool = False) -> None:
        """Initialize in-memory table store.

        Args:
            qualify_columns: Report streamed columns as ``family:column``
        """
        self.qualify_columns = qualify_columns
        self._tables: dict[str, InMemoryTable] = {}
        self._connected = False

        self.apply_calls: list[tuple[str, int]] = []
        self.rows_streamed = 0
        self.read_tables: list[str] = []
        self.cleared_tables: list[str] = []

        self.fail_list = False
        self.fail_clear: set[str] = set()
        self.fail_read_after: int | None = None
        self.fail_apply_call = False
        self.reject_rows: set[bytes] = set()

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryTableStore connected")

    async def close(self) -> None:
        """Close; data is kept so a store can be reconnected in tests."""
        self._connected = False
        logger.debug("InMemoryTableStore closed")

    def _check_connected(self) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")

    async def list_tables(self) -> list[str]:
        """List tables in creation order (deliberately unsorted)."""
        self._check_connected()
        if self.fail_list:
            raise TableListError("failed to list BT tables: injected failure")
        return list(self._tables)

    async def drop_all_rows(self, table_name: str) -> None:
        """Delete every cell of a table."""
        self._check_connected()
        self.cleared_tables.append(table_name)
        if table_name in self.fail_clear:
            raise TableClearError("failed to delete table: injected failure", table=table_name)
        if table_name not in self._tables:
            raise TableClearError("table not found", table=table_name)
        self._tables[table_name].cells.clear()

    async def read_rows(self, table_name: str) -> AsyncIterator[RowData]:
        """Stream rows in key order."""
        self._check_connected()
        self.read_tables.append(table_name)
        table = self._tables.get(table_name)
        if table is None:
            raise StreamError("table not found", table=table_name)

        for count, row in enumerate(self._rows(table)):
            if self.fail_read_after is not None and count >= self.fail_read_after:
                raise StreamError("failure while iterating rows: injected failure", table=table_name)
            self.rows_streamed += 1
            yield row

    def _rows(self, table: InMemoryTable) -> list[RowData]:
        rows: dict[bytes, RowData] = {}
        # newest version first within a column
        ordered = sorted(table.cells.items(), key=lambda kv: (kv[0][0], kv[0][1], kv[0][2], -kv[0][3]))
        for (row_key, family, column, ts), value in ordered:
            row = rows.setdefault(row_key, RowData(row_key=row_key))
            reported = f"{family}:{column}" if self.qualify_columns else column
            row.families.setdefault(family, []).append(
                ReadItem(row_key=row_key, column=reported, value=value, timestamp_ns=ts)
            )
        return list(rows.values())

    async def apply_batch(self, table_name: str, batch: MutationBatch) -> list[MutationResult]:
        """Apply a batch, reporting rejected rows per item."""
        self._check_connected()
        self.apply_calls.append((table_name, len(batch)))
        if self.fail_apply_call:
            raise BulkWriteError("failed to write to bigtable: injected failure", table=table_name)
        table = self._tables.get(table_name)
        if table is None:
            raise BulkWriteError("table not found", table=table_name)

        results: list[MutationResult] = []
        for index, cell in enumerate(batch.cells):
            if cell.row_key in self.reject_rows:
                results.append(
                    MutationFailed(index=index, row_key=cell.row_key, reason="injected rejection")
                )
                continue
            table.cells[self._address(cell)] = cell.value
            results.append(MutationOk(index=index))
        return results

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def create_table(self, table_name: str) -> None:
        """Create an empty table if it does not exist."""
        self._tables.setdefault(table_name, InMemoryTable())

    def put_cells(self, table_name: str, cells: Iterable[Cell]) -> None:
        """Write cells directly, creating the table if needed."""
        self.create_table(table_name)
        table = self._tables[table_name]
        for cell in cells:
            table.cells[self._address(cell)] = cell.value

    def get_cells(self, table_name: str) -> set[Cell]:
        """Return every cell of a table."""
        table = self._tables[table_name]
        return {
            Cell(row_key=k, family=f, column=c, value=v, timestamp_ns=ts)
            for (k, f, c, ts), v in table.cells.items()
        }

    @staticmethod
    def _address(cell: Cell) -> _CellAddress:
        return (cell.row_key, cell.family, cell.column, cell.timestamp_ns)
