"""
Base protocol and types for the remote table store.

This module defines the TableStore protocol that all backends must
implement, along with the cell, row and bulk-write types shared by the
save and restore pipelines.

Invariants:
    - read_rows() yields rows in row-key order over the full key range
    - apply_batch() returns exactly one MutationResult per batch item,
      in batch order
    - Backends raise btsnap.errors types, chaining the client exception

How to change safely:
    - Protocol changes require updating all implementations
    - Keep MutationBatch a plain value owned by one flush at a time
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol, Union, runtime_checkable

from ..config import DEFAULT_BATCH_SIZE, ToolConfig


@dataclass(frozen=True)
class Cell:
    """One versioned (row, family, column) -> value entry.

    Attributes:
        row_key: Row key bytes
        family: Column family name
        column: Unqualified column name
        value: Raw cell value
        timestamp_ns: Cell timestamp in nanoseconds since the epoch
    """

    row_key: bytes
    family: str
    column: str
    value: bytes
    timestamp_ns: int


@dataclass(frozen=True)
class ReadItem:
    """A cell as returned by the store while streaming a row.

    ``column`` may be qualified with the family (``family:column``);
    the save pipeline strips that prefix.
    """

    row_key: bytes
    column: str
    value: bytes
    timestamp_ns: int


@dataclass
class RowData:
    """One row streamed from the store.

    Attributes:
        row_key: Row key bytes
        families: Items of the row grouped by column family
    """

    row_key: bytes
    families: dict[str, list[ReadItem]] = field(default_factory=dict)


@dataclass
class MutationBatch:
    """Bounded group of pending cell writes flushed as one bulk call.

    A batch belongs to a single table's restore and is handed to exactly
    one flush; the restore pipeline starts a new batch after each flush.

    Attributes:
        max_size: Number of cells at which the batch is considered full
        cells: Pending writes in insertion order
    """

    max_size: int = DEFAULT_BATCH_SIZE
    cells: list[Cell] = field(default_factory=list)

    def add(self, cell: Cell) -> None:
        self.cells.append(cell)

    @property
    def keys(self) -> list[bytes]:
        return [cell.row_key for cell in self.cells]

    @property
    def is_full(self) -> bool:
        return len(self.cells) >= self.max_size

    def __len__(self) -> int:
        return len(self.cells)


@dataclass(frozen=True)
class MutationOk:
    """The bulk item at ``index`` was applied."""

    index: int


@dataclass(frozen=True)
class MutationFailed:
    """The bulk item at ``index`` was rejected by the store."""

    index: int
    row_key: bytes
    reason: str


MutationResult = Union[MutationOk, MutationFailed]


def failed_results(results: list[MutationResult]) -> list[MutationFailed]:
    """Return the rejected items of a bulk call, in batch order."""
    return [r for r in results if isinstance(r, MutationFailed)]


@runtime_checkable
class TableStore(Protocol):
    """Protocol for remote wide-column table store backends.

    Covers both the administrative surface (listing tables, dropping
    rows) and the data surface (streaming rows, bulk writes).

    Example:
        >>> store = BigtableTableStore(config.bigtable)
        >>> await store.connect()
        >>> for name in await store.list_tables():
        ...     async for row in store.read_rows(name):
        ...         print(row.row_key)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend.

        Raises:
            StoreConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release client resources."""
        ...

    @abstractmethod
    async def list_tables(self) -> list[str]:
        """List table names (unqualified) in the instance.

        Raises:
            TableListError: If listing fails
        """
        ...

    @abstractmethod
    async def drop_all_rows(self, table_name: str) -> None:
        """Delete every row of a table, keeping the table itself.

        Raises:
            TableClearError: If the drop fails
        """
        ...

    @abstractmethod
    def read_rows(self, table_name: str) -> AsyncIterator[RowData]:
        """Stream every row of a table in key order.

        Closing the iterator (``aclose()``) stops the stream immediately.

        Raises:
            StreamError: If iteration fails
        """
        ...

    @abstractmethod
    async def apply_batch(self, table_name: str, batch: MutationBatch) -> list[MutationResult]:
        """Write every cell of ``batch`` in one bulk call.

        Returns:
            One MutationResult per cell, in batch order

        Raises:
            BulkWriteError: If the call as a whole fails
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...


def create_table_store(config: ToolConfig) -> TableStore:
    """Factory function to create a table store from configuration.

    Args:
        config: Tool configuration

    Returns:
        TableStore connected to the configured Bigtable instance
    """
    from .bigtable import BigtableTableStore

    return BigtableTableStore(config.bigtable)
