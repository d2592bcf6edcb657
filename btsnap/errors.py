"""
Exception hierarchy for btsnap.

Every failure raised by the sync engine or by a store backend derives
from SyncError. Errors raised while processing a table carry its name,
so a failure surfacing from save_all/restore always says which table
aborted the run.

Invariants:
    - Nothing is retried; errors propagate to the caller unchanged
    - Backend exceptions are chained with ``raise ... from e``
    - ChecksumMismatchError is fatal and never auto-corrected

How to change safely:
    - Add new error kinds as subclasses of an existing category
    - Keep ``table`` as the first keyword so call sites stay uniform
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for save/restore operations.

    Attributes:
        table: Name of the table being processed, if any
    """

    def __init__(self, message: str, table: str | None = None) -> None:
        self.table = table
        if table is not None:
            message = f"table {table!r}: {message}"
        super().__init__(message)


class StoreConnectionError(SyncError):
    """Connecting to a store backend failed."""

    pass


class TableListError(SyncError):
    """Listing tables (remote or snapshot) failed."""

    pass


class TableClearError(SyncError):
    """Dropping all rows of a remote table, or dropping a snapshot table, failed."""

    pass


class SnapshotSchemaError(SyncError):
    """Creating a snapshot table failed."""

    pass


class StreamError(SyncError):
    """Iterating rows from either store failed."""

    pass


class MalformedRowError(StreamError):
    """A snapshot row has a field of the wrong type (e.g. NULL or TEXT value).

    Attributes:
        position: 1-based position of the row in storage order
        row_key: Key of the row, or None if the key itself is malformed
        column: Name of the first mistyped column
    """

    def __init__(
        self,
        position: int,
        row_key: object,
        column: str,
        found: object,
        table: str | None = None,
    ) -> None:
        self.position = position
        self.row_key = row_key if isinstance(row_key, bytes) else None
        self.column = column
        super().__init__(
            f"malformed snapshot row {position} (key {row_key!r}): "
            f"column {column!r} holds {type(found).__name__} {found!r}",
            table=table,
        )


class ChecksumMismatchError(SyncError):
    """A snapshot row does not match its recorded checksum.

    Attributes:
        row_key: Key of the corrupted cell
        stored: Checksum recorded in the snapshot
        computed: Checksum recomputed from the row's fields
    """

    def __init__(
        self,
        row_key: bytes,
        stored: int,
        computed: int,
        table: str | None = None,
    ) -> None:
        self.row_key = row_key
        self.stored = stored
        self.computed = computed
        super().__init__(
            f"integrity check failed for row {row_key!r}, "
            f"db.chk={stored}, computed hash = {computed}",
            table=table,
        )


class WriteError(SyncError):
    """Writing to either store failed."""

    pass


class SnapshotWriteError(WriteError):
    """Inserting a snapshot row failed.

    Attributes:
        row_key: Key of the row that could not be saved
    """

    def __init__(self, row_key: bytes, reason: str, table: str | None = None) -> None:
        self.row_key = row_key
        super().__init__(f"failed to save row {row_key!r}: {reason}", table=table)


class BulkWriteError(WriteError):
    """A bulk-apply call to the table store failed as a whole."""

    pass


class MutationItemError(WriteError):
    """A bulk-apply call succeeded but some of its items were rejected.

    Items before the failed one in the same batch stay applied.

    Attributes:
        failed_count: Number of rejected items in the batch
        index: Position of the first rejected item within its batch
        row_key: Row key of the first rejected item
        reason: Backend message for the first rejected item
    """

    def __init__(
        self,
        failed_count: int,
        index: int,
        row_key: bytes,
        reason: str,
        table: str | None = None,
    ) -> None:
        self.failed_count = failed_count
        self.index = index
        self.row_key = row_key
        self.reason = reason
        super().__init__(
            f"failed to write to bigtable, {failed_count} errors, "
            f"first: item {index} (row {row_key!r}): {reason}",
            table=table,
        )
