"""
SQLite snapshot store for btsnap.

This module manages the local SQLite file that holds snapshots, one
table per remote table (see schema.py for the layout).

The store keeps a single connection open for the whole run. It works in
autocommit mode, so each insert commits on its own. Save creates the file
when it is missing; restore and verify open with must_exist so a mistyped
path fails instead of reading an empty snapshot.

Invariants:
    - One SQLite file per snapshot
    - Snapshot tables are only ever dropped and recreated, never altered
    - sqlite_* system tables are never listed as snapshot tables
    - Every sqlite3.Error is wrapped in a btsnap.errors type

How to change safely:
    - Keep schema.py and this module in step
    - Test with snapshots written by older versions before format changes
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from ..errors import (
    MalformedRowError,
    SnapshotSchemaError,
    SnapshotWriteError,
    StoreConnectionError,
    StreamError,
    TableClearError,
    TableListError,
)
from .schema import (
    SYSTEM_TABLE_PREFIX,
    SnapshotRow,
    create_table_sql,
    drop_table_sql,
    insert_row_sql,
    mistyped_column,
    select_rows_sql,
)

logger = logging.getLogger(__name__)


class SnapshotStore:
    """SQLite file holding one snapshot table per remote table.

    Example:
        >>> with SnapshotStore("local.db") as snapshot:
        ...     snapshot.create_table("users")
        ...     snapshot.insert_row("users", row)
        ...     for row in snapshot.stream_rows("users"):
        ...         print(row.key)
    """

    def __init__(
        self,
        db_path: str | Path,
        busy_timeout_ms: int = 5000,
        must_exist: bool = False,
    ) -> None:
        """Initialize the snapshot store.

        Args:
            db_path: SQLite file to save to or restore from
            busy_timeout_ms: SQLite busy timeout
            must_exist: Refuse to open a missing file instead of creating
                an empty one (restore and verify read an existing snapshot)
        """
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self.must_exist = must_exist
        self._conn: sqlite3.Connection | None = None

    def open(self) -> None:
        """Open the database file, creating it unless must_exist is set.

        Raises:
            StoreConnectionError: If the file cannot be opened, or is
                missing and must_exist is set
        """
        if self._conn is not None:
            return
        try:
            if self.must_exist:
                # mode=rw fails instead of creating the file
                database = f"{self.db_path.resolve().as_uri()}?mode=rw"
            else:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                database = str(self.db_path)
            self._conn = sqlite3.connect(
                database,
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit: every statement commits on its own
                uri=self.must_exist,
            )
            self._conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
        except (sqlite3.Error, OSError) as e:
            self._conn = None
            if self.must_exist and not self.db_path.exists():
                raise StoreConnectionError(
                    f"snapshot database {str(self.db_path)!r} does not exist"
                ) from e
            raise StoreConnectionError(f"failed to open {str(self.db_path)!r}: {e}") from e
        logger.debug(f"Opened snapshot database {self.db_path}")

    def close(self) -> None:
        """Close the database file."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        except sqlite3.Error as e:
            raise StoreConnectionError(f"failed to close database: {e}") from e
        finally:
            self._conn = None

    def __enter__(self) -> SnapshotStore:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreConnectionError(f"snapshot database {str(self.db_path)!r} is not open")
        return self._conn

    def list_user_tables(self) -> list[str]:
        """List snapshot tables, excluding SQLite's internal tables, sorted by name."""
        try:
            cursor = self.conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE ?",
                (SYSTEM_TABLE_PREFIX + "%",),
            )
            return sorted(row[0] for row in cursor.fetchall())
        except sqlite3.Error as e:
            raise TableListError(f"failed to query sqlite for list of tables: {e}") from e

    def drop_table(self, table_name: str) -> None:
        try:
            self.conn.execute(drop_table_sql(table_name))
        except sqlite3.Error as e:
            raise TableClearError(f"failed to execute DROP TABLE: {e}", table=table_name) from e

    def create_table(self, table_name: str) -> None:
        try:
            self.conn.execute(create_table_sql(table_name))
        except sqlite3.Error as e:
            raise SnapshotSchemaError(
                f"failed to execute CREATE TABLE: {e}", table=table_name
            ) from e

    def recreate_table(self, table_name: str) -> None:
        """Drop a snapshot table if present and create it empty."""
        self.drop_table(table_name)
        self.create_table(table_name)

    def insert_row(self, table_name: str, row: SnapshotRow) -> None:
        try:
            self.conn.execute(insert_row_sql(table_name), row.as_params())
        except (sqlite3.Error, OverflowError) as e:
            # OverflowError: an integer outside SQLite's 64-bit range
            raise SnapshotWriteError(row.key, str(e), table=table_name) from e

    def stream_rows(self, table_name: str) -> Iterator[SnapshotRow]:
        """Yield a table's rows in storage order.

        Raises:
            StreamError: If the query or iteration fails
            MalformedRowError: If a row has a field of the wrong type
        """
        try:
            cursor = self.conn.execute(select_rows_sql(table_name))
            for position, values in enumerate(cursor, start=1):
                mistyped = mistyped_column(values)
                if mistyped is not None:
                    raise MalformedRowError(position, values[0], *mistyped, table=table_name)
                key, family, column, value, ts, chk = values
                yield SnapshotRow(
                    key=key,
                    column_family=family,
                    column=column,
                    value=value,
                    timestamp=ts,
                    chk=chk,
                )
        except sqlite3.Error as e:
            raise StreamError(f"failed to query table contents: {e}", table=table_name) from e

    def count_rows(self, table_name: str) -> int:
        try:
            cursor = self.conn.execute(f"SELECT COUNT(*) FROM ({select_rows_sql(table_name)})")
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            raise StreamError(f"failed to count rows: {e}", table=table_name) from e