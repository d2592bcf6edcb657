"""
Snapshot table layout.

Every remote table is saved into a SQLite table of the same name, one
row per cell:

    <table>:
        - key BLOB            row key
        - column_family TEXT  column family name
        - column TEXT         unqualified column name
        - value BLOB          raw cell value
        - timestamp INTEGER   cell timestamp, nanoseconds since the epoch
        - chk INTEGER         FNV-1a checksum of the cell (see checksum.py)

Invariants:
    - The column order above is the on-disk format; inserts and selects
      name columns explicitly
    - Table names are always quoted, so any Bigtable table id is usable
"""

from __future__ import annotations

from dataclasses import dataclass

from ..store.base import Cell

SNAPSHOT_COLUMNS = ("key", "column_family", "column", "value", "timestamp", "chk")
# Python type sqlite3 returns for each column of a well-formed row
SNAPSHOT_COLUMN_TYPES = (bytes, str, str, bytes, int, int)

# SQLite keeps its own bookkeeping tables under this prefix
SYSTEM_TABLE_PREFIX = "sqlite_"


def quote_identifier(name: str) -> str:
    """Quote a table name for use in SQL."""
    return '"' + name.replace('"', '""') + '"'


def create_table_sql(table_name: str) -> str:
    return (
        f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} ("
        "key BLOB, column_family TEXT, column TEXT, value BLOB, timestamp INTEGER, chk INTEGER)"
    )


def drop_table_sql(table_name: str) -> str:
    return f"DROP TABLE IF EXISTS {quote_identifier(table_name)}"


def insert_row_sql(table_name: str) -> str:
    columns = ", ".join(SNAPSHOT_COLUMNS)
    return f"INSERT INTO {quote_identifier(table_name)} ({columns}) VALUES (?, ?, ?, ?, ?, ?)"


def select_rows_sql(table_name: str) -> str:
    columns = ", ".join(SNAPSHOT_COLUMNS)
    return f"SELECT {columns} FROM {quote_identifier(table_name)} ORDER BY rowid"


def mistyped_column(values: tuple) -> tuple[str, object] | None:
    """Return (column, value) of the first field with the wrong type, if any.

    SQLite does not enforce column types, so a hand edit can leave a
    TEXT value, a BLOB family or a NULL anywhere in a row.
    """
    for name, expected, value in zip(SNAPSHOT_COLUMNS, SNAPSHOT_COLUMN_TYPES, values):
        if not isinstance(value, expected):
            return name, value
    return None


@dataclass(frozen=True)
class SnapshotRow:
    """One cell as stored in a snapshot table, plus its checksum.

    Attributes:
        key: Row key bytes
        column_family: Column family name
        column: Unqualified column name
        value: Raw cell value
        timestamp: Cell timestamp in nanoseconds since the epoch
        chk: Checksum recorded at save time
    """

    key: bytes
    column_family: str
    column: str
    value: bytes
    timestamp: int
    chk: int

    @classmethod
    def from_cell(cls, cell: Cell, chk: int) -> SnapshotRow:
        return cls(
            key=cell.row_key,
            column_family=cell.family,
            column=cell.column,
            value=cell.value,
            timestamp=cell.timestamp_ns,
            chk=chk,
        )

    def to_cell(self) -> Cell:
        return Cell(
            row_key=self.key,
            family=self.column_family,
            column=self.column,
            value=self.value,
            timestamp_ns=self.timestamp,
        )

    def as_params(self) -> tuple[bytes, str, str, bytes, int, int]:
        return (self.key, self.column_family, self.column, self.value, self.timestamp, self.chk)
