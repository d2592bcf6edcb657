"""
Test data builders shared across btsnap tests.
"""

from btsnap.checksum import checksum_cell
from btsnap.snapshot.schema import SnapshotRow
from btsnap.snapshot.store import SnapshotStore
from btsnap.store.base import Cell

BASE_TS = 1_700_000_000_000_000_000


def make_cells(count: int, prefix: str = "row") -> list[Cell]:
    """One cell per row, keys sorted the same way the store sorts them."""
    return [
        Cell(
            row_key=f"{prefix}-{i:05d}".encode(),
            family="cf1",
            column="col",
            value=f"value-{i}".encode(),
            timestamp_ns=BASE_TS + i * 1000,
        )
        for i in range(count)
    ]


def write_snapshot(snapshot: SnapshotStore, table: str, cells: list[Cell]) -> None:
    """Write a snapshot table the way save_table would."""
    snapshot.recreate_table(table)
    for cell in cells:
        snapshot.insert_row(table, SnapshotRow.from_cell(cell, checksum_cell(cell)))


def snapshot_rows(snapshot: SnapshotStore, table: str) -> list[SnapshotRow]:
    return list(snapshot.stream_rows(table))
