"""
Unit tests for the restore pipeline.

Tests cover:
- Batch-size boundaries
- Checksum verification and corruption handling
- Call-level and per-item bulk write failures
- Clearing and ordering in restore orchestration
"""

import pytest

from btsnap.errors import (
    BulkWriteError,
    ChecksumMismatchError,
    MalformedRowError,
    MutationItemError,
    SyncError,
    TableClearError,
)
from btsnap.snapshot.schema import quote_identifier
from btsnap.store.base import Cell
from btsnap.sync.engine import restore
from btsnap.sync.restore import restore_table, verify_row
from tests.helpers import make_cells, snapshot_rows, write_snapshot


def corrupt_value(snapshot, table: str, rowid: int) -> None:
    """Flip the first byte of a stored value behind the store's back."""
    (value,) = snapshot.conn.execute(
        f"SELECT value FROM {quote_identifier(table)} WHERE rowid = ?", (rowid,)
    ).fetchone()
    corrupted = bytes([value[0] ^ 0x01]) + value[1:]
    snapshot.conn.execute(
        f"UPDATE {quote_identifier(table)} SET value = ? WHERE rowid = ?", (corrupted, rowid)
    )


class TestRestoreTable:
    """Tests for restore_table."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "count,expected_calls",
        [
            (99, [99]),
            (100, [100]),
            (101, [100, 1]),
            (250, [100, 100, 50]),
        ],
    )
    async def test_batch_boundaries(self, table_store, snapshot, count, expected_calls):
        await table_store.connect()
        table_store.create_table("t")
        cells = make_cells(count)
        write_snapshot(snapshot, "t", cells)

        restored = await restore_table("t", table_store, snapshot)

        assert restored == count
        assert [size for _, size in table_store.apply_calls] == expected_calls
        assert table_store.get_cells("t") == set(cells)

    @pytest.mark.asyncio
    async def test_custom_batch_size(self, table_store, snapshot):
        await table_store.connect()
        table_store.create_table("t")
        write_snapshot(snapshot, "t", make_cells(7))

        await restore_table("t", table_store, snapshot, batch_size=3)

        assert [size for _, size in table_store.apply_calls] == [3, 3, 1]

    @pytest.mark.asyncio
    async def test_empty_snapshot_makes_no_calls(self, table_store, snapshot):
        await table_store.connect()
        table_store.create_table("t")
        write_snapshot(snapshot, "t", [])

        assert await restore_table("t", table_store, snapshot) == 0
        assert table_store.apply_calls == []

    @pytest.mark.asyncio
    async def test_corruption_before_first_flush_writes_nothing(self, table_store, snapshot):
        await table_store.connect()
        table_store.create_table("t")
        write_snapshot(snapshot, "t", make_cells(150))
        corrupt_value(snapshot, "t", rowid=50)

        with pytest.raises(ChecksumMismatchError) as exc_info:
            await restore_table("t", table_store, snapshot)

        err = exc_info.value
        assert err.table == "t"
        assert err.row_key == b"row-00049"
        assert err.stored != err.computed
        assert table_store.apply_calls == []
        assert table_store.get_cells("t") == set()

    @pytest.mark.asyncio
    async def test_corruption_after_flush_keeps_earlier_batches_only(self, table_store, snapshot):
        await table_store.connect()
        table_store.create_table("t")
        cells = make_cells(250)
        write_snapshot(snapshot, "t", cells)
        corrupt_value(snapshot, "t", rowid=150)

        with pytest.raises(ChecksumMismatchError):
            await restore_table("t", table_store, snapshot)

        assert table_store.apply_calls == [("t", 100)]
        assert table_store.get_cells("t") == set(cells[:100])

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "column,bad_value",
        [
            ("value", "value-x"),
            ("column_family", None),
            ("key", None),
            ("key", "row-00001"),
            ("column", b"col"),
            ("timestamp", "2023-11-14"),
            ("chk", None),
        ],
    )
    async def test_mistyped_field_raises_malformed_row(
        self, table_store, snapshot, column, bad_value
    ):
        """SQLite does not enforce column types; a hand-edited row is rejected by name."""
        await table_store.connect()
        table_store.create_table("t")
        write_snapshot(snapshot, "t", make_cells(3))
        snapshot.conn.execute(
            f"UPDATE {quote_identifier('t')} SET {quote_identifier(column)} = ? WHERE rowid = 2",
            (bad_value,),
        )

        with pytest.raises(MalformedRowError) as exc_info:
            await restore_table("t", table_store, snapshot)

        err = exc_info.value
        assert isinstance(err, SyncError)
        assert err.table == "t"
        assert err.position == 2
        assert err.column == column
        assert table_store.apply_calls == []

    @pytest.mark.asyncio
    async def test_call_failure_aborts(self, table_store, snapshot):
        await table_store.connect()
        table_store.create_table("t")
        write_snapshot(snapshot, "t", make_cells(5))
        table_store.fail_apply_call = True

        with pytest.raises(BulkWriteError) as exc_info:
            await restore_table("t", table_store, snapshot)

        assert exc_info.value.table == "t"

    @pytest.mark.asyncio
    async def test_item_failure_reports_first_and_keeps_partial_batch(self, table_store, snapshot):
        await table_store.connect()
        table_store.create_table("t")
        cells = make_cells(150)
        write_snapshot(snapshot, "t", cells)
        table_store.reject_rows = {b"row-00003", b"row-00007"}

        with pytest.raises(MutationItemError) as exc_info:
            await restore_table("t", table_store, snapshot)

        err = exc_info.value
        assert err.table == "t"
        assert err.failed_count == 2
        assert err.index == 3
        assert err.row_key == b"row-00003"
        assert "injected rejection" in str(err)
        # the failing batch was the first one; nothing after it was sent
        assert table_store.apply_calls == [("t", 100)]
        assert set(cells[:3]) <= table_store.get_cells("t")

    def test_verify_row_accepts_good_row(self, snapshot):
        write_snapshot(snapshot, "t", make_cells(1))
        (row,) = snapshot_rows(snapshot, "t")

        verify_row("t", row)


class TestRestore:
    """Tests for restore orchestration."""

    @pytest.mark.asyncio
    async def test_clears_every_remote_table_first(self, table_store, snapshot):
        await table_store.connect()
        table_store.put_cells("keep", make_cells(3, prefix="k"))
        table_store.put_cells("stale", make_cells(3, prefix="s"))
        write_snapshot(snapshot, "keep", make_cells(1, prefix="k"))

        result = await restore(table_store, snapshot)

        assert result.cleared_tables == ["keep", "stale"]
        assert table_store.get_cells("stale") == set()
        assert table_store.get_cells("keep") == set(make_cells(1, prefix="k"))
        assert result.tables == {"keep": 1}

    @pytest.mark.asyncio
    async def test_tables_processed_in_sorted_order(self, table_store, snapshot):
        await table_store.connect()
        for name in ["b", "a", "c"]:
            table_store.create_table(name)
            write_snapshot(snapshot, name, make_cells(2, prefix=name))

        result = await restore(table_store, snapshot)

        assert table_store.cleared_tables == ["a", "b", "c"]
        assert [table for table, _ in table_store.apply_calls] == ["a", "b", "c"]
        assert list(result.tables) == ["a", "b", "c"]
        assert result.total_rows == 6

    @pytest.mark.asyncio
    async def test_clear_failure_aborts_before_any_write(self, table_store, snapshot):
        await table_store.connect()
        for name in ["a", "b"]:
            table_store.create_table(name)
            write_snapshot(snapshot, name, make_cells(2, prefix=name))
        table_store.fail_clear = {"b"}

        with pytest.raises(TableClearError) as exc_info:
            await restore(table_store, snapshot)

        assert exc_info.value.table == "b"
        assert table_store.apply_calls == []

    @pytest.mark.asyncio
    async def test_first_table_failure_aborts_run(self, table_store, snapshot):
        await table_store.connect()
        for name in ["a", "b"]:
            table_store.create_table(name)
            write_snapshot(snapshot, name, make_cells(2, prefix=name))
        corrupt_value(snapshot, "a", rowid=1)

        with pytest.raises(ChecksumMismatchError) as exc_info:
            await restore(table_store, snapshot)

        assert exc_info.value.table == "a"
        assert table_store.apply_calls == []

    @pytest.mark.asyncio
    async def test_snapshot_table_missing_remotely(self, table_store, snapshot):
        """Restore never creates remote tables; writing to a missing one fails."""
        await table_store.connect()
        write_snapshot(snapshot, "ghost", [Cell(b"r", "cf", "c", b"v", 1000)])

        with pytest.raises(BulkWriteError) as exc_info:
            await restore(table_store, snapshot)

        assert exc_info.value.table == "ghost"
