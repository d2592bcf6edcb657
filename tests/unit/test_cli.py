"""
Unit tests for the btsnap command line.

Tests cover:
- Usage errors and exit codes
- The GCP safeguard
- Dispatching save/restore/verify against an in-memory store
"""

from pathlib import Path

import pytest

from btsnap.main import EXIT_FAILED, EXIT_OK, EXIT_USAGE, run
from btsnap.snapshot.store import SnapshotStore
from btsnap.store.memory import InMemoryTableStore
from tests.helpers import make_cells


@pytest.fixture
def emulator_env(monkeypatch):
    monkeypatch.setenv("BIGTABLE_EMULATOR_HOST", "localhost:8086")
    monkeypatch.delenv("BTSNAP_GCP", raising=False)
    monkeypatch.delenv("BTSNAP_DB", raising=False)


@pytest.fixture
def populated_store():
    store = InMemoryTableStore()
    store.put_cells("users", make_cells(3))
    store.put_cells("events", make_cells(2, prefix="e"))
    return store


class TestUsage:
    """Tests for argument handling."""

    def test_missing_action(self, emulator_env, capsys):
        assert run([]) == EXIT_USAGE
        assert "must provide an action" in capsys.readouterr().err

    def test_too_many_actions(self, emulator_env, capsys):
        assert run(["save", "restore"]) == EXIT_USAGE
        assert "expected only a single argument" in capsys.readouterr().err

    def test_unknown_action(self, emulator_env, capsys):
        assert run(["backup"]) == EXIT_USAGE
        assert "unrecognized action: 'backup'" in capsys.readouterr().err

    def test_safeguard_without_emulator(self, monkeypatch, capsys):
        monkeypatch.delenv("BIGTABLE_EMULATOR_HOST", raising=False)
        monkeypatch.delenv("BTSNAP_GCP", raising=False)

        assert run(["save"]) == EXIT_USAGE
        assert "BIGTABLE_EMULATOR_HOST must be set" in capsys.readouterr().err


class TestActions:
    """Tests for running actions end to end."""

    def test_save_then_verify(self, emulator_env, populated_store, data_dir, capsys):
        db = str(Path(data_dir) / "snap.db")

        assert run(["--db", db, "SAVE"], table_store=populated_store) == EXIT_OK
        assert "save completed successfully" in capsys.readouterr().out

        with SnapshotStore(db) as snapshot:
            assert snapshot.list_user_tables() == ["events", "users"]

        assert run(["--db", db, "verify"]) == EXIT_OK
        assert "Total: 5 rows" in capsys.readouterr().out

    def test_gcp_flag_bypasses_safeguard(self, monkeypatch, populated_store, data_dir):
        monkeypatch.delenv("BIGTABLE_EMULATOR_HOST", raising=False)
        db = str(Path(data_dir) / "snap.db")

        assert run(["--gcp", "--db", db, "save"], table_store=populated_store) == EXIT_OK

    def test_restore(self, emulator_env, populated_store, data_dir):
        db = str(Path(data_dir) / "snap.db")
        assert run(["--db", db, "save"], table_store=populated_store) == EXIT_OK

        target = InMemoryTableStore()
        target.create_table("users")
        target.create_table("events")

        assert run(["--db", db, "restore"], table_store=target) == EXIT_OK
        assert target.get_cells("users") == set(make_cells(3))

    def test_failure_exit_code(self, emulator_env, data_dir):
        store = InMemoryTableStore()
        store.fail_list = True

        assert run(["--db", str(Path(data_dir) / "snap.db"), "save"], table_store=store) == EXIT_FAILED
        assert not store.is_connected

    @pytest.mark.parametrize("action", ["restore", "verify"])
    def test_missing_snapshot_file_fails_before_touching_remote(
        self, emulator_env, data_dir, action
    ):
        db = Path(data_dir) / "typo.db"
        target = InMemoryTableStore()
        target.put_cells("users", make_cells(3))

        assert run(["--db", str(db), action], table_store=target) == EXIT_FAILED
        assert not db.exists()
        assert target.cleared_tables == []
        assert target.get_cells("users") == set(make_cells(3))

    def test_malformed_snapshot_row_fails_cleanly(self, emulator_env, populated_store, data_dir):
        db = str(Path(data_dir) / "snap.db")
        assert run(["--db", db, "save"], table_store=populated_store) == EXIT_OK
        with SnapshotStore(db) as snapshot:
            snapshot.conn.execute("UPDATE users SET value = 'value-x' WHERE rowid = 2")

        assert run(["--db", db, "verify"]) == EXIT_FAILED
