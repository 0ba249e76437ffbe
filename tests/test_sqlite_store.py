from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from assetledger.ledger import contract
from assetledger.ledger.keys import asset_key
from assetledger.runtime.errors import InsufficientBalance, StoreError
from assetledger.runtime.sqlite_db import SqliteDB, SqliteKVStore
from assetledger.runtime.store import TxContext


def _pragma(con: sqlite3.Connection, name: str) -> int | str:
    row = con.execute(f"PRAGMA {name};").fetchone()
    if row is None:
        raise AssertionError(f"missing pragma: {name}")
    return row[0]


def test_sqlite_operational_pragmas_are_applied(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ASSETLEDGER_MODE", "prod")
    monkeypatch.delenv("ASSETLEDGER_SQLITE_SYNCHRONOUS", raising=False)
    monkeypatch.setenv("ASSETLEDGER_SQLITE_BUSY_TIMEOUT_MS", "1234")
    monkeypatch.setenv("ASSETLEDGER_SQLITE_WAL_AUTOCHECKPOINT", "777")
    monkeypatch.setenv("ASSETLEDGER_SQLITE_CACHE_SIZE_KIB", str(4096))

    db = SqliteDB(path=str(tmp_path / "ledger.db"))
    db.init_schema()

    with db.connection() as con:
        assert str(_pragma(con, "journal_mode")).lower() == "wal"
        # FULL is the prod default.
        assert int(_pragma(con, "synchronous")) == 2
        assert int(_pragma(con, "temp_store")) == 2
        assert int(_pragma(con, "busy_timeout")) == 1234
        assert int(_pragma(con, "wal_autocheckpoint")) == 777
        assert int(_pragma(con, "cache_size")) == -4096


def test_schema_version_mismatch_refuses_to_start(tmp_path: Path) -> None:
    path = str(tmp_path / "ledger.db")
    db = SqliteDB(path=path)
    db.init_schema()
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError):
        SqliteDB(path=path).init_schema()


def test_state_survives_reopen(tmp_path: Path) -> None:
    path = str(tmp_path / "ledger.db")
    store = SqliteKVStore(db=SqliteDB(path=path))
    with store.transaction() as stub:
        contract.init_ledger(TxContext(stub=stub))

    reopened = SqliteKVStore(db=SqliteDB(path=path))
    with reopened.transaction() as stub:
        assert len(contract.get_all_assets(TxContext(stub=stub))) == 6


def test_failed_unit_of_work_rolls_back_every_write(tmp_path: Path) -> None:
    store = SqliteKVStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))
    with store.transaction() as stub:
        contract.init_ledger(TxContext(stub=stub))
    before = store.snapshot()

    with pytest.raises(InsufficientBalance):
        with store.transaction() as stub:
            ctx = TxContext(stub=stub)
            contract.transfer_asset(ctx, "gem", "SEO", "Team1", 10)
            # Second step fails after the first already wrote inside the same unit of work.
            contract.transfer_asset(ctx, "gem", "Team2", "Team1", 10_000)

    assert store.snapshot() == before


def test_put_bumps_row_version(tmp_path: Path) -> None:
    store = SqliteKVStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))
    key = asset_key("gem", "alice")
    assert store.version(key) == 0
    with store.transaction() as stub:
        contract.create_asset(TxContext(stub=stub), "gem", "alice", 1)
    with store.transaction() as stub:
        contract.update_asset(TxContext(stub=stub), "gem", "alice", 2)
    assert store.version(key) == 2


def test_open_cursors_are_closed_with_the_transaction(tmp_path: Path) -> None:
    store = SqliteKVStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))
    with store.transaction() as stub:
        contract.init_ledger(TxContext(stub=stub))
        it = stub.scan_prefix(asset_key("gem", "")[:-1])
        assert stub.open_iterators == 1
    assert stub.open_iterators == 0
    assert list(it) == []


def test_stub_is_unusable_after_commit(tmp_path: Path) -> None:
    store = SqliteKVStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))
    with store.transaction() as stub:
        pass
    with pytest.raises(StoreError):
        stub.get_state(asset_key("gem", "x"))
