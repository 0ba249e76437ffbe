from __future__ import annotations

import sys
from pathlib import Path

# Ensure local "src/" takes precedence over any globally-installed "assetledger" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

import pytest  # noqa: E402

from assetledger.runtime.executor import LedgerExecutor  # noqa: E402
from assetledger.runtime.sqlite_db import SqliteDB, SqliteKVStore  # noqa: E402
from assetledger.runtime.store import MemoryKVStore  # noqa: E402


@pytest.fixture(params=["memory", "sqlite"])
def ledger(request: pytest.FixtureRequest, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> LedgerExecutor:
    """A LedgerExecutor over each store backend."""
    if request.param == "memory":
        store = MemoryKVStore()
    else:
        monkeypatch.setenv("ASSETLEDGER_MODE", "dev")
        store = SqliteKVStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))
    return LedgerExecutor(store=store, max_conflict_retries=0)
