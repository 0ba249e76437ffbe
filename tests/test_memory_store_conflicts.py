from __future__ import annotations

import threading

import pytest

from assetledger.ledger import contract
from assetledger.ledger.keys import asset_key
from assetledger.runtime.errors import ConflictError, StoreError
from assetledger.runtime.executor import LedgerExecutor
from assetledger.runtime.store import MemoryKVStore, TxContext


def _seeded_store() -> MemoryKVStore:
    store = MemoryKVStore()
    with store.transaction() as stub:
        contract.init_ledger(TxContext(stub=stub))
    return store


def _read(store: MemoryKVStore, kind: str, owner: str) -> int:
    with store.transaction() as stub:
        return contract.read_asset(TxContext(stub=stub), kind, owner).amount


def test_conflicting_transfers_one_commits_other_conflicts() -> None:
    store = _seeded_store()

    t1 = store.begin()
    t2 = store.begin()
    contract.transfer_asset(TxContext(stub=t1), "gem", "SEO", "Team1", 100)
    contract.transfer_asset(TxContext(stub=t2), "gem", "SEO", "Team2", 200)

    t1.commit()
    with pytest.raises(ConflictError) as e:
        t2.commit()
    assert e.value.retryable is True

    # Exactly t1's effect; t2 applied nothing.
    assert _read(store, "gem", "SEO") == 2900
    assert _read(store, "gem", "Team1") == 101
    assert _read(store, "gem", "Team2") == 15


def test_retry_after_conflict_yields_serial_result() -> None:
    store = _seeded_store()
    ex = LedgerExecutor(store=store, max_conflict_retries=3)

    # t1 reads SEO, then a concurrent invocation commits, then t1 tries to commit.
    t1 = store.begin()
    contract.transfer_asset(TxContext(stub=t1), "gem", "SEO", "Team1", 100)
    ex.invoke("TransferAsset", {"kind": "gem", "from_owner": "SEO", "to_owner": "Team2", "amount": 200})
    with pytest.raises(ConflictError):
        t1.commit()

    # The caller re-runs t1 from scratch.
    res = ex.invoke("TransferAsset", {"kind": "gem", "from_owner": "SEO", "to_owner": "Team1", "amount": 100})
    assert res.attempts == 1
    assert _read(store, "gem", "SEO") == 2700
    assert _read(store, "gem", "Team1") == 101
    assert _read(store, "gem", "Team2") == 215


def test_non_overlapping_transactions_both_commit() -> None:
    store = _seeded_store()
    t1 = store.begin()
    t2 = store.begin()
    contract.update_asset(TxContext(stub=t1), "exp", "Team1", 60)
    contract.update_asset(TxContext(stub=t2), "exp", "Team2", 150)
    t1.commit()
    t2.commit()
    assert _read(store, "exp", "Team1") == 60
    assert _read(store, "exp", "Team2") == 150


def test_concurrent_creates_of_same_identity_cannot_both_commit() -> None:
    store = MemoryKVStore()
    t1 = store.begin()
    t2 = store.begin()
    contract.create_asset(TxContext(stub=t1), "gem", "alice", 1)
    contract.create_asset(TxContext(stub=t2), "gem", "alice", 2)
    t1.commit()
    with pytest.raises(ConflictError):
        t2.commit()
    assert _read(store, "gem", "alice") == 1


def test_range_scan_detects_phantom_insert() -> None:
    store = _seeded_store()
    t1 = store.begin()
    assert len(contract.get_all_assets(TxContext(stub=t1))) == 6
    t1.put_state(asset_key("exp", "marker"), b'{"Amount":0,"ID":"exp","Owner":"marker"}')

    with store.transaction() as stub:
        contract.create_asset(TxContext(stub=stub), "gem", "late", 1)

    with pytest.raises(ConflictError) as e:
        t1.commit()
    assert e.value.reason == "phantom_read_conflict"


def test_reads_see_own_buffered_writes_but_not_others() -> None:
    store = _seeded_store()
    t1 = store.begin()
    contract.update_asset(TxContext(stub=t1), "gem", "SEO", 1)
    assert contract.read_asset(TxContext(stub=t1), "gem", "SEO").amount == 1
    assert _read(store, "gem", "SEO") == 3000
    t1.rollback()
    assert _read(store, "gem", "SEO") == 3000


def test_closed_transaction_refuses_further_use() -> None:
    store = MemoryKVStore()
    t1 = store.begin()
    t1.commit()
    with pytest.raises(StoreError):
        t1.get_state(asset_key("gem", "x"))


def test_threaded_transfers_never_lose_updates() -> None:
    store = MemoryKVStore()
    ex = LedgerExecutor(store=store, max_conflict_retries=100)
    ex.invoke("CreateAsset", {"kind": "gem", "owner": "bank", "amount": 400})

    def _worker(i: int) -> None:
        for _ in range(25):
            ex.invoke("TransferAsset", {"kind": "gem", "from_owner": "bank", "to_owner": f"user{i}", "amount": 1})

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert _read(store, "gem", "bank") == 400 - 8 * 25
    for i in range(8):
        assert _read(store, "gem", f"user{i}") == 25
    assert ex.invoke("TotalSupply", {"kind": "gem"}).result == 400
