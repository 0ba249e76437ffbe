from __future__ import annotations

import pytest

from assetledger.ledger import contract
from assetledger.runtime.errors import InsufficientBalance, InvalidArgument, NotFound
from assetledger.runtime.executor import LedgerExecutor


def _run(ledger: LedgerExecutor, op, *args, **kwargs):
    return ledger.execute(lambda ctx: op(ctx, *args, **kwargs))


def _balance(ledger: LedgerExecutor, kind: str, owner: str) -> int:
    return _run(ledger, contract.read_asset, kind, owner).amount


def _snapshot(ledger: LedgerExecutor) -> list:
    return sorted((a.kind, a.owner, a.amount) for a in _run(ledger, contract.get_all_assets))


def test_convert_moves_gem_to_collector_and_mints_exp(ledger: LedgerExecutor) -> None:
    _run(ledger, contract.init_ledger)
    gem_before = _run(ledger, contract.total_supply, "gem")
    exp_before = _run(ledger, contract.total_supply, "exp")

    _run(ledger, contract.convert_gem_to_exp, "Team2", 10)

    assert _balance(ledger, "gem", "Team2") == 5
    assert _balance(ledger, "gem", "Distrib") == 10
    assert _balance(ledger, "exp", "Team2") == 25
    assert _run(ledger, contract.total_supply, "gem") == gem_before
    assert _run(ledger, contract.total_supply, "exp") == exp_before + 10


def test_convert_accumulates_on_existing_collector_balance(ledger: LedgerExecutor) -> None:
    _run(ledger, contract.init_ledger)
    _run(ledger, contract.convert_gem_to_exp, "SEO", 100)
    _run(ledger, contract.convert_gem_to_exp, "SEO", 50)

    assert _balance(ledger, "gem", "SEO") == 2850
    assert _balance(ledger, "gem", "Distrib") == 150
    # SEO had no exp record: it is created at zero then credited.
    assert _balance(ledger, "exp", "SEO") == 150


def test_convert_uses_configured_collector(ledger: LedgerExecutor) -> None:
    _run(ledger, contract.init_ledger)
    _run(ledger, contract.convert_gem_to_exp, "SEO", 3, collector="Vault")
    assert _balance(ledger, "gem", "Vault") == 3
    assert _run(ledger, contract.asset_exists, "gem", "Distrib") is False


@pytest.mark.parametrize("amount", [0, -1])
def test_convert_non_positive_amount_is_invalid_and_changes_nothing(ledger: LedgerExecutor, amount: int) -> None:
    _run(ledger, contract.init_ledger)
    before = _snapshot(ledger)
    with pytest.raises(InvalidArgument):
        _run(ledger, contract.convert_gem_to_exp, "SEO", amount)
    assert _snapshot(ledger) == before


def test_convert_without_gem_record_is_not_found(ledger: LedgerExecutor) -> None:
    _run(ledger, contract.init_ledger)
    before = _snapshot(ledger)
    with pytest.raises(NotFound) as e:
        _run(ledger, contract.convert_gem_to_exp, "Distrib", 1)
    assert e.value.reason == "user_has_no_gem"
    assert _snapshot(ledger) == before


def test_convert_more_than_balance_is_rejected_atomically(ledger: LedgerExecutor) -> None:
    _run(ledger, contract.init_ledger)
    before = _snapshot(ledger)
    with pytest.raises(InsufficientBalance):
        _run(ledger, contract.convert_gem_to_exp, "Team1", 2)
    assert _snapshot(ledger) == before
