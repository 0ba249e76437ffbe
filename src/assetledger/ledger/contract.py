# src/assetledger/ledger/contract.py
"""Asset ledger state-transition logic.

Every operation takes the transaction handle (TxContext) as its first argument
and touches storage only through ctx.stub. All reads and writes of one call
belong to the same unit of work; the host commits them together or not at all,
so operations here never need to undo anything on failure. They also keep no
state between calls, which makes any of them safe to re-run from scratch after
a conflict.

Every (kind, owner) access goes through asset_key(); no operation writes under
any other key shape.
"""

from __future__ import annotations

from typing import Any, List, Optional

from assetledger.ledger.constants import COLLECTOR_OWNER, GENESIS_ASSETS, KIND_EXP, KIND_GEM
from assetledger.ledger.keys import asset_key, asset_prefix, split_composite_key
from assetledger.ledger.types import Asset
from assetledger.runtime.errors import AlreadyExists, InsufficientBalance, InvalidArgument, NotFound, SerializationError
from assetledger.runtime.store import TxContext


def _as_name(v: Any, *, field: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise InvalidArgument("missing_" + field, {field: v})
    return v


def _as_amount(v: Any, *, field: str = "amount", positive: bool = False) -> int:
    # bool is an int subclass; disallow it explicitly
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidArgument("bad_" + field, {field: repr(v)})
    if v < 0 or (positive and v == 0):
        raise InvalidArgument("non_positive_" + field if positive else "negative_" + field, {field: v})
    return v


def _decode_at(raw: bytes, kind: str, owner: str) -> Asset:
    """Decode a stored record and check it describes the (kind, owner) its key names."""
    a = Asset.decode(raw)
    if a.kind != kind or a.owner != owner:
        raise SerializationError(
            "asset_identity_mismatch",
            {"kind": kind, "owner": owner, "ID": a.kind, "Owner": a.owner},
        )
    return a


def _load(ctx: TxContext, kind: str, owner: str) -> Optional[Asset]:
    raw = ctx.stub.get_state(asset_key(kind, owner))
    if raw is None:
        return None
    return _decode_at(raw, kind, owner)


def _load_or_zero(ctx: TxContext, kind: str, owner: str) -> Asset:
    a = _load(ctx, kind, owner)
    return a if a is not None else Asset(kind=kind, owner=owner, amount=0)


def _store(ctx: TxContext, asset: Asset) -> None:
    ctx.stub.put_state(asset_key(asset.kind, asset.owner), asset.encode())


def _require(ctx: TxContext, kind: str, owner: str) -> Asset:
    a = _load(ctx, kind, owner)
    if a is None:
        raise NotFound("asset_not_found", {"kind": kind, "owner": owner})
    return a


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------


def init_ledger(ctx: TxContext) -> None:
    """Write the genesis records, overwriting whatever sits at their keys. Run once at genesis."""
    for kind, owner, amount in GENESIS_ASSETS:
        _store(ctx, Asset(kind=kind, owner=owner, amount=amount))


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def asset_exists(ctx: TxContext, kind: str, owner: str) -> bool:
    return ctx.stub.get_state(asset_key(kind, owner)) is not None


def create_asset(ctx: TxContext, kind: str, owner: str, amount: int) -> Asset:
    kind = _as_name(kind, field="kind")
    owner = _as_name(owner, field="owner")
    amount = _as_amount(amount)

    if asset_exists(ctx, kind, owner):
        raise AlreadyExists("asset_already_exists", {"kind": kind, "owner": owner})

    asset = Asset(kind=kind, owner=owner, amount=amount)
    _store(ctx, asset)
    return asset


def read_asset(ctx: TxContext, kind: str, owner: str) -> Asset:
    return _require(ctx, kind, owner)


def update_asset(ctx: TxContext, kind: str, owner: str, amount: int) -> Asset:
    """Overwrite the balance of an existing record. Identity (kind, owner) never changes."""
    amount = _as_amount(amount)
    current = _require(ctx, kind, owner)
    updated = current.with_amount(amount)
    _store(ctx, updated)
    return updated


def delete_asset(ctx: TxContext, kind: str, owner: str) -> None:
    _require(ctx, kind, owner)
    ctx.stub.del_state(asset_key(kind, owner))


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


def transfer_asset(ctx: TxContext, kind: str, from_owner: str, to_owner: str, amount: int) -> str:
    """
    Move `amount` of `kind` from one owner to another; returns the prior owner.

    The destination is credited (created at zero if absent), never overwritten,
    so the per-kind total is unchanged. Reads observe this unit of work's own
    writes, which makes a self-transfer a no-op.
    """
    to_owner = _as_name(to_owner, field="to_owner")
    amount = _as_amount(amount, positive=True)

    src = _require(ctx, kind, from_owner)
    if amount > src.amount:
        raise InsufficientBalance(
            "insufficient_balance",
            {"kind": kind, "owner": from_owner, "balance": src.amount, "amount": amount},
        )

    _store(ctx, src.with_amount(src.amount - amount))

    dst = _load_or_zero(ctx, kind, to_owner)
    _store(ctx, dst.with_amount(dst.amount + amount))

    return from_owner


def convert_gem_to_exp(ctx: TxContext, user: str, gem_amount: int, *, collector: str = COLLECTOR_OWNER) -> None:
    """
    Spend `gem_amount` gems for the same amount of exp.

    Gems move from the user to the collector (conserved); exp is minted for the
    user, so total exp supply grows by `gem_amount`.
    """
    if isinstance(gem_amount, bool) or not isinstance(gem_amount, int) or gem_amount <= 0:
        raise InvalidArgument("gem_amount_must_be_positive", {"gem_amount": repr(gem_amount)})

    user_gem = _load(ctx, KIND_GEM, user)
    if user_gem is None:
        raise NotFound("user_has_no_gem", {"user": user})
    if user_gem.amount < gem_amount:
        raise InsufficientBalance(
            "insufficient_gem_balance",
            {"user": user, "balance": user_gem.amount, "amount": gem_amount},
        )

    _store(ctx, user_gem.with_amount(user_gem.amount - gem_amount))

    collector_gem = _load_or_zero(ctx, KIND_GEM, collector)
    _store(ctx, collector_gem.with_amount(collector_gem.amount + gem_amount))

    user_exp = _load_or_zero(ctx, KIND_EXP, user)
    _store(ctx, user_exp.with_amount(user_exp.amount + gem_amount))


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------


def _scan(ctx: TxContext, prefix: str) -> List[Asset]:
    out: List[Asset] = []
    with ctx.stub.scan_prefix(prefix) as it:
        for key, raw in it:
            _namespace, attrs = split_composite_key(key)
            if len(attrs) != 2:
                raise SerializationError("asset_bad_key", {"key": repr(key)})
            out.append(_decode_at(raw, attrs[0], attrs[1]))
    return out


def get_all_assets(ctx: TxContext) -> List[Asset]:
    """Every asset record, in store iteration order. One bad record fails the whole scan."""
    return _scan(ctx, asset_prefix())


def get_assets_by_kind(ctx: TxContext, kind: str) -> List[Asset]:
    return _scan(ctx, asset_prefix(_as_name(kind, field="kind")))


def total_supply(ctx: TxContext, kind: str) -> int:
    return sum(a.amount for a in get_assets_by_kind(ctx, kind))


__all__ = [
    "init_ledger",
    "asset_exists",
    "create_asset",
    "read_asset",
    "update_asset",
    "delete_asset",
    "transfer_asset",
    "convert_gem_to_exp",
    "get_all_assets",
    "get_assets_by_kind",
    "total_supply",
]
