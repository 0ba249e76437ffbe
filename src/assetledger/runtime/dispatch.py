# src/assetledger/runtime/dispatch.py

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional

from assetledger.ledger import contract
from assetledger.ledger.constants import COLLECTOR_OWNER
from assetledger.ledger.types import Asset
from assetledger.runtime.errors import InvalidArgument
from assetledger.runtime.store import TxContext

Json = Dict[str, Any]
Handler = Callable[[TxContext, Json, str], Any]

# ASCII only: str.isdigit() and int() both accept other Unicode digits.
_INT_RE = re.compile(r"-?[0-9]+")


def _get(args: Json, *names: str) -> Any:
    """First present value among `names` (snake_case and chaincode-style spellings both accepted)."""
    for n in names:
        if n in args:
            return args[n]
    raise InvalidArgument("missing_argument", {"argument": names[0]})


def _str_arg(args: Json, *names: str) -> str:
    v = _get(args, *names)
    if not isinstance(v, str):
        raise InvalidArgument("argument_not_str", {"argument": names[0], "type": type(v).__name__})
    return v


def _int_arg(args: Json, *names: str) -> int:
    v = _get(args, *names)
    if isinstance(v, bool):
        raise InvalidArgument("argument_not_int", {"argument": names[0], "value": v})
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        s = v.strip()
        if _INT_RE.fullmatch(s):
            return int(s)
    raise InvalidArgument("argument_not_int", {"argument": names[0], "value": repr(v)})


def _to_json(result: Any) -> Any:
    if isinstance(result, Asset):
        return result.to_json()
    if isinstance(result, list):
        return [_to_json(r) for r in result]
    return result


def _init_ledger(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.init_ledger(ctx)


def _create_asset(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.create_asset(
        ctx,
        _str_arg(args, "kind", "id", "ID"),
        _str_arg(args, "owner", "Owner"),
        _int_arg(args, "amount", "Amount"),
    )


def _read_asset(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.read_asset(ctx, _str_arg(args, "kind", "id", "ID"), _str_arg(args, "owner", "Owner"))


def _update_asset(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.update_asset(
        ctx,
        _str_arg(args, "kind", "id", "ID"),
        _str_arg(args, "owner", "Owner"),
        _int_arg(args, "amount", "Amount"),
    )


def _delete_asset(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.delete_asset(ctx, _str_arg(args, "kind", "id", "ID"), _str_arg(args, "owner", "Owner"))


def _asset_exists(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.asset_exists(ctx, _str_arg(args, "kind", "id", "ID"), _str_arg(args, "owner", "Owner"))


def _transfer_asset(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.transfer_asset(
        ctx,
        _str_arg(args, "kind", "id", "ID"),
        _str_arg(args, "from_owner", "from", "owner"),
        _str_arg(args, "to_owner", "to", "new_owner", "newOwner"),
        _int_arg(args, "amount", "Amount"),
    )


def _convert_gem_to_exp(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.convert_gem_to_exp(
        ctx,
        _str_arg(args, "user"),
        _int_arg(args, "gem_amount", "gemAmount", "amount"),
        collector=collector,
    )


def _get_all_assets(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.get_all_assets(ctx)


def _get_assets_by_kind(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.get_assets_by_kind(ctx, _str_arg(args, "kind", "id", "ID"))


def _total_supply(ctx: TxContext, args: Json, collector: str) -> Any:
    return contract.total_supply(ctx, _str_arg(args, "kind", "id", "ID"))


_HANDLERS: Dict[str, Handler] = {
    "InitLedger": _init_ledger,
    "CreateAsset": _create_asset,
    "ReadAsset": _read_asset,
    "UpdateAsset": _update_asset,
    "DeleteAsset": _delete_asset,
    "AssetExists": _asset_exists,
    "TransferAsset": _transfer_asset,
    "ConvertGemToExp": _convert_gem_to_exp,
    # Name used by the deployed chaincode for the same operation.
    "TransferGemToDistrib": _convert_gem_to_exp,
    "GetAllAssets": _get_all_assets,
    "GetAssetsByKind": _get_assets_by_kind,
    "TotalSupply": _total_supply,
}

# Invocations that never write; the executor runs them in a read-only unit of work that is rolled back.
READ_ONLY_FUNCTIONS = frozenset({"ReadAsset", "AssetExists", "GetAllAssets", "GetAssetsByKind", "TotalSupply"})


def supported_functions() -> List[str]:
    return sorted(_HANDLERS)


def dispatch(ctx: TxContext, fn: str, args: Optional[Json] = None, *, collector: str = COLLECTOR_OWNER) -> Any:
    """Route one invocation to its ledger operation; returns a JSON-ready result."""
    name = str(fn or "").strip()
    handler = _HANDLERS.get(name)
    if handler is None:
        raise InvalidArgument("unknown_function", {"fn": name, "supported": supported_functions()})
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise InvalidArgument("args_not_object", {"type": type(args).__name__})
    return _to_json(handler(ctx, args, collector))


__all__ = ["READ_ONLY_FUNCTIONS", "dispatch", "supported_functions"]
