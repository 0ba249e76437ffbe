from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from assetledger.api.routes_public_parts.common import _invoke
from assetledger.api.schemas import (
    ConvertGemToExpRequest,
    CreateAssetRequest,
    InvokeRequest,
    TransferAssetRequest,
    UpdateAssetRequest,
)

router = APIRouter()

Json = Dict[str, Any]


@router.post("/ledger/init")
def v1_init_ledger(request: Request) -> Json:
    _invoke(request, "InitLedger")
    return {"ok": True}


@router.get("/assets")
def v1_assets_list(request: Request, kind: Optional[str] = None) -> Json:
    if kind:
        assets = _invoke(request, "GetAssetsByKind", {"kind": kind})
    else:
        assets = _invoke(request, "GetAllAssets")
    return {"ok": True, "assets": assets, "count": len(assets)}


@router.post("/assets", status_code=201)
def v1_asset_create(body: CreateAssetRequest, request: Request) -> Json:
    asset = _invoke(request, "CreateAsset", body.model_dump())
    return {"ok": True, "asset": asset}


@router.post("/assets/transfer")
def v1_asset_transfer(body: TransferAssetRequest, request: Request) -> Json:
    prior_owner = _invoke(request, "TransferAsset", body.model_dump())
    return {"ok": True, "prior_owner": prior_owner}


@router.post("/assets/convert")
def v1_gem_to_exp(body: ConvertGemToExpRequest, request: Request) -> Json:
    _invoke(request, "ConvertGemToExp", body.model_dump())
    return {"ok": True, "user": body.user, "converted": body.gem_amount}


@router.get("/assets/{kind}/{owner}")
def v1_asset_read(kind: str, owner: str, request: Request) -> Json:
    return {"ok": True, "asset": _invoke(request, "ReadAsset", {"kind": kind, "owner": owner})}


@router.put("/assets/{kind}/{owner}")
def v1_asset_update(kind: str, owner: str, body: UpdateAssetRequest, request: Request) -> Json:
    asset = _invoke(request, "UpdateAsset", {"kind": kind, "owner": owner, "amount": body.amount})
    return {"ok": True, "asset": asset}


@router.delete("/assets/{kind}/{owner}")
def v1_asset_delete(kind: str, owner: str, request: Request) -> Json:
    _invoke(request, "DeleteAsset", {"kind": kind, "owner": owner})
    return {"ok": True}


@router.get("/assets/{kind}/{owner}/exists")
def v1_asset_exists(kind: str, owner: str, request: Request) -> Json:
    exists = _invoke(request, "AssetExists", {"kind": kind, "owner": owner})
    return {"ok": True, "exists": bool(exists)}


@router.get("/supply/{kind}")
def v1_total_supply(kind: str, request: Request) -> Json:
    return {"ok": True, "kind": kind, "total": _invoke(request, "TotalSupply", {"kind": kind})}


@router.post("/invoke")
def v1_invoke(body: InvokeRequest, request: Request) -> Json:
    """Generic dispatch by ledger function name (chaincode-style invocation)."""
    return {"ok": True, "fn": body.fn, "result": _invoke(request, body.fn, body.args)}
