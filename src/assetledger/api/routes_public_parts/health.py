from __future__ import annotations

from fastapi import APIRouter, Request

from assetledger import __version__

router = APIRouter()


@router.get("/health")
def v1_health(request: Request):
    ex = getattr(request.app.state, "executor", None)
    return {
        "ok": True,
        "version": __version__,
        "ready": ex is not None,
        "backend": ex.backend if ex is not None else None,
    }


@router.get("/ready")
def v1_ready(request: Request):
    """Ready once an executor is attached and the ledger holds at least one asset."""
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        return {"ok": True, "ready": False, "seeded": False}
    seeded = ex.is_seeded()
    return {"ok": True, "ready": seeded, "seeded": seeded}
