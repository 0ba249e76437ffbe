from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from assetledger.api.errors import ApiError
from assetledger.runtime.executor import LedgerExecutor

Json = Dict[str, Any]


def _executor(request: Request) -> LedgerExecutor:
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _client_id(request: Request) -> str:
    """Caller identity as supplied by the host (x-client-id header)."""
    return str(request.headers.get("x-client-id") or "").strip()


def _invoke(request: Request, fn: str, args: Json | None = None) -> Any:
    return _executor(request).invoke(fn, args or {}, client_id=_client_id(request)).result
