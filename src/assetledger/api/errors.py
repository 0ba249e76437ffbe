from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from assetledger.runtime.errors import LedgerError


# Not frozen: contextlib assigns __traceback__ on exceptions passing through @contextmanager.
@dataclass(eq=False)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})


_STATUS_BY_CODE = {
    "not_found": 404,
    "already_exists": 409,
    "insufficient_balance": 409,
    "conflict": 409,
    "invalid_argument": 400,
    "serialization_error": 500,
    "store_error": 500,
}


def api_error_from_ledger_error(e: LedgerError) -> ApiError:
    details = dict(e.details) if isinstance(e.details, dict) else ({} if e.details is None else {"info": e.details})
    if e.retryable:
        details["retryable"] = True
    return ApiError(_STATUS_BY_CODE.get(e.code, 500), e.code, e.reason, details)


def _body(err: ApiError) -> Dict[str, Any]:
    return {"ok": False, "error": {"code": err.code, "message": err.message, "details": err.details}}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_body(exc))

    @app.exception_handler(LedgerError)
    async def _ledger_error(_request: Request, exc: LedgerError) -> JSONResponse:
        err = api_error_from_ledger_error(exc)
        return JSONResponse(status_code=err.status_code, content=_body(err))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": [str(p) for p in e.get("loc", ())], "msg": str(e.get("msg", "")), "type": str(e.get("type", ""))}
            for e in exc.errors()
        ]
        err = ApiError.bad_request("invalid_request", "request failed validation", {"errors": errors})
        return JSONResponse(status_code=err.status_code, content=_body(err))
