from __future__ import annotations

import os
from typing import Optional

from fastapi import FastAPI

from assetledger.api.errors import install_error_handlers
from assetledger.api.routes_public import public_router
from assetledger.api.structured_logging import RequestLogMiddleware
from assetledger.runtime.config import LedgerConfig, load_ledger_config
from assetledger.runtime.executor import build_executor as _build_executor
from assetledger.runtime.ledger_logging import configure_structured_logging


def build_executor(cfg: LedgerConfig):
    """Build a LedgerExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `assetledger.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor(cfg)


def create_app(*, boot_runtime: bool = True, cfg: Optional[LedgerConfig] = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load config + attach executor
      - False: keep lightweight for unit tests / import-time validation
    """
    cfg = cfg or load_ledger_config()
    configure_structured_logging(cfg.log_level)

    mode = (cfg.mode or os.environ.get("ASSETLEDGER_MODE", "prod")).strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Asset Ledger API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Asset Ledger API")

    app.state.cfg = cfg
    app.state.executor = build_executor(cfg) if boot_runtime else None

    app.add_middleware(RequestLogMiddleware)
    install_error_handlers(app)
    app.include_router(public_router)

    return app
