# src/assetledger/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from assetledger.api.routes_public_parts.assets import router as assets_router
from assetledger.api.routes_public_parts.health import router as health_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(assets_router, prefix="/v1", tags=["assets"])
