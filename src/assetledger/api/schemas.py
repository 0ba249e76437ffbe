"""Pydantic request schemas for the HTTP surface.

These exist only for HTTP input validation. Business rules (non-negative
balances, positive transfer amounts, existence) are enforced by the ledger
operations so every caller gets the same error codes.
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field, StrictInt


class CreateAssetRequest(BaseModel):
    kind: str = Field(..., description="Asset kind, e.g. gem or exp")
    owner: str = Field(..., description="Holder identity")
    amount: StrictInt = Field(..., description="Initial balance")


class UpdateAssetRequest(BaseModel):
    amount: StrictInt = Field(..., description="New balance")


class TransferAssetRequest(BaseModel):
    kind: str
    from_owner: str
    to_owner: str
    amount: StrictInt


class ConvertGemToExpRequest(BaseModel):
    user: str
    gem_amount: StrictInt = Field(..., description="Gems to spend; the same amount of exp is minted")


class InvokeRequest(BaseModel):
    fn: str = Field(..., description="Ledger function name, e.g. TransferAsset")
    args: Dict[str, Any] = Field(default_factory=dict)
