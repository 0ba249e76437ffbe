"""assetledger.ledger.types

Asset record + canonical store encoding.

Stored form is a JSON object with exactly {"Amount", "ID", "Owner"}; "ID" carries
the asset kind. Keys are sorted and separators compact so the same record always
encodes to the same bytes, whatever produced it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

from assetledger.runtime.errors import SerializationError

Json = Dict[str, Any]

_FIELDS = frozenset({"ID", "Owner", "Amount"})


def canon_json(obj: Any) -> str:
    """Canonical JSON encoding. Unknown types fail instead of being coerced."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class Asset:
    """Immutable value snapshot of one (kind, owner) balance."""

    kind: str
    owner: str
    amount: int

    def with_amount(self, amount: int) -> "Asset":
        return Asset(kind=self.kind, owner=self.owner, amount=int(amount))

    def to_json(self) -> Json:
        return {"ID": self.kind, "Owner": self.owner, "Amount": int(self.amount)}

    def encode(self) -> bytes:
        return canon_json(self.to_json()).encode("utf-8")

    @classmethod
    def from_json(cls, d: Any) -> "Asset":
        if not isinstance(d, dict):
            raise SerializationError("asset_not_object", {"type": type(d).__name__})

        missing = sorted(_FIELDS - set(d.keys()))
        if missing:
            raise SerializationError("asset_missing_fields", {"missing": missing})

        kind = d.get("ID")
        owner = d.get("Owner")
        amount = d.get("Amount")

        if not isinstance(kind, str) or not isinstance(owner, str):
            raise SerializationError("asset_bad_identity", {"ID": repr(kind), "Owner": repr(owner)})
        # bool is an int subclass; disallow it explicitly
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise SerializationError("asset_bad_amount", {"Amount": repr(amount)})
        if amount < 0:
            raise SerializationError("asset_negative_amount", {"Amount": amount})

        return cls(kind=kind, owner=owner, amount=amount)

    @classmethod
    def decode(cls, raw: bytes) -> "Asset":
        try:
            d = json.loads(raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw)
        except (UnicodeDecodeError, ValueError, TypeError) as e:
            raise SerializationError("asset_bad_json", {"error": str(e)}) from e
        return cls.from_json(d)


__all__ = ["Asset", "Json", "canon_json"]
