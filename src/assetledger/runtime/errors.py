from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class LedgerError(Exception):
    """Canonical error type for ledger operations and store failures."""

    code: str
    reason: str
    details: Any | None = None

    retryable = False

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class NotFound(LedgerError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("not_found", reason, details)


class AlreadyExists(LedgerError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("already_exists", reason, details)


class InsufficientBalance(LedgerError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("insufficient_balance", reason, details)


class InvalidArgument(LedgerError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("invalid_argument", reason, details)


class SerializationError(LedgerError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("serialization_error", reason, details)


class StoreError(LedgerError):
    """Opaque failure from the backing store (I/O, locking, schema)."""

    def __init__(self, reason: str, details: Any | None = None, *, code: str = "store_error") -> None:
        super().__init__(code, reason, details)


class ConflictError(StoreError):
    """
    A concurrently committed unit of work invalidated this one's reads.
    Nothing was applied; the caller re-runs the whole invocation from scratch.
    """

    retryable = True

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(reason, details, code="conflict")


__all__ = [
    "LedgerError",
    "NotFound",
    "AlreadyExists",
    "InsufficientBalance",
    "InvalidArgument",
    "SerializationError",
    "StoreError",
    "ConflictError",
]
