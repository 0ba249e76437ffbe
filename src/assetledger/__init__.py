# src/assetledger/__init__.py
"""
Asset ledger.

Layout:
  - ledger.keys: composite key derivation over the "Asset" namespace
  - ledger.types: Asset record + canonical JSON codec
  - ledger.contract: the state-transition logic (create/read/update/transfer/convert/enumerate)
  - runtime.store: world-state protocol + in-memory optimistic store
  - runtime.sqlite_db: SQLite-backed transactional store
  - runtime.executor: one unit of work per invocation
  - api: FastAPI host surface

Ledger logic never touches storage except through the TxContext it is handed.
"""

from __future__ import annotations

__version__ = "0.3.0"
