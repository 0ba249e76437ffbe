# src/assetledger/ledger/constants.py
"""Ledger constants.

Two asset kinds exist in the domain:
- gem: spendable currency, conserved by every transfer
- exp: earned experience, minted only by gem -> exp conversion
"""

from __future__ import annotations

from typing import Tuple

# Composite key namespace for every asset record.
ASSET_NAMESPACE: str = "Asset"

KIND_GEM: str = "gem"
KIND_EXP: str = "exp"

# Owner that collects gems spent on conversion.
COLLECTOR_OWNER: str = "Distrib"

# (kind, owner, amount), written unconditionally at ledger genesis.
GENESIS_ASSETS: Tuple[Tuple[str, str, int], ...] = (
    (KIND_EXP, "Distrib", 5),
    (KIND_GEM, "SEO", 3000),
    (KIND_GEM, "Team1", 1),
    (KIND_EXP, "Team1", 6),
    (KIND_GEM, "Team2", 15),
    (KIND_EXP, "Team2", 15),
)
