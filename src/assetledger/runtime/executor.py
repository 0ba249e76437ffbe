from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from assetledger.ledger import contract
from assetledger.ledger.constants import COLLECTOR_OWNER
from assetledger.ledger.keys import asset_prefix
from assetledger.runtime.config import LedgerConfig, load_ledger_config
from assetledger.runtime.dispatch import READ_ONLY_FUNCTIONS, dispatch
from assetledger.runtime.errors import ConflictError, LedgerError
from assetledger.runtime.ledger_logging import log_event
from assetledger.runtime.sqlite_db import SqliteDB, SqliteKVStore
from assetledger.runtime.store import KVStore, MemoryKVStore, TxContext

Json = Dict[str, Any]
T = TypeVar("T")

logger = logging.getLogger("assetledger.executor")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


@dataclass
class InvokeResult:
    ok: bool
    fn: str
    tx_id: str
    result: Any = None
    attempts: int = 1


class LedgerExecutor:
    """Host side of the ledger: one all-or-nothing unit of work per invocation.

    Ledger operations never retry. When the store reports a ConflictError the
    executor, acting as the caller, re-runs the whole invocation from scratch
    (fresh transaction, fresh reads) up to `max_conflict_retries` times.
    """

    def __init__(
        self,
        *,
        store: KVStore,
        collector_owner: str = COLLECTOR_OWNER,
        max_conflict_retries: int = 3,
    ) -> None:
        self.store = store
        self.collector_owner = str(collector_owner)
        self.max_conflict_retries = max(0, int(max_conflict_retries))

    @property
    def backend(self) -> str:
        return str(getattr(self.store, "backend", "unknown"))

    def execute(
        self,
        op: Callable[[TxContext], T],
        *,
        client_id: str = "",
        label: str = "op",
        read_only: bool = False,
    ) -> T:
        """Run `op` inside a unit of work; commit on return, roll back on any exception."""
        out, _attempts, _tx_id = self._run(op, client_id=client_id, label=label, read_only=read_only)
        return out

    def _run(
        self,
        op: Callable[[TxContext], T],
        *,
        client_id: str,
        label: str,
        read_only: bool = False,
    ) -> Tuple[T, int, str]:
        attempt = 0
        while True:
            attempt += 1
            tx_id = uuid.uuid4().hex
            started = time.monotonic()
            try:
                with self.store.transaction(read_only=read_only) as stub:
                    out = op(TxContext(stub=stub, tx_id=tx_id, client_id=client_id))
            except ConflictError as e:
                if attempt > self.max_conflict_retries:
                    log_event(
                        logger,
                        "invoke_conflict_exhausted",
                        level=logging.WARNING,
                        fn=label,
                        tx_id=tx_id,
                        attempts=attempt,
                        reason=e.reason,
                    )
                    raise
                log_event(logger, "invoke_conflict_retry", fn=label, tx_id=tx_id, attempt=attempt, reason=e.reason)
                continue
            except LedgerError as e:
                log_event(
                    logger,
                    "invoke_rejected",
                    fn=label,
                    tx_id=tx_id,
                    client_id=client_id,
                    code=e.code,
                    reason=e.reason,
                    duration_ms=_elapsed_ms(started),
                )
                raise
            except Exception as e:
                log_event(
                    logger,
                    "invoke_failed",
                    level=logging.ERROR,
                    fn=label,
                    tx_id=tx_id,
                    client_id=client_id,
                    error_type=type(e).__name__,
                    error=str(e),
                    duration_ms=_elapsed_ms(started),
                )
                raise

            log_event(
                logger,
                "invoke_ok",
                fn=label,
                tx_id=tx_id,
                client_id=client_id,
                attempts=attempt,
                duration_ms=_elapsed_ms(started),
            )
            return out, attempt, tx_id

    def invoke(self, fn: str, args: Optional[Json] = None, *, client_id: str = "") -> InvokeResult:
        """Dispatch a named ledger function (e.g. "TransferAsset") as one unit of work.

        Read-only functions run in a transaction that is rolled back, never committed.
        """
        result, attempts, tx_id = self._run(
            lambda ctx: dispatch(ctx, fn, args, collector=self.collector_owner),
            client_id=client_id,
            label=str(fn),
            read_only=str(fn or "").strip() in READ_ONLY_FUNCTIONS,
        )
        return InvokeResult(ok=True, fn=str(fn), tx_id=tx_id, result=result, attempts=attempts)

    def is_seeded(self) -> bool:
        def _any_asset(ctx: TxContext) -> bool:
            with ctx.stub.scan_prefix(asset_prefix()) as it:
                return next(it, None) is not None

        return self.execute(_any_asset, label="is_seeded", read_only=True)

    def seed_if_empty(self) -> bool:
        """Run InitLedger once, only if no asset exists yet. Returns True if it seeded."""

        def _seed(ctx: TxContext) -> bool:
            with ctx.stub.scan_prefix(asset_prefix()) as it:
                if next(it, None) is not None:
                    return False
            contract.init_ledger(ctx)
            return True

        return self.execute(_seed, label="InitLedger")


def build_store(cfg: LedgerConfig) -> KVStore:
    if cfg.store_backend == "memory":
        return MemoryKVStore()
    Path(cfg.db_path).parent.mkdir(parents=True, exist_ok=True)
    return SqliteKVStore(db=SqliteDB(path=cfg.db_path))


def build_executor(cfg: Optional[LedgerConfig] = None) -> LedgerExecutor:
    cfg = cfg or load_ledger_config()
    ex = LedgerExecutor(
        store=build_store(cfg),
        collector_owner=cfg.collector_owner,
        max_conflict_retries=cfg.max_conflict_retries,
    )
    if cfg.seed_on_boot:
        seeded = ex.seed_if_empty()
        log_event(logger, "ledger_boot", backend=ex.backend, seeded=seeded)
    return ex


__all__ = ["InvokeResult", "LedgerExecutor", "build_executor", "build_store"]
