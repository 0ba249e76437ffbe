# src/assetledger/runtime/store.py
"""World-state contract + in-memory transactional store.

Ledger logic sees storage only through a WorldState stub bound to one unit of
work. Stores hand such stubs out via `transaction()`: a context manager that
commits on clean exit and rolls back on any exception, so a failed invocation
never leaves a partial write behind.

MemoryKVStore is optimistic (the execute/validate/commit model of a
permissioned ledger peer):
  - every committed key carries a version, bumped on each put/delete
  - a transaction records the version it observed for each key it read
    (absent keys included) and, for prefix scans, the full key->version map
    under the prefix (phantom protection)
  - writes are buffered; reads see the transaction's own buffered writes
  - commit validates the read set under the store lock; any mismatch raises
    ConflictError and nothing is applied
"""

from __future__ import annotations

import itertools
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from assetledger.runtime.errors import ConflictError, StoreError

KV = Tuple[str, bytes]


class StateIterator:
    """One-shot cursor over (key, value) pairs.

    Usable as a context manager; close() is idempotent and releases the
    underlying cursor. Iterating a closed cursor yields nothing.
    """

    def __init__(self, rows: Iterator[KV], *, on_close: Optional[Callable[[], None]] = None) -> None:
        self._rows = rows
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "StateIterator":
        return self

    def __next__(self) -> KV:
        if self._closed:
            raise StopIteration
        return next(self._rows)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "StateIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@runtime_checkable
class WorldState(Protocol):
    def get_state(self, key: str) -> Optional[bytes]: ...
    def put_state(self, key: str, value: bytes) -> None: ...
    def del_state(self, key: str) -> None: ...
    def scan_prefix(self, prefix: str) -> StateIterator: ...


@runtime_checkable
class KVStore(Protocol):
    backend: str

    def transaction(self, *, read_only: bool = False) -> ContextManager[WorldState]: ...


@dataclass(frozen=True)
class TxContext:
    """Explicit transaction handle passed as the first argument to every ledger operation."""

    stub: WorldState
    tx_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    client_id: str = ""


def _require_key(key: str) -> str:
    if not isinstance(key, str) or not key:
        raise StoreError("bad_key", {"key": repr(key)})
    return key


def _require_value(value: bytes) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise StoreError("bad_value", {"type": type(value).__name__})
    return bytes(value)


class MemoryTransaction:
    """A single optimistic unit of work against a MemoryKVStore."""

    def __init__(self, store: "MemoryKVStore", *, read_only: bool = False) -> None:
        self._store = store
        self.read_only = bool(read_only)
        self._reads: Dict[str, int] = {}
        self._range_reads: Dict[str, Dict[str, int]] = {}
        self._writes: Dict[str, Optional[bytes]] = {}
        self._open_iterators = 0
        self._done = False

    def _require_open(self) -> None:
        if self._done:
            raise StoreError("transaction_closed", {})

    def _require_writable(self) -> None:
        self._require_open()
        if self.read_only:
            raise StoreError("read_only_transaction", {})

    @property
    def write_set(self) -> Dict[str, Optional[bytes]]:
        return dict(self._writes)

    def get_state(self, key: str) -> Optional[bytes]:
        self._require_open()
        k = _require_key(key)
        if k in self._writes:
            return self._writes[k]
        version, value = self._store._committed(k)
        self._reads.setdefault(k, version)
        return value

    def put_state(self, key: str, value: bytes) -> None:
        self._require_writable()
        self._writes[_require_key(key)] = _require_value(value)

    def del_state(self, key: str) -> None:
        self._require_writable()
        self._writes[_require_key(key)] = None

    def scan_prefix(self, prefix: str) -> StateIterator:
        self._require_open()
        p = _require_key(prefix)

        committed = self._store._committed_range(p)
        self._range_reads.setdefault(p, {k: ver for k, (ver, _) in committed.items()})

        merged: Dict[str, bytes] = {k: v for k, (_, v) in committed.items()}
        for k, v in self._writes.items():
            if not k.startswith(p):
                continue
            if v is None:
                merged.pop(k, None)
            else:
                merged[k] = v

        self._open_iterators += 1

        def _release() -> None:
            self._open_iterators -= 1

        rows = iter([(k, merged[k]) for k in sorted(merged)])
        return StateIterator(rows, on_close=_release)

    @property
    def open_iterators(self) -> int:
        return self._open_iterators

    def commit(self) -> None:
        self._require_open()
        self._done = True
        self._store._validate_and_apply(self._reads, self._range_reads, self._writes)

    def rollback(self) -> None:
        self._done = True
        self._writes.clear()


class MemoryKVStore:
    """Thread-safe in-process store with optimistic concurrency control."""

    backend = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, bytes] = {}
        # Versions survive deletes so a delete+recreate is still seen as a change.
        self._versions: Dict[str, int] = {}
        self._clock = itertools.count(1)
        self.commits = 0
        self.conflicts = 0

    def _committed(self, key: str) -> Tuple[int, Optional[bytes]]:
        with self._lock:
            return self._versions.get(key, 0), self._data.get(key)

    def _committed_range(self, prefix: str) -> Dict[str, Tuple[int, bytes]]:
        with self._lock:
            return {k: (self._versions.get(k, 0), v) for k, v in self._data.items() if k.startswith(prefix)}

    def _validate_and_apply(
        self,
        reads: Dict[str, int],
        range_reads: Dict[str, Dict[str, int]],
        writes: Dict[str, Optional[bytes]],
    ) -> None:
        with self._lock:
            for k, seen in reads.items():
                if self._versions.get(k, 0) != seen:
                    self.conflicts += 1
                    raise ConflictError("read_conflict", {"key": repr(k)})

            for prefix, seen_range in range_reads.items():
                now = {k: self._versions.get(k, 0) for k in self._data if k.startswith(prefix)}
                if now != seen_range:
                    self.conflicts += 1
                    raise ConflictError("phantom_read_conflict", {"prefix": repr(prefix)})

            for k, v in writes.items():
                if v is None:
                    self._data.pop(k, None)
                else:
                    self._data[k] = v
                self._versions[k] = next(self._clock)
            self.commits += 1

    def begin(self, *, read_only: bool = False) -> MemoryTransaction:
        return MemoryTransaction(self, read_only=read_only)

    @contextmanager
    def transaction(self, *, read_only: bool = False) -> Iterator[MemoryTransaction]:
        """Unit of work: commit on clean exit, roll back on any exception.

        A read-only unit of work is always rolled back; it never validates or
        bumps versions, so it suits invocations that read one key or one range.
        """
        tx = self.begin(read_only=read_only)
        try:
            yield tx
        except BaseException:
            tx.rollback()
            raise
        if tx.read_only:
            tx.rollback()
        else:
            tx.commit()

    def snapshot(self) -> Dict[str, bytes]:
        """Committed key -> value copy (tests and debugging)."""
        with self._lock:
            return dict(self._data)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


__all__ = [
    "KV",
    "KVStore",
    "MemoryKVStore",
    "MemoryTransaction",
    "StateIterator",
    "TxContext",
    "WorldState",
]
