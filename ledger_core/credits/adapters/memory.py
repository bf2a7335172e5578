# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""In-memory document store with the same optimistic-commit contract as Firestore."""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from ledger_core.credits.entries import LedgerEntry
from ledger_core.credits.errors import TransactionAbortedError
from ledger_core.credits.store import DocRef
from ledger_core.credits.types import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

_Path = Tuple[str, ...]


class ReadAfterWriteError(RuntimeError):
    pass


class _MemoryTransaction:
    def __init__(self, store: "InMemoryLedgerStore") -> None:
        self._store = store
        self.reads: Dict[_Path, int] = {}
        self.writes: List[Tuple[str, _Path, Dict[str, Any]]] = []

    def get(self, ref: DocRef) -> Optional[Dict[str, Any]]:
        if self.writes:
            raise ReadAfterWriteError("Transactions require all reads to happen before writes.")
        data, version = self._store._read(ref.segments)
        self.reads.setdefault(ref.segments, version)
        return data

    def create(self, ref: DocRef, data: Mapping[str, Any]) -> None:
        self.writes.append(("create", ref.segments, dict(data)))

    def update(self, ref: DocRef, data: Mapping[str, Any]) -> None:
        self.writes.append(("update", ref.segments, dict(data)))


class InMemoryLedgerStore:
    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int = 5,
    ) -> None:
        self._clock = clock
        self._max_attempts = max_attempts
        self._docs: Dict[_Path, Dict[str, Any]] = {}
        self._versions: Dict[_Path, int] = {}
        self._entries: Dict[str, List[LedgerEntry]] = {}
        self._entry_ids = itertools.count(1)
        self._lock = threading.RLock()

    # -- documents ------------------------------------------------------------

    def put_document(self, ref: DocRef, data: Mapping[str, Any]) -> None:
        """Write a document outside any transaction (fixtures, migrations)."""
        with self._lock:
            self._docs[ref.segments] = copy.deepcopy(dict(data))
            self._versions[ref.segments] = self._versions.get(ref.segments, 0) + 1

    def get_document(self, ref: DocRef) -> Optional[Dict[str, Any]]:
        data, _ = self._read(ref.segments)
        return data

    def _read(self, path: _Path) -> Tuple[Optional[Dict[str, Any]], int]:
        with self._lock:
            data = self._docs.get(path)
            return (copy.deepcopy(data) if data is not None else None), self._versions.get(path, 0)

    # -- transactions ---------------------------------------------------------

    def run_transaction(self, fn: Callable[[_MemoryTransaction], T]) -> T:
        for attempt in range(1, self._max_attempts + 1):
            tx = _MemoryTransaction(self)
            result = fn(tx)
            if self._commit(tx):
                return result
            logger.debug("[InMemoryLedgerStore] Commit conflict on attempt %d, retrying", attempt)
        logger.warning("[InMemoryLedgerStore] Transaction aborted after %d attempts", self._max_attempts)
        raise TransactionAbortedError(attempts=self._max_attempts)

    def _commit(self, tx: _MemoryTransaction) -> bool:
        with self._lock:
            for path, version in tx.reads.items():
                if self._versions.get(path, 0) != version:
                    return False
            for op, path, _ in tx.writes:
                if op == "create" and path in self._docs:
                    return False
                if op == "update" and path not in self._docs:
                    raise KeyError(f"No document to update: {'/'.join(path)}")

            now = self._clock()
            for op, path, data in tx.writes:
                if op == "create":
                    self._docs[path] = {"createdAt": now, **copy.deepcopy(data), "updatedAt": now}
                else:
                    self._docs[path].update(copy.deepcopy(data))
                    self._docs[path]["updatedAt"] = now
                self._versions[path] = self._versions.get(path, 0) + 1
            return True

    # -- ledger ---------------------------------------------------------------

    def append_entry(self, entry: LedgerEntry) -> str:
        with self._lock:
            entry_id = f"{next(self._entry_ids):012d}"
            stored = replace(entry, entry_id=entry_id, created_at=self._clock())
            self._entries.setdefault(entry.user_id, []).append(stored)
            return entry_id

    def list_entries(self, user_id: str, *, limit: int) -> List[LedgerEntry]:
        with self._lock:
            entries = list(self._entries.get(user_id, []))
        entries.sort(key=lambda e: (e.created_at, e.entry_id or ""), reverse=True)
        return entries[:limit]
