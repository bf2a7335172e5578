# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions as gexc

from ledger_core.credits.config import CreditsConfig
from ledger_core.credits.entries import LedgerEntry
from ledger_core.credits.errors import TransactionAbortedError
from ledger_core.credits.store import DocRef

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _FirestoreTransaction:
    def __init__(self, db: firestore.Client, transaction: Any) -> None:
        self._db = db
        self._transaction = transaction

    def get(self, ref: DocRef) -> Optional[Dict[str, Any]]:
        snapshot = self._db.document(ref.path).get(transaction=self._transaction)
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def create(self, ref: DocRef, data: Mapping[str, Any]) -> None:
        self._transaction.create(
            self._db.document(ref.path),
            {
                "createdAt": firestore.SERVER_TIMESTAMP,
                **data,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            },
        )

    def update(self, ref: DocRef, data: Mapping[str, Any]) -> None:
        self._transaction.update(
            self._db.document(ref.path),
            {**data, "updatedAt": firestore.SERVER_TIMESTAMP},
        )


class FirestoreLedgerStore:
    def __init__(
        self,
        db: firestore.Client,
        *,
        config: CreditsConfig | None = None,
        max_attempts: int = 5,
    ) -> None:
        self._db = db
        self._config = config or CreditsConfig()
        self._max_attempts = max_attempts
        self._users = self._db.collection(self._config.users_collection)

    def get_document(self, ref: DocRef) -> Optional[Dict[str, Any]]:
        snapshot = self._db.document(ref.path).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def run_transaction(self, fn: Callable[[_FirestoreTransaction], T]) -> T:
        transaction = self._db.transaction(max_attempts=self._max_attempts)

        @firestore.transactional
        def _run(transaction):  # type: ignore[no-untyped-def]
            return fn(_FirestoreTransaction(self._db, transaction))

        try:
            return _run(transaction)
        except gexc.Aborted as exc:
            logger.warning("[FirestoreLedgerStore] Transaction aborted: %s", exc)
            raise TransactionAbortedError(attempts=self._max_attempts) from exc
        except ValueError as exc:
            # transactional() wraps the last Aborted in a ValueError once attempts run out
            if isinstance(exc.__cause__, gexc.Aborted):
                logger.warning("[FirestoreLedgerStore] Transaction retries exhausted: %s", exc)
                raise TransactionAbortedError(attempts=self._max_attempts) from exc
            raise

    def _ledger(self, user_id: str):  # type: ignore[no-untyped-def]
        return self._users.document(user_id).collection(self._config.ledger_subcollection)

    def append_entry(self, entry: LedgerEntry) -> str:
        _, doc_ref = self._ledger(entry.user_id).add(
            {**entry.to_dict(), "createdAt": firestore.SERVER_TIMESTAMP}
        )
        return doc_ref.id

    def list_entries(self, user_id: str, *, limit: int) -> List[LedgerEntry]:
        query = (
            self._ledger(user_id)
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        entries: List[LedgerEntry] = []
        for snapshot in query.stream():
            try:
                entries.append(LedgerEntry.from_dict(snapshot.to_dict() or {}, entry_id=snapshot.id))
            except ValueError as exc:
                logger.warning("[FirestoreLedgerStore] Skipping unreadable ledger entry %s: %s", snapshot.id, exc)
        return entries
