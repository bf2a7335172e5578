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
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from ledger_core.config import LedgerEngineConfig
from ledger_core.credits.config import CreditsConfig
from ledger_core.credits.entries import PaymentProvider, build_payment_key, build_spend_key
from ledger_core.credits.store import DocRef, LedgerStore
from ledger_core.credits.types import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LedgerContext:
    """Everything a ledger service needs, built once and passed by reference."""

    store: LedgerStore
    config: CreditsConfig = field(default_factory=CreditsConfig)
    clock: Callable[[], datetime] = utcnow

    def now(self) -> datetime:
        return self.clock()

    def user_ref(self, user_id: str) -> DocRef:
        return DocRef.of(self.config.users_collection, user_id)

    def product_ref(self, product_id: str) -> DocRef:
        return DocRef.of(self.config.products_collection, product_id)

    def auction_ref(self, auction_id: str) -> DocRef:
        return DocRef.of(self.config.auctions_collection, auction_id)

    def spend_receipt_ref(self, user_id: str, client_key: str) -> DocRef:
        return self.user_ref(user_id).child(
            self.config.spend_receipts_subcollection, build_spend_key(user_id, client_key)
        )

    def payment_marker_ref(self, provider: PaymentProvider, payment_reference: str) -> DocRef:
        return DocRef.of(
            self.config.processed_payments_collection, build_payment_key(provider, payment_reference)
        )


def build_firestore_context(
    engine_config: LedgerEngineConfig | None = None,
    *,
    credits_config: CreditsConfig | None = None,
) -> LedgerContext:
    """Initialize (or reuse) the named firebase app and wrap it in a context."""
    import firebase_admin
    from firebase_admin import credentials, firestore

    from ledger_core.credits.adapters.firestore import FirestoreLedgerStore

    engine_config = engine_config or LedgerEngineConfig.from_env()
    credits_config = credits_config or CreditsConfig.load_from_env()

    try:
        app = firebase_admin.get_app(engine_config.firebase_app_name)
    except ValueError:
        if engine_config.credentials_path:
            cred = credentials.Certificate(engine_config.credentials_path)
        else:
            cred = credentials.ApplicationDefault()
        options = {"projectId": engine_config.project_id} if engine_config.project_id else None
        app = firebase_admin.initialize_app(cred, options, name=engine_config.firebase_app_name)
        logger.info("[LedgerContext] Initialized firebase app '%s'", engine_config.firebase_app_name)

    store = FirestoreLedgerStore(
        firestore.client(app=app),
        config=credits_config,
        max_attempts=engine_config.max_transaction_attempts,
    )
    return LedgerContext(store=store, config=credits_config)
