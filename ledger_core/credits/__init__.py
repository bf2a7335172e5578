# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from ledger_core.credits.config import CreditsConfig
from ledger_core.credits.context import LedgerContext, build_firestore_context
from ledger_core.credits.entries import LedgerEntry, LedgerEntryType, PaymentProvider
from ledger_core.credits.errors import (
    AccountNotFoundError,
    AmbiguousTargetError,
    EntityNotFoundError,
    InsufficientFundsError,
    LedgerError,
    NotOwnerError,
    RelistNotAllowedError,
    TransactionAbortedError,
    ValidationError,
)
from ledger_core.credits.facade import CreditsFacade, OperationResult
from ledger_core.credits.adapters.memory import InMemoryLedgerStore
from ledger_core.credits.normalizer import normalize
from ledger_core.credits.services import (
    BalanceService,
    EarningService,
    HistorySummary,
    SpendingService,
    summarize_history,
)
from ledger_core.credits.store import DocRef, LedgerStore, Transaction
from ledger_core.credits.types import (
    Account,
    BalanceView,
    EarnReceipt,
    NormalizedCredits,
    PoolSplit,
    SpendReceipt,
)

__all__ = [
    "CreditsConfig",
    "LedgerContext",
    "build_firestore_context",
    "LedgerEntry",
    "LedgerEntryType",
    "PaymentProvider",
    "LedgerError",
    "ValidationError",
    "AmbiguousTargetError",
    "AccountNotFoundError",
    "EntityNotFoundError",
    "NotOwnerError",
    "InsufficientFundsError",
    "RelistNotAllowedError",
    "TransactionAbortedError",
    "CreditsFacade",
    "OperationResult",
    "InMemoryLedgerStore",
    "normalize",
    "BalanceService",
    "EarningService",
    "HistorySummary",
    "SpendingService",
    "summarize_history",
    "DocRef",
    "LedgerStore",
    "Transaction",
    "Account",
    "BalanceView",
    "EarnReceipt",
    "NormalizedCredits",
    "PoolSplit",
    "SpendReceipt",
]
