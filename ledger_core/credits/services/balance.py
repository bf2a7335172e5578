# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Balance reads and the ledger read API."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from ledger_core.credits.context import LedgerContext
from ledger_core.credits.entries import LedgerEntry
from ledger_core.credits.errors import ValidationError
from ledger_core.credits.normalizer import normalize
from ledger_core.credits.store import Transaction
from ledger_core.credits.types import Account, BalanceView

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 500


@dataclass(frozen=True, slots=True)
class HistorySummary:
    """Fold of ledger entries: what an account balance should add up to before expiry write-offs."""
    earned: int = 0
    spent: int = 0
    entries: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)

    @property
    def net(self) -> int:
        return self.earned - self.spent

    def to_dict(self) -> Dict[str, Any]:
        return {
            "earned": self.earned,
            "spent": self.spent,
            "net": self.net,
            "entries": self.entries,
            "by_type": dict(self.by_type),
        }


def summarize_history(entries: Iterable[LedgerEntry]) -> HistorySummary:
    earned = 0
    spent = 0
    count = 0
    by_type: Dict[str, int] = defaultdict(int)
    for entry in entries:
        count += 1
        by_type[entry.entry_type.value] += entry.amount
        if entry.amount >= 0:
            earned += entry.amount
        else:
            spent += -entry.amount
    return HistorySummary(earned=earned, spent=spent, entries=count, by_type=dict(by_type))


class BalanceService:
    def __init__(self, ctx: LedgerContext) -> None:
        self.ctx = ctx

    def get_balance(self, user_id: str) -> BalanceView:
        """
        Normalized balance of an account.

        An expired promotional pool is written off in the same transaction
        as the read. A missing account reads as an empty balance.
        """
        user_ref = self.ctx.user_ref(user_id)

        def _read(tx: Transaction) -> BalanceView:
            data = tx.get(user_ref)
            if data is None:
                return BalanceView(uid=user_id, credits=0, promotional_credits=0, permanent_credits=0)
            account = Account.from_dict(user_id, data)
            normalized = normalize(account, self.ctx.now())
            if normalized.changed:
                tx.update(
                    user_ref,
                    {
                        "credits": normalized.credits,
                        "signupBonusCreditsRemaining": normalized.signup_bonus_credits_remaining,
                    },
                )
                logger.info(
                    "[BalanceService] Expired %d promotional credits for %s",
                    account.credits - normalized.credits, user_id,
                )
            promotional = min(max(normalized.signup_bonus_credits_remaining, 0), normalized.credits)
            return BalanceView(
                uid=user_id,
                credits=normalized.credits,
                promotional_credits=promotional,
                permanent_credits=normalized.credits - promotional,
                promotional_expires_at=account.signup_bonus_expires_at if promotional > 0 else None,
                collection_subscription_expires_at=account.collection_subscription_expires_at,
            )

        return self.ctx.store.run_transaction(_read)

    def get_credits(self, user_id: str) -> int:
        return self.get_balance(user_id).credits

    def list_transactions(self, user_id: str, limit: int | None = None) -> List[LedgerEntry]:
        """Newest-first ledger entries of one account."""
        if limit is None:
            limit = self.ctx.config.history_default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError("Limita istoricului trebuie să fie pozitivă.", limit=limit)
        return self.ctx.store.list_entries(user_id, limit=min(limit, MAX_HISTORY_LIMIT))
