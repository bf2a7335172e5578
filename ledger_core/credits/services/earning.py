# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""
Earning Service

Grants that increase the balance:
- signup bonus, created together with the account
- dual-sided referral bonus, both accounts in one transaction
- confirmed purchases (stripe / iap / netopia), idempotent per payment reference
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from ledger_core.credits import fees
from ledger_core.credits.context import LedgerContext
from ledger_core.credits.entries import (
    PURCHASE_ENTRY_TYPES,
    LedgerEntry,
    LedgerEntryType,
    PaymentProvider,
)
from ledger_core.credits.errors import AccountNotFoundError, ValidationError
from ledger_core.credits.normalizer import add_months
from ledger_core.credits.store import Transaction
from ledger_core.credits.types import EarnReceipt, as_int, to_datetime

logger = logging.getLogger(__name__)

# Fields owned by the ledger; a profile merge never overwrites them.
LEDGER_FIELDS = frozenset(
    {
        "credits",
        "signupBonusCreditsRemaining",
        "signupBonusExpiresAt",
        "collectionSubscriptionExpiresAt",
        "referralCode",
        "referredBy",
        "referralBonusApplied",
        "createdAt",
        "updatedAt",
    }
)


@dataclass(frozen=True, slots=True)
class ReferralOutcome:
    applied: bool
    new_user_id: str
    inviter_id: Optional[str] = None
    reason: Optional[str] = None
    new_user_credits: Optional[int] = None
    inviter_credits: Optional[int] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied": self.applied,
            "new_user_id": self.new_user_id,
            "inviter_id": self.inviter_id,
            "reason": self.reason,
            "new_user_credits": self.new_user_credits,
            "inviter_credits": self.inviter_credits,
        }


def _profile_fields(profile: Mapping[str, Any] | None) -> Dict[str, Any]:
    if not profile:
        return {}
    dropped = sorted(k for k in profile if k in LEDGER_FIELDS)
    if dropped:
        logger.warning("[EarningService] Ignoring ledger fields in profile data: %s", dropped)
    return {k: v for k, v in profile.items() if k not in LEDGER_FIELDS}


class EarningService:
    def __init__(self, ctx: LedgerContext) -> None:
        self.ctx = ctx
        self.cfg = ctx.config

    def _append_entry(self, entry: LedgerEntry) -> None:
        try:
            self.ctx.store.append_entry(entry)
        except Exception as e:
            logger.warning(
                "[EarningService] Ledger append failed for %s (%s, amount=%d): %s",
                entry.user_id, entry.entry_type.value, entry.amount, e,
            )

    def signup_grant(self, now: datetime) -> tuple[int, datetime]:
        """Bonus amount and its expiry for an account created at `now`."""
        if now < self.cfg.signup_promo_end:
            amount = self.cfg.signup_bonus_before_promo_end
            months = self.cfg.signup_bonus_months_before_promo_end
        else:
            amount = self.cfg.signup_bonus_after_promo_end
            months = self.cfg.signup_bonus_months_after_promo_end
        return amount, add_months(now, months)

    # -------------------------------------------------------------------------
    # Signup
    # -------------------------------------------------------------------------

    def create_account(
        self,
        user_id: str,
        referral_code: str | None = None,
        profile: Mapping[str, Any] | None = None,
    ) -> EarnReceipt:
        """
        Create the account with the signup bonus pre-applied.

        On an existing account no bonus is granted; a missing `referredBy`
        may still be attached and profile fields merged.
        """
        if not user_id:
            raise ValidationError("Identificatorul utilizatorului lipsește.")
        user_ref = self.ctx.user_ref(user_id)
        referred_by = referral_code.strip() if referral_code and referral_code.strip() else None
        if referred_by == user_id:
            referred_by = None
        extra = _profile_fields(profile)

        def _create(tx: Transaction) -> tuple[EarnReceipt, Optional[datetime]]:
            existing = tx.get(user_ref)
            if existing is None:
                amount, expires_at = self.signup_grant(self.ctx.now())
                data: Dict[str, Any] = {
                    **extra,
                    "credits": amount,
                    "signupBonusCreditsRemaining": amount,
                    "signupBonusExpiresAt": expires_at,
                    "referralCode": user_id,
                }
                if referred_by:
                    data["referredBy"] = referred_by
                    data["referralBonusApplied"] = False
                tx.create(user_ref, data)
                return EarnReceipt(LedgerEntryType.SIGNUP_BONUS.value, amount, amount), expires_at

            updates = dict(extra)
            if referred_by and not existing.get("referredBy"):
                updates["referredBy"] = referred_by
            if updates:
                tx.update(user_ref, updates)
            current = as_int(existing.get("credits"))
            return EarnReceipt(LedgerEntryType.SIGNUP_BONUS.value, 0, current, replayed=True), None

        receipt, expires_at = self.ctx.store.run_transaction(_create)
        if receipt.replayed:
            logger.info("[EarningService] Account %s already exists, no signup bonus", user_id)
            return receipt

        logger.info(
            "[EarningService] Created account %s with %d signup credits (expires %s)",
            user_id, receipt.credits_added, expires_at.isoformat() if expires_at else None,
        )
        self._append_entry(
            LedgerEntry(
                user_id=user_id,
                entry_type=LedgerEntryType.SIGNUP_BONUS,
                amount=receipt.credits_added,
                expires_at=expires_at,
            )
        )
        return receipt

    # -------------------------------------------------------------------------
    # Referral
    # -------------------------------------------------------------------------

    def apply_referral_bonus(self, new_user_id: str) -> ReferralOutcome:
        """
        Credit both sides of a referral exactly once.

        The new user gets the bonus on top of the promotional pool (same
        expiry as the signup bonus); the inviter gets permanent credits.
        """
        new_user_ref = self.ctx.user_ref(new_user_id)
        new_user_bonus = self.cfg.referral_new_user_bonus
        inviter_bonus = self.cfg.referral_inviter_bonus

        def _apply(tx: Transaction) -> ReferralOutcome:
            new_user = tx.get(new_user_ref)
            if new_user is None:
                return ReferralOutcome(False, new_user_id, reason="new_user_missing")
            inviter_id = new_user.get("referredBy")
            if not inviter_id:
                return ReferralOutcome(False, new_user_id, reason="not_referred")
            applied_flag = new_user.get("referralBonusApplied")
            if applied_flag is True:
                return ReferralOutcome(False, new_user_id, inviter_id, reason="already_applied")
            # Only accounts created with a referral carry the pending flag;
            # a referrer attached to an existing account never pays out.
            if applied_flag is not False:
                return ReferralOutcome(False, new_user_id, inviter_id, reason="not_eligible")

            inviter_ref = self.ctx.user_ref(inviter_id)
            inviter = tx.get(inviter_ref)
            if inviter is None:
                return ReferralOutcome(False, new_user_id, inviter_id, reason="inviter_missing")

            new_user_credits = as_int(new_user.get("credits")) + new_user_bonus
            remaining = as_int(new_user.get("signupBonusCreditsRemaining")) + new_user_bonus
            inviter_credits = as_int(inviter.get("credits")) + inviter_bonus

            tx.update(
                new_user_ref,
                {
                    "credits": new_user_credits,
                    "signupBonusCreditsRemaining": remaining,
                    "referralBonusApplied": True,
                },
            )
            tx.update(inviter_ref, {"credits": inviter_credits})
            return ReferralOutcome(
                applied=True,
                new_user_id=new_user_id,
                inviter_id=inviter_id,
                new_user_credits=new_user_credits,
                inviter_credits=inviter_credits,
                expires_at=to_datetime(new_user.get("signupBonusExpiresAt")),
            )

        outcome = self.ctx.store.run_transaction(_apply)
        if not outcome.applied:
            logger.debug("[EarningService] Referral bonus skipped for %s: %s", new_user_id, outcome.reason)
            return outcome

        logger.info(
            "[EarningService] Referral bonus applied: %s (+%d), inviter %s (+%d)",
            new_user_id, new_user_bonus, outcome.inviter_id, inviter_bonus,
        )
        self._append_entry(
            LedgerEntry(
                user_id=new_user_id,
                entry_type=LedgerEntryType.REFERRAL_NEW_USER_BONUS,
                amount=new_user_bonus,
                related_user_id=outcome.inviter_id,
                expires_at=outcome.expires_at,
            )
        )
        self._append_entry(
            LedgerEntry(
                user_id=outcome.inviter_id,
                entry_type=LedgerEntryType.REFERRAL_INVITER_BONUS,
                amount=inviter_bonus,
                related_user_id=new_user_id,
            )
        )
        return outcome

    # -------------------------------------------------------------------------
    # Purchases
    # -------------------------------------------------------------------------

    def apply_purchase(
        self,
        user_id: str,
        paid_amount: Decimal | int | float | str | None,
        payment_reference: str,
        provider: PaymentProvider | str = PaymentProvider.STRIPE,
    ) -> EarnReceipt:
        """
        Credit a provider-confirmed payment.

        A processed-payment marker is written in the same transaction as
        the credit, so redelivered confirmations are no-ops.
        """
        try:
            provider = PaymentProvider(provider)
        except ValueError:
            raise ValidationError("Furnizor de plată necunoscut.", provider=provider) from None
        if not payment_reference or not str(payment_reference).strip():
            raise ValidationError("Referința plății lipsește.")
        payment_reference = str(payment_reference).strip()
        entry_type = PURCHASE_ENTRY_TYPES[provider]

        credits_to_add = fees.credits_for_payment(self.cfg, paid_amount)
        if credits_to_add <= 0:
            logger.info(
                "[EarningService] Payment %s/%s of %s buys no credits, skipping",
                provider.value, payment_reference, paid_amount,
            )
            return EarnReceipt(entry_type.value, 0, None)

        user_ref = self.ctx.user_ref(user_id)
        marker_ref = self.ctx.payment_marker_ref(provider, payment_reference)
        paid = str(Decimal(str(paid_amount)))

        def _apply(tx: Transaction) -> EarnReceipt:
            marker = tx.get(marker_ref)
            if marker is not None:
                if marker.get("userId") != user_id:
                    raise ValidationError(
                        "Plata a fost deja procesată pentru alt cont.",
                        provider=provider.value,
                        payment_reference=payment_reference,
                    )
                return EarnReceipt(
                    entry_type.value,
                    as_int(marker.get("creditsAdded")),
                    as_int(marker.get("newCredits")),
                    replayed=True,
                )
            user_data = tx.get(user_ref)
            if user_data is None:
                raise AccountNotFoundError(user_id=user_id)
            new_credits = as_int(user_data.get("credits")) + credits_to_add
            tx.update(user_ref, {"credits": new_credits})
            tx.create(
                marker_ref,
                {
                    "userId": user_id,
                    "provider": provider.value,
                    "paymentReference": payment_reference,
                    "paidAmount": paid,
                    "creditsAdded": credits_to_add,
                    "newCredits": new_credits,
                },
            )
            return EarnReceipt(entry_type.value, credits_to_add, new_credits)

        receipt = self.ctx.store.run_transaction(_apply)
        if receipt.replayed:
            logger.info(
                "[EarningService] Payment %s/%s already processed, not crediting again",
                provider.value, payment_reference,
            )
            return receipt

        logger.info(
            "[EarningService] Purchase %s/%s: +%d credits for %s",
            provider.value, payment_reference, credits_to_add, user_id,
        )
        self._append_entry(
            LedgerEntry(
                user_id=user_id,
                entry_type=entry_type,
                amount=credits_to_add,
                provider=provider.value,
                payment_reference=payment_reference,
                paid_amount=paid,
            )
        )
        return receipt

    def apply_iap_purchase(self, user_id: str, product_id: str, transaction_id: str) -> EarnReceipt:
        """In-app purchase identified by its store product id."""
        paid_amount = fees.iap_paid_amount(self.cfg, product_id)
        return self.apply_purchase(user_id, paid_amount, transaction_id, PaymentProvider.IAP)
