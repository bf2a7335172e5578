# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Spending Service.

Every paid feature funnels into one spend primitive that, inside a
single transaction:
1. Reads and normalizes the account (lazy promo expiry)
2. Reads the target entity and checks ownership
3. Verifies sufficient funds
4. Consumes the promotional pool first, then permanent credits
5. Advances the feature expiry (extend if active, else restart from now)
6. Commits account and target together

The ledger entry is appended after the commit, best-effort.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from ledger_core.credits import fees
from ledger_core.credits.context import LedgerContext
from ledger_core.credits.entries import LedgerEntry, LedgerEntryType
from ledger_core.credits.errors import (
    AccountNotFoundError,
    AmbiguousTargetError,
    EntityNotFoundError,
    InsufficientFundsError,
    NotOwnerError,
    RelistNotAllowedError,
    ValidationError,
)
from ledger_core.credits.normalizer import normalize, promotional_split, stack_days, stack_years
from ledger_core.credits.store import DocRef, Transaction
from ledger_core.credits.types import Account, SpendReceipt, to_datetime

logger = logging.getLogger(__name__)

ExpiryFn = Callable[[Optional[datetime], datetime], datetime]


@dataclass(frozen=True, slots=True)
class SpendTarget:
    """Entity whose fields a spend advances."""
    ref: DocRef
    not_found_message: str
    not_owner_message: str


@dataclass(frozen=True, slots=True)
class SpendPlan:
    entry_type: LedgerEntryType
    cost: int
    insufficient_message: str
    target: Optional[SpendTarget] = None
    # Feature-expiry field on the target (on the account when there is no target).
    expiry_field: Optional[str] = None
    extend: Optional[ExpiryFn] = None
    # Field stamped with the commit time, e.g. boostedAt.
    stamp_field: Optional[str] = None
    fields: Mapping[str, Any] = field(default_factory=dict)
    entry_context: Mapping[str, Any] = field(default_factory=dict)
    idempotency_key: Optional[str] = None


def _check_idempotency_key(key: Optional[str]) -> Optional[str]:
    if key is None:
        return None
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("Cheia de idempotență nu este validă.")
    return key.strip()


class SpendingService:
    """Credit-funded feature purchases."""

    def __init__(self, ctx: LedgerContext) -> None:
        self.ctx = ctx
        self.cfg = ctx.config

    # -------------------------------------------------------------------------
    # Spend primitive
    # -------------------------------------------------------------------------

    def spend(self, user_id: str, plan: SpendPlan) -> SpendReceipt:
        if plan.cost <= 0:
            raise ValidationError("Costul trebuie să fie pozitiv.", cost=plan.cost)

        user_ref = self.ctx.user_ref(user_id)
        receipt_ref = (
            self.ctx.spend_receipt_ref(user_id, plan.idempotency_key) if plan.idempotency_key else None
        )
        target = plan.target
        target_path = target.ref.path if target is not None else None

        def _spend(tx: Transaction) -> SpendReceipt:
            now = self.ctx.now()

            if receipt_ref is not None:
                stored = tx.get(receipt_ref)
                if stored is not None:
                    if stored.get("entry_type") != plan.entry_type.value or stored.get("target_path") != target_path:
                        raise ValidationError(
                            "Cheia de idempotență a fost folosită pentru o altă operațiune.",
                            stored_entry_type=stored.get("entry_type"),
                            stored_target=stored.get("target_path"),
                        )
                    return SpendReceipt.from_dict(stored, replayed=True)

            user_data = tx.get(user_ref)
            if user_data is None:
                raise AccountNotFoundError(user_id=user_id)

            target_data: Optional[Dict[str, Any]] = None
            if target is not None:
                target_data = tx.get(target.ref)
                if target_data is None:
                    raise EntityNotFoundError(target.not_found_message, target=target.ref.path)
                owner_id = target_data.get("ownerId")
                if owner_id and owner_id != user_id:
                    raise NotOwnerError(target.not_owner_message, target=target.ref.path)

            normalized = normalize(Account.from_dict(user_id, user_data), now)
            if normalized.credits < plan.cost:
                raise InsufficientFundsError(
                    plan.insufficient_message, required=plan.cost, available=normalized.credits
                )

            split = promotional_split(normalized, plan.cost)
            new_credits = normalized.credits - plan.cost
            new_remaining = normalized.signup_bonus_credits_remaining - split.promo_used

            user_updates: Dict[str, Any] = {"credits": new_credits}
            if normalized.changed or new_remaining != normalized.signup_bonus_credits_remaining:
                user_updates["signupBonusCreditsRemaining"] = new_remaining

            feature_updates: Dict[str, Any] = dict(plan.fields)
            if plan.stamp_field:
                feature_updates[plan.stamp_field] = now
            new_expires_at: Optional[datetime] = None
            if plan.expiry_field and plan.extend is not None:
                holder = target_data if target_data is not None else user_data
                new_expires_at = plan.extend(to_datetime(holder.get(plan.expiry_field)), now)
                feature_updates[plan.expiry_field] = new_expires_at

            if target is None:
                user_updates.update(feature_updates)
            elif feature_updates:
                tx.update(target.ref, feature_updates)
            tx.update(user_ref, user_updates)

            receipt = SpendReceipt(
                entry_type=plan.entry_type.value,
                cost=plan.cost,
                new_credits=new_credits,
                new_signup_bonus_credits_remaining=new_remaining,
                split=split,
                target_id=target.ref.id if target is not None else None,
                new_expires_at=new_expires_at,
            )
            if receipt_ref is not None:
                tx.create(receipt_ref, {**receipt.to_dict(), "target_path": target_path})
            return receipt

        receipt = self.ctx.store.run_transaction(_spend)
        if receipt.replayed:
            logger.info(
                "[SpendingService] Replayed %s for %s (key=%s), no new charge",
                plan.entry_type.value, user_id, plan.idempotency_key,
            )
            return receipt

        logger.info(
            "[SpendingService] %s: charged %d credits to %s (promo=%d, permanent=%d)",
            plan.entry_type.value, plan.cost, user_id,
            receipt.split.promo_used, receipt.split.permanent_used,
        )
        self._append_entry(
            LedgerEntry(
                user_id=user_id,
                entry_type=plan.entry_type,
                amount=-plan.cost,
                new_expires_at=receipt.new_expires_at,
                promo_credits_used=receipt.split.promo_used,
                permanent_credits_used=receipt.split.permanent_used,
                **plan.entry_context,
            )
        )
        return receipt

    def _append_entry(self, entry: LedgerEntry) -> None:
        try:
            self.ctx.store.append_entry(entry)
        except Exception as e:
            logger.warning(
                "[SpendingService] Ledger append failed for %s (%s, amount=%d): %s",
                entry.user_id, entry.entry_type.value, entry.amount, e,
            )

    # -------------------------------------------------------------------------
    # Spend operations
    # -------------------------------------------------------------------------

    def boost_product(
        self, user_id: str, product_id: str, *, idempotency_key: str | None = None
    ) -> SpendReceipt:
        """Boost a product's visibility; stacks onto an active boost."""
        days = self.cfg.boost_duration_days
        plan = SpendPlan(
            entry_type=LedgerEntryType.SPEND_BOOST,
            cost=fees.boost_cost(self.cfg),
            insufficient_message="Nu ai suficiente credite pentru a aplica boost-ul",
            target=SpendTarget(
                ref=self.ctx.product_ref(product_id),
                not_found_message="Produsul nu există",
                not_owner_message="Poți boosta doar produsele tale",
            ),
            expiry_field="boostExpiresAt",
            extend=lambda current, now: stack_days(current, now, days),
            stamp_field="boostedAt",
            entry_context={"product_id": product_id},
            idempotency_key=_check_idempotency_key(idempotency_key),
        )
        return self.spend(user_id, plan)

    def pay_collection_subscription(
        self, user_id: str, years: int = 1, *, idempotency_key: str | None = None
    ) -> SpendReceipt:
        """Activate or extend the annual collection subscription."""
        cost = fees.subscription_cost(self.cfg, years)
        plan = SpendPlan(
            entry_type=LedgerEntryType.COLLECTION_SUBSCRIPTION,
            cost=cost,
            insufficient_message=(
                "Nu ai suficiente credite pentru a activa / prelungi abonamentul colecției."
            ),
            expiry_field="collectionSubscriptionExpiresAt",
            extend=lambda current, now: stack_years(current, now, years),
            entry_context={"years": years},
            idempotency_key=_check_idempotency_key(idempotency_key),
        )
        return self.spend(user_id, plan)

    def charge_auction_creation(
        self,
        user_id: str,
        auction_id: str,
        duration_hours: int,
        *,
        idempotency_key: str | None = None,
    ) -> SpendReceipt:
        """Charge the creation fee of an auction. Approval is a separate workflow."""
        cost = fees.auction_creation_cost(self.cfg, duration_hours)
        plan = SpendPlan(
            entry_type=LedgerEntryType.AUCTION_CREATION_FEE,
            cost=cost,
            insufficient_message="Nu ai suficiente credite pentru a crea această licitație.",
            target=SpendTarget(
                ref=self.ctx.auction_ref(auction_id),
                not_found_message="Licitația nu există",
                not_owner_message="Poți plăti taxa doar pentru licitațiile tale.",
            ),
            fields={"creditFeeAmount": cost, "paidDurationHours": duration_hours},
            entry_context={"auction_id": auction_id, "duration_hours": duration_hours},
            idempotency_key=_check_idempotency_key(idempotency_key),
        )
        return self.spend(user_id, plan)

    def charge_product_listing(
        self,
        user_id: str,
        product_id: str,
        listing_days: int | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> SpendReceipt:
        """Pay for a direct-sale listing window; extends an active listing."""
        days = self.cfg.default_listing_days if listing_days is None else listing_days
        cost = fees.listing_cost(self.cfg, days)
        plan = SpendPlan(
            entry_type=LedgerEntryType.PRODUCT_LISTING_FEE,
            cost=cost,
            insufficient_message="Nu ai suficiente credite pentru a lista acest produs în magazin.",
            target=SpendTarget(
                ref=self.ctx.product_ref(product_id),
                not_found_message="Produsul nu există",
                not_owner_message="Poți plăti listarea doar pentru produsele tale.",
            ),
            expiry_field="listingExpiresAt",
            extend=lambda current, now: stack_days(current, now, days),
            entry_context={"product_id": product_id, "listing_days": days},
            idempotency_key=_check_idempotency_key(idempotency_key),
        )
        return self.spend(user_id, plan)

    def relist_product(
        self,
        user_id: str,
        product_id: str,
        listing_days: int | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> SpendReceipt:
        """Relist an unsold, approved direct-sale product for another paid window."""
        product = self.ctx.store.get_document(self.ctx.product_ref(product_id))
        if product is None:
            raise EntityNotFoundError("Produsul nu există", target=product_id)
        owner_id = product.get("ownerId")
        if owner_id and owner_id != user_id:
            raise NotOwnerError("Poți relista doar produsele tale.", target=product_id)
        if product.get("listingType") != "direct":
            raise RelistNotAllowedError("Doar produsele cu vânzare directă pot fi relistate aici.")
        if product.get("isSold") is True:
            raise RelistNotAllowedError("Produsul este vândut și nu poate fi relistat.")
        if product.get("status") != "approved":
            raise RelistNotAllowedError("Produsul nu este aprobat pentru listare în magazin.")

        return self.charge_product_listing(
            user_id, product_id, listing_days, idempotency_key=idempotency_key
        )

    def promote_item(
        self,
        user_id: str,
        *,
        product_id: str | None = None,
        auction_id: str | None = None,
        duration_days: int | None = None,
        idempotency_key: str | None = None,
    ) -> SpendReceipt:
        """Homepage promotion of exactly one product or auction."""
        if bool(product_id) == bool(auction_id):
            raise AmbiguousTargetError(product_id=product_id, auction_id=auction_id)
        days = self.cfg.promotion_default_duration_days if duration_days is None else duration_days
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ValidationError("Durata promovării trebuie să fie mai mare decât 0.", duration_days=days)

        if product_id:
            entry_type = LedgerEntryType.PROMOTION_PRODUCT
            target = SpendTarget(
                ref=self.ctx.product_ref(product_id),
                not_found_message="Produsul nu există",
                not_owner_message="Poți promova doar produsele tale.",
            )
            context: Dict[str, Any] = {"product_id": product_id}
        else:
            entry_type = LedgerEntryType.PROMOTION_AUCTION
            target = SpendTarget(
                ref=self.ctx.auction_ref(auction_id),
                not_found_message="Licitația nu există",
                not_owner_message="Poți promova doar licitațiile tale.",
            )
            context = {"auction_id": auction_id}

        plan = SpendPlan(
            entry_type=entry_type,
            cost=fees.promotion_cost(self.cfg),
            insufficient_message="Nu ai suficiente credite pentru a promova acest element.",
            target=target,
            expiry_field="promotionExpiresAt",
            extend=lambda current, now: stack_days(current, now, days),
            stamp_field="promotedAt",
            fields={"isPromoted": True},
            entry_context={**context, "duration_days": days},
            idempotency_key=_check_idempotency_key(idempotency_key),
        )
        return self.spend(user_id, plan)
