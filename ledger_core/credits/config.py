# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

# Store product id -> paid amount (RON) for in-app purchases.
IAP_PRODUCT_PRICES: Dict[str, Decimal] = {
    "ro.enumismatica.credits.20": Decimal("20"),
    "ro.enumismatica.credits.50": Decimal("50"),
    "ro.enumismatica.credits.100": Decimal("100"),
    "ro.enumismatica.credits.200": Decimal("200"),
}


def _parse_int(raw: Any, *, default: int, min_v: int, max_v: int) -> int:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, int):
            v = raw
        else:
            v = int(str(raw).strip())
    except Exception:
        v = default
    return max(min_v, min(max_v, v))


def _parse_decimal(raw: Any, *, default: Decimal) -> Decimal:
    if raw is None or not str(raw).strip():
        return default
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return default
    return value if value > 0 else default


def _parse_datetime(raw: Any, *, default: datetime) -> datetime:
    if raw is None or not str(raw).strip():
        return default
    try:
        value = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
    except ValueError:
        return default
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class CreditsConfig:
    """Prices, durations and Firestore paths for the credit ledger."""

    # Firestore paths
    users_collection: str = "users"
    products_collection: str = "products"
    auctions_collection: str = "auctions"
    ledger_subcollection: str = "creditTransactions"
    spend_receipts_subcollection: str = "spendReceipts"
    processed_payments_collection: str = "processedPayments"

    # Signup promo window
    signup_promo_end: datetime = datetime(2026, 3, 15, tzinfo=timezone.utc)
    signup_bonus_before_promo_end: int = 200
    signup_bonus_after_promo_end: int = 50
    signup_bonus_months_before_promo_end: int = 3
    signup_bonus_months_after_promo_end: int = 1

    # Referral
    referral_new_user_bonus: int = 50
    referral_inviter_bonus: int = 50

    # Visibility boost
    boost_cost: int = 5
    boost_duration_days: int = 7

    # Purchases (RON per credit)
    credit_unit_price: Decimal = Decimal("1")
    iap_product_prices: Dict[str, Decimal] = field(default_factory=lambda: dict(IAP_PRODUCT_PRICES))

    # Collection subscription
    collection_subscription_cost_per_year: int = 50

    # Auction creation
    auction_base_cost: int = 10
    auction_base_duration_hours: int = 72
    auction_discounted_duration_hours: int = 168
    auction_discounted_cost: int = 15

    # Direct listing
    listing_cost_per_period: int = 5
    listing_period_days: int = 30
    default_listing_days: int = 30

    # Homepage promotion
    promotion_cost: int = 20
    promotion_default_duration_days: int = 7

    # Ledger read API
    history_default_limit: int = 50

    @staticmethod
    def load_from_env(base: "CreditsConfig | None" = None) -> "CreditsConfig":
        cfg = base or CreditsConfig()
        return replace(
            cfg,
            signup_promo_end=_parse_datetime(os.getenv("LEDGER_SIGNUP_PROMO_END"), default=cfg.signup_promo_end),
            signup_bonus_before_promo_end=_parse_int(
                os.getenv("LEDGER_SIGNUP_BONUS_BEFORE_PROMO_END"),
                default=cfg.signup_bonus_before_promo_end, min_v=0, max_v=10_000,
            ),
            signup_bonus_after_promo_end=_parse_int(
                os.getenv("LEDGER_SIGNUP_BONUS_AFTER_PROMO_END"),
                default=cfg.signup_bonus_after_promo_end, min_v=0, max_v=10_000,
            ),
            referral_new_user_bonus=_parse_int(
                os.getenv("LEDGER_REFERRAL_NEW_USER_BONUS"), default=cfg.referral_new_user_bonus, min_v=0, max_v=10_000
            ),
            referral_inviter_bonus=_parse_int(
                os.getenv("LEDGER_REFERRAL_INVITER_BONUS"), default=cfg.referral_inviter_bonus, min_v=0, max_v=10_000
            ),
            boost_cost=_parse_int(os.getenv("LEDGER_BOOST_COST"), default=cfg.boost_cost, min_v=1, max_v=10_000),
            boost_duration_days=_parse_int(
                os.getenv("LEDGER_BOOST_DURATION_DAYS"), default=cfg.boost_duration_days, min_v=1, max_v=365
            ),
            credit_unit_price=_parse_decimal(os.getenv("LEDGER_CREDIT_UNIT_PRICE"), default=cfg.credit_unit_price),
            collection_subscription_cost_per_year=_parse_int(
                os.getenv("LEDGER_SUBSCRIPTION_COST_PER_YEAR"),
                default=cfg.collection_subscription_cost_per_year, min_v=1, max_v=100_000,
            ),
            listing_cost_per_period=_parse_int(
                os.getenv("LEDGER_LISTING_COST_PER_PERIOD"), default=cfg.listing_cost_per_period, min_v=1, max_v=10_000
            ),
            promotion_cost=_parse_int(
                os.getenv("LEDGER_PROMOTION_COST"), default=cfg.promotion_cost, min_v=1, max_v=10_000
            ),
            history_default_limit=_parse_int(
                os.getenv("LEDGER_HISTORY_LIMIT"), default=cfg.history_default_limit, min_v=1, max_v=500
            ),
        )
