# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Fee calculators. Pure functions of the config and the requested duration."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from ledger_core.credits.config import CreditsConfig
from ledger_core.credits.errors import ValidationError
from ledger_core.credits.types import ceil_credits, floor_credits


def _require_positive_int(value: object, message: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(message, value=value)
    return value


def boost_cost(cfg: CreditsConfig) -> int:
    return cfg.boost_cost


def subscription_cost(cfg: CreditsConfig, years: int) -> int:
    years = _require_positive_int(years, "Numărul de ani trebuie să fie pozitiv")
    return cfg.collection_subscription_cost_per_year * years


def auction_creation_cost(cfg: CreditsConfig, duration_hours: int) -> int:
    """
    Tiered auction fee.

    - up to the base duration (72h): base cost
    - up to the discounted duration (168h): discounted cost
    - beyond: discounted cost plus half the base cost per started base-duration block
    """
    duration_hours = _require_positive_int(
        duration_hours, "Durata licitației trebuie să fie mai mare decât 0."
    )
    if duration_hours <= cfg.auction_base_duration_hours:
        return cfg.auction_base_cost
    if duration_hours <= cfg.auction_discounted_duration_hours:
        return cfg.auction_discounted_cost

    extra_hours = duration_hours - cfg.auction_discounted_duration_hours
    extra_blocks = ceil_credits(Decimal(extra_hours) / Decimal(cfg.auction_base_duration_hours))
    per_block = ceil_credits(Decimal(cfg.auction_base_cost) / 2)
    return cfg.auction_discounted_cost + extra_blocks * per_block


def listing_cost(cfg: CreditsConfig, listing_days: int) -> int:
    """Cost per started listing period (30 days)."""
    listing_days = _require_positive_int(
        listing_days, "Durata listării trebuie să fie mai mare decât 0."
    )
    periods = ceil_credits(Decimal(listing_days) / Decimal(cfg.listing_period_days))
    return periods * cfg.listing_cost_per_period


def promotion_cost(cfg: CreditsConfig) -> int:
    return cfg.promotion_cost


def credits_for_payment(cfg: CreditsConfig, paid_amount: Decimal | int | float | str | None) -> int:
    """Credits bought by a confirmed payment; non-positive amounts buy nothing."""
    if paid_amount is None:
        return 0
    try:
        amount = Decimal(str(paid_amount))
    except InvalidOperation:
        raise ValidationError("Suma plătită nu este validă.", paid_amount=paid_amount) from None
    if not amount.is_finite():
        raise ValidationError("Suma plătită nu este validă.", paid_amount=paid_amount)
    if amount <= 0:
        return 0
    return floor_credits(amount / cfg.credit_unit_price)


def iap_paid_amount(cfg: CreditsConfig, product_id: str) -> Decimal:
    try:
        return cfg.iap_product_prices[product_id]
    except KeyError:
        raise ValidationError("Nu s-a putut determina numărul de credite", product_id=product_id) from None


def price_table(cfg: CreditsConfig) -> dict[str, int]:
    """Flat view of the current prices, for display."""
    return {
        "boost": boost_cost(cfg),
        "boost_duration_days": cfg.boost_duration_days,
        "collection_subscription_per_year": cfg.collection_subscription_cost_per_year,
        "auction_base": cfg.auction_base_cost,
        "auction_base_hours": cfg.auction_base_duration_hours,
        "auction_discounted": cfg.auction_discounted_cost,
        "auction_discounted_hours": cfg.auction_discounted_duration_hours,
        "listing_per_period": cfg.listing_cost_per_period,
        "listing_period_days": cfg.listing_period_days,
        "promotion": promotion_cost(cfg),
        "promotion_default_days": cfg.promotion_default_duration_days,
    }
