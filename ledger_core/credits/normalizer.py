# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Expiry Normalizer and the shared stacking policy.

The promotional sub-balance expires lazily: nothing runs in the
background, every balance read and every spend normalizes the account
first and persists the write-off in the same transaction.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Optional

from ledger_core.credits.types import Account, NormalizedCredits, PoolSplit


def normalize(account: Account, now: datetime) -> NormalizedCredits:
    """Expire the remaining promotional credits once their deadline has passed."""
    credits = account.credits
    remaining = account.signup_bonus_credits_remaining
    expires_at = account.signup_bonus_expires_at

    if expires_at is None or remaining <= 0:
        return NormalizedCredits(credits=credits, signup_bonus_credits_remaining=remaining, changed=False)

    if now <= expires_at:
        return NormalizedCredits(credits=credits, signup_bonus_credits_remaining=remaining, changed=False)

    return NormalizedCredits(
        credits=max(credits - remaining, 0),
        signup_bonus_credits_remaining=0,
        changed=True,
    )


def promotional_split(normalized: NormalizedCredits, cost: int) -> PoolSplit:
    """Consume the expiring pool first, then permanent credits."""
    promo_used = min(max(normalized.signup_bonus_credits_remaining, 0), cost)
    return PoolSplit(promo_used=promo_used, permanent_used=cost - promo_used)


# -----------------------------------------------------------------------------
# Calendar arithmetic
# -----------------------------------------------------------------------------

def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping to the last day of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    return add_months(value, 12 * years)


# -----------------------------------------------------------------------------
# Stacking policy
# -----------------------------------------------------------------------------

def stacking_base(current_expiry: Optional[datetime], now: datetime) -> datetime:
    """Extend from an active expiry, restart from now otherwise."""
    if current_expiry is not None and current_expiry > now:
        return current_expiry
    return now


def stack_days(current_expiry: Optional[datetime], now: datetime, days: int) -> datetime:
    return stacking_base(current_expiry, now) + timedelta(days=days)


def stack_years(current_expiry: Optional[datetime], now: datetime, years: int) -> datetime:
    return add_years(stacking_base(current_expiry, now), years)
