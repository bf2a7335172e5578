# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Unit tests for the expiry normalizer and stacking policy."""

from datetime import datetime, timedelta, timezone

from ledger_core.credits.normalizer import (
    add_months,
    add_years,
    normalize,
    promotional_split,
    stack_days,
    stack_years,
)
from ledger_core.credits.types import Account, NormalizedCredits

NOW = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


def _account(credits, remaining, expires_at):
    return Account(
        uid="u1",
        credits=credits,
        signup_bonus_credits_remaining=remaining,
        signup_bonus_expires_at=expires_at,
    )


class TestNormalize:
    def test_no_expiry_is_unchanged(self):
        result = normalize(_account(120, 80, None), NOW)
        assert result == NormalizedCredits(120, 80, False)

    def test_nothing_remaining_is_unchanged(self):
        result = normalize(_account(30, 0, NOW - timedelta(days=5)), NOW)
        assert result == NormalizedCredits(30, 0, False)

    def test_before_expiry_is_unchanged(self):
        result = normalize(_account(200, 200, NOW + timedelta(seconds=1)), NOW)
        assert result.changed is False
        assert result.credits == 200

    def test_exactly_at_expiry_is_unchanged(self):
        result = normalize(_account(200, 200, NOW), NOW)
        assert result.changed is False

    def test_after_expiry_writes_off_remaining(self):
        result = normalize(_account(230, 150, NOW - timedelta(days=1)), NOW)
        assert result == NormalizedCredits(80, 0, True)

    def test_write_off_floors_at_zero(self):
        result = normalize(_account(20, 150, NOW - timedelta(days=1)), NOW)
        assert result == NormalizedCredits(0, 0, True)

    def test_is_pure(self):
        account = _account(230, 150, NOW - timedelta(days=1))
        normalize(account, NOW)
        assert account.credits == 230
        assert account.signup_bonus_credits_remaining == 150


class TestPromotionalSplit:
    def test_promo_pool_is_consumed_first(self):
        split = promotional_split(NormalizedCredits(100, 30, False), 20)
        assert (split.promo_used, split.permanent_used) == (20, 0)

    def test_spills_into_permanent(self):
        split = promotional_split(NormalizedCredits(100, 3, False), 5)
        assert (split.promo_used, split.permanent_used) == (3, 2)
        assert split.total == 5

    def test_empty_pool(self):
        split = promotional_split(NormalizedCredits(100, 0, False), 15)
        assert (split.promo_used, split.permanent_used) == (0, 15)


class TestCalendarArithmetic:
    def test_add_months_simple(self):
        assert add_months(datetime(2026, 1, 10, tzinfo=timezone.utc), 3) == datetime(
            2026, 4, 10, tzinfo=timezone.utc
        )

    def test_add_months_clamps_to_month_end(self):
        assert add_months(datetime(2026, 1, 31, tzinfo=timezone.utc), 1) == datetime(
            2026, 2, 28, tzinfo=timezone.utc
        )

    def test_add_months_crosses_year(self):
        assert add_months(datetime(2025, 11, 30, 8, 15, tzinfo=timezone.utc), 3) == datetime(
            2026, 2, 28, 8, 15, tzinfo=timezone.utc
        )

    def test_add_years_from_leap_day(self):
        assert add_years(datetime(2028, 2, 29, tzinfo=timezone.utc), 1) == datetime(
            2029, 2, 28, tzinfo=timezone.utc
        )


class TestStacking:
    def test_active_expiry_is_extended(self):
        current = NOW + timedelta(days=3)
        assert stack_days(current, NOW, 7) == NOW + timedelta(days=10)

    def test_lapsed_expiry_restarts_from_now(self):
        assert stack_days(NOW - timedelta(days=3), NOW, 7) == NOW + timedelta(days=7)

    def test_missing_expiry_starts_from_now(self):
        assert stack_days(None, NOW, 30) == NOW + timedelta(days=30)

    def test_years_extend_active_subscription(self):
        current = datetime(2026, 6, 1, tzinfo=timezone.utc)
        assert stack_years(current, NOW, 2) == datetime(2028, 6, 1, tzinfo=timezone.utc)
