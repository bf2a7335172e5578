# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Unit tests for SpendingService over the in-memory store."""

from datetime import timedelta

import pytest

from ledger_core.credits.entries import LedgerEntryType
from ledger_core.credits.errors import (
    AccountNotFoundError,
    AmbiguousTargetError,
    EntityNotFoundError,
    InsufficientFundsError,
    NotOwnerError,
    RelistNotAllowedError,
    ValidationError,
)
from ledger_core.credits.services.spending import SpendingService


@pytest.fixture
def service(ctx):
    return SpendingService(ctx)


class TestBoostProduct:
    def test_charges_and_sets_expiry(self, service, store, ctx, clock, make_account, make_product):
        make_account("u1", credits=12)
        make_product("p1")

        receipt = service.boost_product("u1", "p1")

        assert receipt.cost == 5
        assert receipt.new_credits == 7
        assert receipt.new_expires_at == clock.now + timedelta(days=7)
        product = store.get_document(ctx.product_ref("p1"))
        assert product["boostExpiresAt"] == clock.now + timedelta(days=7)
        assert product["boostedAt"] == clock.now
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 7

    def test_active_boost_is_extended(self, service, store, ctx, clock, make_account, make_product):
        make_account("u1", credits=10)
        make_product("p1", boostExpiresAt=clock.now + timedelta(days=3))

        receipt = service.boost_product("u1", "p1")

        assert receipt.new_expires_at == clock.now + timedelta(days=10)

    def test_lapsed_boost_restarts_from_now(self, service, clock, make_account, make_product):
        make_account("u1", credits=10)
        make_product("p1", boostExpiresAt=clock.now - timedelta(days=1))

        receipt = service.boost_product("u1", "p1")

        assert receipt.new_expires_at == clock.now + timedelta(days=7)

    def test_appends_negative_entry(self, service, store, make_account, make_product):
        make_account("u1", credits=10)
        make_product("p1")

        service.boost_product("u1", "p1")

        [entry] = store.list_entries("u1", limit=10)
        assert entry.entry_type is LedgerEntryType.SPEND_BOOST
        assert entry.amount == -5
        assert entry.product_id == "p1"
        assert entry.permanent_credits_used == 5

    def test_insufficient_funds_writes_nothing(self, service, store, ctx, make_account, make_product):
        make_account("u1", credits=4)
        make_product("p1")

        with pytest.raises(InsufficientFundsError) as exc:
            service.boost_product("u1", "p1")

        assert exc.value.details == {"required": 5, "available": 4}
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 4
        assert "boostExpiresAt" not in store.get_document(ctx.product_ref("p1"))
        assert store.list_entries("u1", limit=10) == []

    def test_missing_account(self, service, make_product):
        make_product("p1")
        with pytest.raises(AccountNotFoundError):
            service.boost_product("ghost", "p1")

    def test_missing_product(self, service, make_account):
        make_account("u1", credits=10)
        with pytest.raises(EntityNotFoundError):
            service.boost_product("u1", "nope")

    def test_other_owner_rejected(self, service, store, ctx, make_account, make_product):
        make_account("u1", credits=10)
        make_product("p1", owner_id="someone-else")

        with pytest.raises(NotOwnerError):
            service.boost_product("u1", "p1")
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 10

    def test_unowned_product_allowed(self, service, make_account, make_product):
        make_account("u1", credits=10)
        make_product("p1", owner_id=None)

        assert service.boost_product("u1", "p1").new_credits == 5


class TestPromotionalPool:
    def test_promo_consumed_first(self, service, store, ctx, clock, make_account, make_product):
        make_account(
            "u1",
            credits=203,
            signupBonusCreditsRemaining=3,
            signupBonusExpiresAt=clock.now + timedelta(days=10),
        )
        make_product("p1")

        receipt = service.boost_product("u1", "p1")

        assert (receipt.split.promo_used, receipt.split.permanent_used) == (3, 2)
        user = store.get_document(ctx.user_ref("u1"))
        assert user["credits"] == 198
        assert user["signupBonusCreditsRemaining"] == 0

    def test_expired_promo_written_off_before_charge(self, service, store, ctx, clock, make_account, make_product):
        make_account(
            "u1",
            credits=230,
            signupBonusCreditsRemaining=200,
            signupBonusExpiresAt=clock.now - timedelta(seconds=1),
        )
        make_product("p1")

        receipt = service.boost_product("u1", "p1")

        assert receipt.new_credits == 25
        assert receipt.split.promo_used == 0
        user = store.get_document(ctx.user_ref("u1"))
        assert user["credits"] == 25
        assert user["signupBonusCreditsRemaining"] == 0

    def test_expired_promo_can_make_spend_unaffordable(self, service, clock, make_account, make_product):
        make_account(
            "u1",
            credits=204,
            signupBonusCreditsRemaining=200,
            signupBonusExpiresAt=clock.now - timedelta(days=1),
        )
        make_product("p1")

        with pytest.raises(InsufficientFundsError):
            service.boost_product("u1", "p1")


class TestCollectionSubscription:
    def test_activates_for_one_year(self, service, store, ctx, clock, make_account):
        make_account("u1", credits=60)

        receipt = service.pay_collection_subscription("u1")

        assert receipt.cost == 50
        assert receipt.target_id is None
        user = store.get_document(ctx.user_ref("u1"))
        assert user["credits"] == 10
        assert user["collectionSubscriptionExpiresAt"] == clock.now.replace(year=2027)

    def test_extends_active_subscription(self, service, clock, make_account):
        current = clock.now + timedelta(days=100)
        make_account("u1", credits=100, collectionSubscriptionExpiresAt=current)

        receipt = service.pay_collection_subscription("u1", years=2)

        assert receipt.cost == 100
        assert receipt.new_expires_at == current.replace(year=current.year + 2)

    def test_invalid_years(self, service, make_account):
        make_account("u1", credits=100)
        with pytest.raises(ValidationError):
            service.pay_collection_subscription("u1", years=0)


class TestAuctionCreationFee:
    def test_records_fee_on_auction(self, service, store, ctx, make_account, make_auction):
        make_account("u1", credits=30)
        make_auction("a1")

        receipt = service.charge_auction_creation("u1", "a1", 240)

        assert receipt.cost == 20
        auction = store.get_document(ctx.auction_ref("a1"))
        assert auction["creditFeeAmount"] == 20
        assert auction["paidDurationHours"] == 240
        [entry] = store.list_entries("u1", limit=5)
        assert entry.entry_type is LedgerEntryType.AUCTION_CREATION_FEE
        assert entry.duration_hours == 240

    def test_invalid_duration_checked_before_reading(self, service, make_account):
        make_account("u1", credits=30)
        with pytest.raises(ValidationError):
            service.charge_auction_creation("u1", "missing", 0)

    def test_not_owner(self, service, make_account, make_auction):
        make_account("u1", credits=30)
        make_auction("a1", owner_id="u2")
        with pytest.raises(NotOwnerError):
            service.charge_auction_creation("u1", "a1", 72)


class TestProductListing:
    def test_default_window(self, service, store, ctx, clock, make_account, make_product):
        make_account("u1", credits=5)
        make_product("p1")

        receipt = service.charge_product_listing("u1", "p1")

        assert receipt.cost == 5
        assert store.get_document(ctx.product_ref("p1"))["listingExpiresAt"] == clock.now + timedelta(days=30)

    def test_long_window_costs_per_period(self, service, make_account, make_product):
        make_account("u1", credits=20)
        make_product("p1")

        assert service.charge_product_listing("u1", "p1", 45).cost == 10


class TestRelistProduct:
    def _direct(self, make_product, **fields):
        base = {"listingType": "direct", "isSold": False, "status": "approved"}
        base.update(fields)
        return make_product("p1", **base)

    def test_relists_approved_direct_product(self, service, store, ctx, clock, make_account, make_product):
        make_account("u1", credits=10)
        self._direct(make_product, listingExpiresAt=clock.now - timedelta(days=2))

        receipt = service.relist_product("u1", "p1")

        assert receipt.entry_type == LedgerEntryType.PRODUCT_LISTING_FEE.value
        assert store.get_document(ctx.product_ref("p1"))["listingExpiresAt"] == clock.now + timedelta(days=30)

    @pytest.mark.parametrize(
        "fields",
        [{"listingType": "auction"}, {"isSold": True}, {"status": "pending"}],
    )
    def test_rejects_ineligible_products(self, service, store, ctx, make_account, make_product, fields):
        make_account("u1", credits=10)
        self._direct(make_product, **fields)

        with pytest.raises(RelistNotAllowedError):
            service.relist_product("u1", "p1")
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 10

    def test_rejects_foreign_product(self, service, make_account, make_product):
        make_account("u1", credits=10)
        make_product("p1", owner_id="u2", listingType="direct", status="approved")
        with pytest.raises(NotOwnerError):
            service.relist_product("u1", "p1")

    def test_missing_product(self, service, make_account):
        make_account("u1", credits=10)
        with pytest.raises(EntityNotFoundError):
            service.relist_product("u1", "p1")


class TestPromoteItem:
    def test_promotes_product(self, service, store, ctx, clock, make_account, make_product):
        make_account("u1", credits=25)
        make_product("p1")

        receipt = service.promote_item("u1", product_id="p1")

        assert receipt.cost == 20
        product = store.get_document(ctx.product_ref("p1"))
        assert product["isPromoted"] is True
        assert product["promotedAt"] == clock.now
        assert product["promotionExpiresAt"] == clock.now + timedelta(days=7)
        [entry] = store.list_entries("u1", limit=5)
        assert entry.entry_type is LedgerEntryType.PROMOTION_PRODUCT
        assert entry.duration_days == 7

    def test_promotes_auction_with_custom_duration(self, service, store, ctx, clock, make_account, make_auction):
        make_account("u1", credits=25)
        make_auction("a1")

        service.promote_item("u1", auction_id="a1", duration_days=3)

        auction = store.get_document(ctx.auction_ref("a1"))
        assert auction["promotionExpiresAt"] == clock.now + timedelta(days=3)
        [entry] = store.list_entries("u1", limit=5)
        assert entry.entry_type is LedgerEntryType.PROMOTION_AUCTION

    @pytest.mark.parametrize(
        "targets",
        [{}, {"product_id": "p1", "auction_id": "a1"}, {"product_id": "", "auction_id": None}],
    )
    def test_exactly_one_target(self, service, store, ctx, make_account, make_product, make_auction, targets):
        make_account("u1", credits=100)
        make_product("p1")
        make_auction("a1")

        with pytest.raises(AmbiguousTargetError):
            service.promote_item("u1", **targets)
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 100
        assert "isPromoted" not in store.get_document(ctx.product_ref("p1"))

    def test_non_positive_duration(self, service, make_account, make_product):
        make_account("u1", credits=100)
        make_product("p1")
        with pytest.raises(ValidationError):
            service.promote_item("u1", product_id="p1", duration_days=0)


class TestSpendIdempotency:
    def test_repeated_key_charges_once(self, service, store, ctx, make_account, make_product):
        make_account("u1", credits=20)
        make_product("p1")

        first = service.boost_product("u1", "p1", idempotency_key="req-1")
        second = service.boost_product("u1", "p1", idempotency_key="req-1")

        assert first.replayed is False
        assert second.replayed is True
        assert second.new_credits == first.new_credits == 15
        assert second.new_expires_at == first.new_expires_at
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 15
        assert len(store.list_entries("u1", limit=10)) == 1

    def test_distinct_keys_charge_separately(self, service, store, ctx, make_account, make_product):
        make_account("u1", credits=20)
        make_product("p1")

        service.boost_product("u1", "p1", idempotency_key="req-1")
        service.boost_product("u1", "p1", idempotency_key="req-2")

        assert store.get_document(ctx.user_ref("u1"))["credits"] == 10

    def test_key_reused_for_other_operation_rejected(self, service, store, ctx, make_account, make_product):
        make_account("u1", credits=50)
        make_product("p1")
        make_product("p2")
        service.boost_product("u1", "p1", idempotency_key="k")

        with pytest.raises(ValidationError) as exc:
            service.promote_item("u1", product_id="p2", idempotency_key="k")

        assert exc.value.details["stored_entry_type"] == LedgerEntryType.SPEND_BOOST.value
        assert "isPromoted" not in store.get_document(ctx.product_ref("p2"))
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 45
        assert len(store.list_entries("u1", limit=10)) == 1

    def test_key_reused_for_other_target_rejected(self, service, store, ctx, make_account, make_product):
        make_account("u1", credits=50)
        make_product("p1")
        make_product("p2")
        service.boost_product("u1", "p1", idempotency_key="k")

        with pytest.raises(ValidationError):
            service.boost_product("u1", "p2", idempotency_key="k")

        assert "boostExpiresAt" not in store.get_document(ctx.product_ref("p2"))
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 45

    def test_failed_spend_does_not_burn_key(self, service, store, ctx, make_account, make_product):
        make_account("u1", credits=3)
        make_product("p1")

        with pytest.raises(InsufficientFundsError):
            service.boost_product("u1", "p1", idempotency_key="req-1")
        store.put_document(ctx.user_ref("u1"), {"credits": 10})

        assert service.boost_product("u1", "p1", idempotency_key="req-1").replayed is False

    def test_blank_key_rejected(self, service, make_account, make_product):
        make_account("u1", credits=20)
        make_product("p1")
        with pytest.raises(ValidationError):
            service.boost_product("u1", "p1", idempotency_key="   ")


class TestLedgerAppendFailure:
    def test_append_failure_does_not_roll_back(self, service, store, ctx, make_account, make_product, monkeypatch, caplog):
        make_account("u1", credits=10)
        make_product("p1")

        def _boom(entry):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(store, "append_entry", _boom)
        with caplog.at_level("WARNING"):
            receipt = service.boost_product("u1", "p1")

        assert receipt.new_credits == 5
        assert store.get_document(ctx.user_ref("u1"))["credits"] == 5
        assert "Ledger append failed" in caplog.text
