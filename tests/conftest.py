# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.



from datetime import datetime, timedelta, timezone

import pytest

from ledger_core.credits.adapters.memory import InMemoryLedgerStore
from ledger_core.credits.config import CreditsConfig
from ledger_core.credits.context import LedgerContext


class FrozenClock:
    """Settable clock shared by the store and the context."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Mid-January 2026, inside the signup promo window."""
    return FrozenClock(datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(clock):
    return InMemoryLedgerStore(clock=clock)


@pytest.fixture
def credits_config():
    return CreditsConfig()


@pytest.fixture
def ctx(store, credits_config, clock):
    return LedgerContext(store=store, config=credits_config, clock=clock)


@pytest.fixture
def make_account(store, ctx):
    """Seed a user document directly, bypassing the signup bonus."""

    def _make(uid: str = "u1", credits: int = 0, **fields):
        data = {"credits": credits, "signupBonusCreditsRemaining": 0, "referralCode": uid, **fields}
        store.put_document(ctx.user_ref(uid), data)
        return ctx.user_ref(uid)

    return _make


@pytest.fixture
def make_product(store, ctx):
    def _make(product_id: str = "p1", owner_id: str | None = "u1", **fields):
        data = dict(fields)
        if owner_id is not None:
            data["ownerId"] = owner_id
        store.put_document(ctx.product_ref(product_id), data)
        return ctx.product_ref(product_id)

    return _make


@pytest.fixture
def make_auction(store, ctx):
    def _make(auction_id: str = "a1", owner_id: str | None = "u1", **fields):
        data = dict(fields)
        if owner_id is not None:
            data["ownerId"] = owner_id
        store.put_document(ctx.auction_ref(auction_id), data)
        return ctx.auction_ref(auction_id)

    return _make
