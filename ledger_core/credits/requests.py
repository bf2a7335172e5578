# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Request models for the feature surfaces (pydantic v2)."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, StrictInt, model_validator
from pydantic_core import PydanticCustomError

from ledger_core.credits.entries import PaymentProvider


class LedgerRequest(BaseModel):
    """Base for surface requests: frozen, whitespace-trimmed, unknown fields ignored."""

    model_config = {"extra": "ignore", "frozen": True, "str_strip_whitespace": True}

    user_id: str = Field(min_length=1)
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=256)


class RegisterRequest(LedgerRequest):
    referral_code: Optional[str] = None
    profile: dict[str, Any] = Field(default_factory=dict)


class BoostRequest(LedgerRequest):
    product_id: str = Field(min_length=1)


class SubscriptionRequest(LedgerRequest):
    years: StrictInt = Field(default=1, ge=1)


class AuctionFeeRequest(LedgerRequest):
    auction_id: str = Field(min_length=1)
    duration_hours: StrictInt = Field(ge=1)


class ListingRequest(LedgerRequest):
    product_id: str = Field(min_length=1)
    listing_days: Optional[StrictInt] = Field(default=None, ge=1)


class PromoteRequest(LedgerRequest):
    product_id: Optional[str] = None
    auction_id: Optional[str] = None
    duration_days: Optional[StrictInt] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _exactly_one_target(self) -> "PromoteRequest":
        if bool(self.product_id) == bool(self.auction_id):
            raise PydanticCustomError(
                "ambiguous_target",
                "exactly one of product_id or auction_id is required",
            )
        return self


class PurchaseRequest(LedgerRequest):
    paid_amount: Decimal = Field(allow_inf_nan=False)
    payment_reference: str = Field(min_length=1)
    provider: PaymentProvider = PaymentProvider.STRIPE


class IapPurchaseRequest(LedgerRequest):
    product_id: str = Field(min_length=1)
    transaction_id: str = Field(min_length=1)
