# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ledger_core.credits.types import as_int, to_datetime


class LedgerEntryType(str, Enum):
    SIGNUP_BONUS = "signup_bonus"
    REFERRAL_NEW_USER_BONUS = "referral_new_user_bonus"
    REFERRAL_INVITER_BONUS = "referral_inviter_bonus"
    PURCHASE_STRIPE = "purchase_stripe"
    PURCHASE_IAP = "purchase_iap"
    PURCHASE_NETOPIA = "purchase_netopia"
    SPEND_BOOST = "spend_boost"
    COLLECTION_SUBSCRIPTION = "collection_subscription"
    AUCTION_CREATION_FEE = "auction_creation_fee"
    PRODUCT_LISTING_FEE = "product_listing_fee"
    PROMOTION_PRODUCT = "promotion_product"
    PROMOTION_AUCTION = "promotion_auction"


class PaymentProvider(str, Enum):
    STRIPE = "stripe"
    IAP = "iap"
    NETOPIA = "netopia"


PURCHASE_ENTRY_TYPES: Dict[PaymentProvider, LedgerEntryType] = {
    PaymentProvider.STRIPE: LedgerEntryType.PURCHASE_STRIPE,
    PaymentProvider.IAP: LedgerEntryType.PURCHASE_IAP,
    PaymentProvider.NETOPIA: LedgerEntryType.PURCHASE_NETOPIA,
}

# Wire names of the optional context fields.
_WIRE_NAMES: Dict[str, str] = {
    "product_id": "productId",
    "auction_id": "auctionId",
    "duration_hours": "durationHours",
    "duration_days": "durationDays",
    "listing_days": "listingDays",
    "years": "years",
    "related_user_id": "relatedUserId",
    "provider": "provider",
    "payment_reference": "paymentReference",
    "paid_amount": "paidAmount",
    "expires_at": "expiresAt",
    "new_expires_at": "newExpiresAt",
    "promo_credits_used": "promoCreditsUsed",
    "permanent_credits_used": "permanentCreditsUsed",
}


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """
    Immutable record of one balance mutation.

    Context fields are optional; a field left as None is not written to
    the store at all.
    """

    user_id: str
    entry_type: LedgerEntryType
    amount: int
    created_at: Optional[datetime] = None
    entry_id: Optional[str] = None

    product_id: Optional[str] = None
    auction_id: Optional[str] = None
    duration_hours: Optional[int] = None
    duration_days: Optional[int] = None
    listing_days: Optional[int] = None
    years: Optional[int] = None
    related_user_id: Optional[str] = None
    provider: Optional[str] = None
    payment_reference: Optional[str] = None
    paid_amount: Optional[str] = None
    expires_at: Optional[datetime] = None
    new_expires_at: Optional[datetime] = None
    promo_credits_used: Optional[int] = None
    permanent_credits_used: Optional[int] = None

    def context(self) -> Dict[str, Any]:
        """Present context fields under their wire names."""
        out: Dict[str, Any] = {}
        for attr, wire in _WIRE_NAMES.items():
            value = getattr(self, attr)
            if value is not None:
                out[wire] = value
        return out

    def to_dict(self) -> Dict[str, Any]:
        """Document body for persistence (`createdAt` is stamped by the store)."""
        return {
            "userId": self.user_id,
            "type": self.entry_type.value,
            "amount": self.amount,
            **self.context(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, entry_id: str | None = None) -> "LedgerEntry":
        kwargs: Dict[str, Any] = {}
        for attr, wire in _WIRE_NAMES.items():
            if data.get(wire) is not None:
                kwargs[attr] = data[wire]
        for attr in ("expires_at", "new_expires_at"):
            if attr in kwargs:
                kwargs[attr] = to_datetime(kwargs[attr])
        return cls(
            user_id=str(data.get("userId", "")),
            entry_type=LedgerEntryType(data.get("type")),
            amount=as_int(data.get("amount")),
            created_at=to_datetime(data.get("createdAt")),
            entry_id=entry_id,
            **kwargs,
        )


def build_idempotency_key(*parts: str) -> str:
    """
    Stable document id for an idempotency marker.

    Hashing keeps arbitrary client or provider references ('/' included)
    usable as a single path segment.
    """
    cleaned = [p.strip() for p in parts if p and p.strip()]
    raw = ":".join(cleaned)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def build_payment_key(provider: PaymentProvider, payment_reference: str) -> str:
    return build_idempotency_key(provider.value, payment_reference, "purchase", "v1")


def build_spend_key(user_id: str, client_key: str) -> str:
    return build_idempotency_key(user_id, client_key, "spend", "v1")
