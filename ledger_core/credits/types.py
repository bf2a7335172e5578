# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR
from typing import Any, Dict, Mapping, Optional

# -----------------------------------------------------------------------------
# Number / Time Helpers
# -----------------------------------------------------------------------------

def floor_credits(value: Decimal) -> int:
    """Floor integer of a Decimal."""
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def ceil_credits(value: Decimal) -> int:
    """Ceiling integer of a Decimal."""
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def as_int(value: Any, default: int = 0) -> int:
    """Read a stored numeric field; anything non-numeric counts as `default`."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        return int(value)
    return default


def to_datetime(value: Any) -> Optional[datetime]:
    """Coerce a stored timestamp (datetime, Firestore timestamp, ISO string) to aware UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif hasattr(value, "to_datetime"):
        dt = value.to_datetime()
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# Account
# -----------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Account:
    """Per-user credit balance plus promotional-bonus bookkeeping."""
    uid: str
    credits: int = 0
    signup_bonus_credits_remaining: int = 0
    signup_bonus_expires_at: Optional[datetime] = None
    collection_subscription_expires_at: Optional[datetime] = None
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    referral_bonus_applied: bool = False

    @classmethod
    def from_dict(cls, uid: str, data: Mapping[str, Any]) -> "Account":
        return cls(
            uid=uid,
            credits=as_int(data.get("credits")),
            signup_bonus_credits_remaining=as_int(data.get("signupBonusCreditsRemaining")),
            signup_bonus_expires_at=to_datetime(data.get("signupBonusExpiresAt")),
            collection_subscription_expires_at=to_datetime(data.get("collectionSubscriptionExpiresAt")),
            referral_code=data.get("referralCode"),
            referred_by=data.get("referredBy") or None,
            referral_bonus_applied=data.get("referralBonusApplied") is True,
        )


@dataclass(frozen=True, slots=True)
class NormalizedCredits:
    credits: int
    signup_bonus_credits_remaining: int
    changed: bool


@dataclass(frozen=True, slots=True)
class PoolSplit:
    """How a cost is split between the expiring promotional pool and permanent credits."""
    promo_used: int
    permanent_used: int

    @property
    def total(self) -> int:
        return self.promo_used + self.permanent_used


@dataclass(frozen=True, slots=True)
class BalanceView:
    uid: str
    credits: int
    promotional_credits: int
    permanent_credits: int
    promotional_expires_at: Optional[datetime] = None
    collection_subscription_expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "credits": self.credits,
            "promotional_credits": self.promotional_credits,
            "permanent_credits": self.permanent_credits,
            "promotional_expires_at": (
                self.promotional_expires_at.isoformat() if self.promotional_expires_at else None
            ),
            "collection_subscription_expires_at": (
                self.collection_subscription_expires_at.isoformat()
                if self.collection_subscription_expires_at
                else None
            ),
        }


# -----------------------------------------------------------------------------
# Receipts
# -----------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SpendReceipt:
    """Result of a committed spend."""
    entry_type: str
    cost: int
    new_credits: int
    new_signup_bonus_credits_remaining: int
    split: PoolSplit
    target_id: Optional[str] = None
    new_expires_at: Optional[datetime] = None
    replayed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_type": self.entry_type,
            "cost": self.cost,
            "new_credits": self.new_credits,
            "new_signup_bonus_credits_remaining": self.new_signup_bonus_credits_remaining,
            "promo_used": self.split.promo_used,
            "permanent_used": self.split.permanent_used,
            "target_id": self.target_id,
            "new_expires_at": self.new_expires_at,
            "replayed": self.replayed,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, replayed: bool = False) -> "SpendReceipt":
        return cls(
            entry_type=str(data.get("entry_type", "")),
            cost=as_int(data.get("cost")),
            new_credits=as_int(data.get("new_credits")),
            new_signup_bonus_credits_remaining=as_int(data.get("new_signup_bonus_credits_remaining")),
            split=PoolSplit(
                promo_used=as_int(data.get("promo_used")),
                permanent_used=as_int(data.get("permanent_used")),
            ),
            target_id=data.get("target_id"),
            new_expires_at=to_datetime(data.get("new_expires_at")),
            replayed=replayed,
        )


@dataclass(frozen=True, slots=True)
class EarnReceipt:
    """Result of an earn operation. Replays and zero-credit results wrote nothing."""
    entry_type: str
    credits_added: int
    new_credits: Optional[int]
    replayed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_type": self.entry_type,
            "credits_added": self.credits_added,
            "new_credits": self.new_credits,
            "replayed": self.replayed,
        }
