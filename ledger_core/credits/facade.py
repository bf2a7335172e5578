# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""
Credits Facade

Feature surfaces call one method per operation and always get an
`OperationResult` back. Domain errors become localized failures;
anything unexpected is logged and reported generically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ledger_core.credits import fees
from ledger_core.credits.context import LedgerContext
from ledger_core.credits.errors import AmbiguousTargetError, LedgerError, ValidationError
from ledger_core.credits.requests import (
    AuctionFeeRequest,
    BoostRequest,
    IapPurchaseRequest,
    ListingRequest,
    PromoteRequest,
    PurchaseRequest,
    RegisterRequest,
    SubscriptionRequest,
)
from ledger_core.credits.services.balance import BalanceService, summarize_history
from ledger_core.credits.services.earning import EarningService
from ledger_core.credits.services.spending import SpendingService

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)

GENERIC_FAILURE_CODE = "internal"
GENERIC_FAILURE_MESSAGE = "A apărut o eroare neașteptată. Te rugăm să încerci din nou."


@dataclass(frozen=True, slots=True)
class OperationResult:
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    message: Optional[str] = None
    retryable: bool = False

    @classmethod
    def success(cls, data: Dict[str, Any]) -> "OperationResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: LedgerError) -> "OperationResult":
        return cls(
            ok=False,
            data=dict(error.details),
            error_code=error.code,
            message=error.user_message,
            retryable=getattr(error, "retryable", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"ok": self.ok, "data": self.data}
        if not self.ok:
            out.update({"error": self.error_code, "message": self.message, "retryable": self.retryable})
        return out


def _parse_request(model: Type[R], fields: Dict[str, Any]) -> R:
    try:
        return model(**fields)
    except PydanticValidationError as e:
        problems = e.errors()
        if any(p.get("type") == "ambiguous_target" for p in problems):
            raise AmbiguousTargetError() from None
        invalid = sorted({".".join(str(x) for x in p.get("loc", ())) for p in problems})
        raise ValidationError(fields=invalid) from None


class CreditsFacade:
    def __init__(self, ctx: LedgerContext) -> None:
        self._ctx = ctx
        self._spending = SpendingService(ctx)
        self._earning = EarningService(ctx)
        self._balance = BalanceService(ctx)

    def _run(self, operation: str, fn: Callable[[], Dict[str, Any]]) -> OperationResult:
        try:
            return OperationResult.success(fn())
        except LedgerError as e:
            logger.info("[CreditsFacade] %s rejected: %s (%s)", operation, e.code, e.details)
            return OperationResult.failure(e)
        except Exception:
            logger.exception("[CreditsFacade] %s failed unexpectedly", operation)
            return OperationResult(
                ok=False, error_code=GENERIC_FAILURE_CODE, message=GENERIC_FAILURE_MESSAGE
            )

    # -- earn -----------------------------------------------------------------

    def register_account(
        self,
        *,
        user_id: str,
        referral_code: str | None = None,
        profile: dict | None = None,
    ) -> OperationResult:
        """Create the account (signup bonus) and settle a pending referral."""

        def _register() -> Dict[str, Any]:
            req = _parse_request(
                RegisterRequest,
                {"user_id": user_id, "referral_code": referral_code, "profile": profile or {}},
            )
            receipt = self._earning.create_account(req.user_id, req.referral_code, req.profile)
            referral = self._earning.apply_referral_bonus(req.user_id)
            return {"signup": receipt.to_dict(), "referral": referral.to_dict()}

        return self._run("register_account", _register)

    def apply_purchase(
        self,
        *,
        user_id: str,
        paid_amount: Any,
        payment_reference: str,
        provider: str = "stripe",
    ) -> OperationResult:
        def _purchase() -> Dict[str, Any]:
            req = _parse_request(
                PurchaseRequest,
                {
                    "user_id": user_id,
                    "paid_amount": paid_amount,
                    "payment_reference": payment_reference,
                    "provider": provider,
                },
            )
            receipt = self._earning.apply_purchase(
                req.user_id, req.paid_amount, req.payment_reference, req.provider
            )
            return receipt.to_dict()

        return self._run("apply_purchase", _purchase)

    def apply_iap_purchase(self, *, user_id: str, product_id: str, transaction_id: str) -> OperationResult:
        def _purchase() -> Dict[str, Any]:
            req = _parse_request(
                IapPurchaseRequest,
                {"user_id": user_id, "product_id": product_id, "transaction_id": transaction_id},
            )
            return self._earning.apply_iap_purchase(req.user_id, req.product_id, req.transaction_id).to_dict()

        return self._run("apply_iap_purchase", _purchase)

    # -- spend ----------------------------------------------------------------

    def boost_product(
        self, *, user_id: str, product_id: str, idempotency_key: str | None = None
    ) -> OperationResult:
        def _boost() -> Dict[str, Any]:
            req = _parse_request(
                BoostRequest,
                {"user_id": user_id, "product_id": product_id, "idempotency_key": idempotency_key},
            )
            receipt = self._spending.boost_product(
                req.user_id, req.product_id, idempotency_key=req.idempotency_key
            )
            return receipt.to_dict()

        return self._run("boost_product", _boost)

    def pay_collection_subscription(
        self, *, user_id: str, years: int = 1, idempotency_key: str | None = None
    ) -> OperationResult:
        def _subscribe() -> Dict[str, Any]:
            req = _parse_request(
                SubscriptionRequest,
                {"user_id": user_id, "years": years, "idempotency_key": idempotency_key},
            )
            receipt = self._spending.pay_collection_subscription(
                req.user_id, req.years, idempotency_key=req.idempotency_key
            )
            return receipt.to_dict()

        return self._run("pay_collection_subscription", _subscribe)

    def charge_auction_creation(
        self,
        *,
        user_id: str,
        auction_id: str,
        duration_hours: int,
        idempotency_key: str | None = None,
    ) -> OperationResult:
        def _charge() -> Dict[str, Any]:
            req = _parse_request(
                AuctionFeeRequest,
                {
                    "user_id": user_id,
                    "auction_id": auction_id,
                    "duration_hours": duration_hours,
                    "idempotency_key": idempotency_key,
                },
            )
            receipt = self._spending.charge_auction_creation(
                req.user_id, req.auction_id, req.duration_hours, idempotency_key=req.idempotency_key
            )
            return receipt.to_dict()

        return self._run("charge_auction_creation", _charge)

    def charge_product_listing(
        self,
        *,
        user_id: str,
        product_id: str,
        listing_days: int | None = None,
        idempotency_key: str | None = None,
    ) -> OperationResult:
        return self._listing(
            "charge_product_listing",
            self._spending.charge_product_listing,
            user_id=user_id,
            product_id=product_id,
            listing_days=listing_days,
            idempotency_key=idempotency_key,
        )

    def relist_product(
        self,
        *,
        user_id: str,
        product_id: str,
        listing_days: int | None = None,
        idempotency_key: str | None = None,
    ) -> OperationResult:
        return self._listing(
            "relist_product",
            self._spending.relist_product,
            user_id=user_id,
            product_id=product_id,
            listing_days=listing_days,
            idempotency_key=idempotency_key,
        )

    def _listing(
        self,
        operation: str,
        charge: Callable[..., Any],
        *,
        user_id: str,
        product_id: str,
        listing_days: int | None,
        idempotency_key: str | None,
    ) -> OperationResult:
        def _charge() -> Dict[str, Any]:
            req = _parse_request(
                ListingRequest,
                {
                    "user_id": user_id,
                    "product_id": product_id,
                    "listing_days": listing_days,
                    "idempotency_key": idempotency_key,
                },
            )
            receipt = charge(req.user_id, req.product_id, req.listing_days, idempotency_key=req.idempotency_key)
            return receipt.to_dict()

        return self._run(operation, _charge)

    def promote_item(
        self,
        *,
        user_id: str,
        product_id: str | None = None,
        auction_id: str | None = None,
        duration_days: int | None = None,
        idempotency_key: str | None = None,
    ) -> OperationResult:
        def _promote() -> Dict[str, Any]:
            req = _parse_request(
                PromoteRequest,
                {
                    "user_id": user_id,
                    "product_id": product_id,
                    "auction_id": auction_id,
                    "duration_days": duration_days,
                    "idempotency_key": idempotency_key,
                },
            )
            receipt = self._spending.promote_item(
                req.user_id,
                product_id=req.product_id,
                auction_id=req.auction_id,
                duration_days=req.duration_days,
                idempotency_key=req.idempotency_key,
            )
            return receipt.to_dict()

        return self._run("promote_item", _promote)

    # -- read -----------------------------------------------------------------

    def get_balance(self, *, user_id: str) -> OperationResult:
        return self._run("get_balance", lambda: self._balance.get_balance(user_id).to_dict())

    def get_history(self, *, user_id: str, limit: int | None = None) -> OperationResult:
        def _history() -> Dict[str, Any]:
            entries = self._balance.list_transactions(user_id, limit)
            return {
                "entries": [
                    {
                        "id": e.entry_id,
                        "createdAt": e.created_at.isoformat() if e.created_at else None,
                        **e.to_dict(),
                    }
                    for e in entries
                ],
                "summary": summarize_history(entries).to_dict(),
            }

        return self._run("get_history", _history)

    def get_prices(self) -> OperationResult:
        return self._run("get_prices", lambda: fees.price_table(self._ctx.config))
