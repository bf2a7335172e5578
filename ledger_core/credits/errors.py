# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""
Ledger Errors

Typed domain errors. Every error carries a stable `code` and a
user-displayable (Romanian) message; the facade turns them into
`OperationResult` failures.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    code = "ledger_error"
    default_message = "Operațiunea cu credite a eșuat."

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.user_message = message or self.default_message
        self.details = details
        super().__init__(self.user_message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.user_message, "details": dict(self.details)}


class ValidationError(LedgerError):
    code = "invalid_argument"
    default_message = "Parametrii operațiunii nu sunt valizi."


class AmbiguousTargetError(ValidationError):
    code = "ambiguous_target"
    default_message = "Trebuie să specifici exact un produs sau o licitație pentru promovare."


class AccountNotFoundError(LedgerError):
    code = "account_not_found"
    default_message = "Profilul utilizatorului nu există"


class EntityNotFoundError(LedgerError):
    code = "entity_not_found"
    default_message = "Elementul nu există"


class NotOwnerError(LedgerError):
    code = "not_owner"
    default_message = "Poți plăti doar pentru elementele tale."


class InsufficientFundsError(LedgerError):
    code = "insufficient_funds"
    default_message = "Nu ai suficiente credite pentru această operațiune."


class RelistNotAllowedError(LedgerError):
    code = "relist_not_allowed"
    default_message = "Produsul nu poate fi relistat."


class TransactionAbortedError(LedgerError):
    """Optimistic commit kept conflicting; safe for the caller to retry."""

    code = "transaction_aborted"
    default_message = "Operațiunea nu a putut fi finalizată. Te rugăm să încerci din nou."
    retryable = True
