# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from ledger_core.credits.services.balance import BalanceService, HistorySummary, summarize_history
from ledger_core.credits.services.earning import EarningService, ReferralOutcome
from ledger_core.credits.services.spending import SpendingService, SpendPlan, SpendTarget

__all__ = [
    "BalanceService",
    "EarningService",
    "HistorySummary",
    "ReferralOutcome",
    "SpendPlan",
    "SpendTarget",
    "SpendingService",
    "summarize_history",
]
