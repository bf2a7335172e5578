# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""
Numisma Ledger CLI

Operator tools for the credit ledger.

Commands:
- fees: Show the price table, or quote a specific charge
- balance <uid>: Show the normalized balance of an account
- history <uid>: Show recent ledger entries with totals

Usage:
    python -m ledger_cli fees
    python -m ledger_cli fees --auction-hours 240 --listing-days 45
    python -m ledger_cli balance user-123
    python -m ledger_cli history user-123 --limit 20
"""

from ledger_cli.ledger_cmd import main

__all__ = ["main"]

if __name__ == "__main__":
    main()
