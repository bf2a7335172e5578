# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""
Ledger CLI Commands

- fees: price table and quotes (no database access)
- balance: normalized balance read (persists an expired promo write-off)
- history: newest-first ledger entries plus summary
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, NoReturn

from ledger_core.credits import fees
from ledger_core.credits.config import CreditsConfig
from ledger_core.credits.context import LedgerContext
from ledger_core.credits.errors import LedgerError


def _build_context() -> LedgerContext:
    from ledger_core.credits.context import build_firestore_context

    return build_firestore_context()


def _emit(payload: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
        return
    for key, value in payload.items():
        print(f"  {key}: {value}")


def cmd_fees(args: argparse.Namespace) -> int:
    """Show prices, or quote the charges given on the command line."""
    cfg = CreditsConfig.load_from_env()
    quote: dict[str, Any] = {}
    try:
        if args.auction_hours is not None:
            quote["auction_creation"] = fees.auction_creation_cost(cfg, args.auction_hours)
        if args.listing_days is not None:
            quote["product_listing"] = fees.listing_cost(cfg, args.listing_days)
        if args.years is not None:
            quote["collection_subscription"] = fees.subscription_cost(cfg, args.years)
        if args.paid_amount is not None:
            quote["credits_for_payment"] = fees.credits_for_payment(cfg, args.paid_amount)
    except LedgerError as e:
        print(f"✗ {e.user_message}", file=sys.stderr)
        return 1

    if not quote:
        if not args.json:
            print("Current prices (credits):")
        _emit(fees.price_table(cfg), args.json)
        return 0

    if not args.json:
        print("Quote (credits):")
    _emit(quote, args.json)
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    """Show the balance of one account."""
    from ledger_core.credits.services.balance import BalanceService

    ctx = _build_context()
    try:
        view = BalanceService(ctx).get_balance(args.uid)
    except LedgerError as e:
        print(f"✗ {e.user_message}", file=sys.stderr)
        return 1

    if not args.json:
        print(f"Balance for {args.uid}:")
    _emit(view.to_dict(), args.json)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Show recent ledger entries of one account."""
    from ledger_core.credits.services.balance import BalanceService, summarize_history

    ctx = _build_context()
    try:
        entries = BalanceService(ctx).list_transactions(args.uid, args.limit)
    except LedgerError as e:
        print(f"✗ {e.user_message}", file=sys.stderr)
        return 1

    summary = summarize_history(entries)
    if args.json:
        payload = {
            "entries": [{"id": e.entry_id, "createdAt": e.created_at, **e.to_dict()} for e in entries],
            "summary": summary.to_dict(),
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
        return 0

    if not entries:
        print(f"No ledger entries for {args.uid}")
        return 0

    print(f"Ledger entries for {args.uid} (newest first):")
    for entry in entries:
        created = entry.created_at.isoformat() if entry.created_at else "-"
        print(f"  {created}  {entry.entry_type.value:<26} {entry.amount:>+6d}")
    print(f"Earned {summary.earned}, spent {summary.spent}, net {summary.net:+d}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger",
        description="Credit ledger operator commands",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # fees command
    fees_parser = subparsers.add_parser(
        "fees",
        help="Show the price table or quote charges",
    )
    fees_parser.add_argument("--auction-hours", type=int, help="Quote an auction of this duration")
    fees_parser.add_argument("--listing-days", type=int, help="Quote a listing of this many days")
    fees_parser.add_argument("--years", type=int, help="Quote a collection subscription")
    fees_parser.add_argument("--paid-amount", help="Credits bought by this payment")
    fees_parser.add_argument("--json", action="store_true", help="Print JSON")
    fees_parser.set_defaults(func=cmd_fees)

    # balance command
    balance_parser = subparsers.add_parser(
        "balance",
        help="Show the normalized balance of an account",
    )
    balance_parser.add_argument("uid", help="User id")
    balance_parser.add_argument("--json", action="store_true", help="Print JSON")
    balance_parser.set_defaults(func=cmd_balance)

    # history command
    history_parser = subparsers.add_parser(
        "history",
        help="Show recent ledger entries",
    )
    history_parser.add_argument("uid", help="User id")
    history_parser.add_argument(
        "--limit", "-n",
        type=int,
        default=None,
        help="Maximum number of entries (default: 50)",
    )
    history_parser.add_argument("--json", action="store_true", help="Print JSON")
    history_parser.set_defaults(func=cmd_history)

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the ledger CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
