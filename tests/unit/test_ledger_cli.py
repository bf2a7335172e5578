# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Tests for the ledger CLI."""

import json

import pytest

from ledger_cli import ledger_cmd


def _run(argv):
    with pytest.raises(SystemExit) as exc:
        ledger_cmd.main(argv)
    return exc.value.code


class TestFeesCommand:
    def test_price_table(self, capsys):
        assert _run(["fees"]) == 0
        out = capsys.readouterr().out
        assert "Current prices" in out
        assert "boost: 5" in out

    def test_quote_json(self, capsys):
        assert _run(["fees", "--auction-hours", "240", "--listing-days", "45", "--paid-amount", "19.99", "--json"]) == 0
        quote = json.loads(capsys.readouterr().out)
        assert quote == {"auction_creation": 20, "product_listing": 10, "credits_for_payment": 19}

    def test_invalid_quote(self, capsys):
        assert _run(["fees", "--listing-days", "0"]) == 1
        assert "✗" in capsys.readouterr().err


class TestAccountCommands:
    @pytest.fixture(autouse=True)
    def memory_context(self, ctx, monkeypatch):
        monkeypatch.setattr(ledger_cmd, "_build_context", lambda: ctx)

    def test_balance(self, make_account, capsys):
        make_account("u1", credits=42)
        assert _run(["balance", "u1", "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["credits"] == 42

    def test_history(self, ctx, make_account, make_product, capsys):
        from ledger_core.credits.services.spending import SpendingService

        make_account("u1", credits=10)
        make_product("p1")
        SpendingService(ctx).boost_product("u1", "p1")

        assert _run(["history", "u1"]) == 0
        out = capsys.readouterr().out
        assert "spend_boost" in out
        assert "spent 5" in out

    def test_empty_history(self, capsys):
        assert _run(["history", "nobody", "-n", "5"]) == 0
        assert "No ledger entries" in capsys.readouterr().out
