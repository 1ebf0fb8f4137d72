"""Property-based tests for P&L arithmetic.

**Feature: tradeledger**
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradeledger.instruments import default_registry
from tradeledger.ledger.pnl import (
    calculate_pnl,
    calculate_position_pnl,
    exit_price_from_quote,
    price_change,
    valuation_price,
)
from tradeledger.models import Position
from tradeledger.quotes import Quote

prices = st.decimals(
    min_value=Decimal("0.0001"), max_value=Decimal("100000"), places=4,
    allow_nan=False, allow_infinity=False,
)
units = st.decimals(
    min_value=Decimal("0.001"), max_value=Decimal("1000000"), places=3,
    allow_nan=False, allow_infinity=False,
)
fees = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("1000"), places=2,
    allow_nan=False, allow_infinity=False,
)


class TestPnlSignCorrectness:
    """
    **Feature: tradeledger, Property: P/L Sign Correctness**

    *For any* prices, a buy profits when price rises and a sell profits
    when it falls, by the same amount.
    """

    def test_buy_eur_usd_five_dollars(self):
        gross, net = calculate_pnl("buy", "1.1000", "1.1050", 1000, 1, 0)
        assert gross == Decimal("5.00")
        assert net == Decimal("5.00")

    def test_sell_eur_usd_minus_five_dollars(self):
        gross, net = calculate_pnl("sell", "1.1000", "1.1050", 1000, 1, 0)
        assert net == Decimal("-5.00")

    def test_float_inputs_have_no_binary_noise(self):
        _, net = calculate_pnl("buy", 1.1, 1.105, 1000)
        assert net == Decimal("5")

    @given(entry=prices, exit_=prices, qty=units, fee=fees)
    @settings(max_examples=200)
    def test_buy_and_sell_are_mirror_images(self, entry, exit_, qty, fee):
        """*For any* trade, buy gross P&L is the negation of sell gross P&L."""
        buy_gross, buy_net = calculate_pnl("buy", entry, exit_, qty, 1, fee)
        sell_gross, sell_net = calculate_pnl("sell", entry, exit_, qty, 1, fee)

        assert buy_gross == -sell_gross
        assert buy_net + sell_net == -2 * fee

    @given(entry=prices, exit_=prices, qty=units, fee=fees)
    @settings(max_examples=200)
    def test_fees_always_reduce_pnl(self, entry, exit_, qty, fee):
        """*For any* trade, fees are subtracted regardless of the P&L sign."""
        gross, net = calculate_pnl("buy", entry, exit_, qty, 1, fee)
        assert gross - net == fee

    def test_multiplier_scales_pnl(self):
        _, net = calculate_pnl("buy", "5000", "5010", 2, 50, "10")
        assert net == Decimal("990")

    def test_results_quantized_to_eight_places(self):
        gross, net = calculate_pnl("buy", "1", "1.000000001", 1)
        assert gross == Decimal("0E-8")
        assert gross.as_tuple().exponent == -8
        assert net.as_tuple().exponent == -8


class TestPriceChange:
    @pytest.mark.parametrize(
        "side,entry,exit_,expected",
        [
            ("buy", "100", "110", "10"),
            ("buy", "110", "100", "-10"),
            ("sell", "100", "110", "-10"),
            ("sell", "110", "100", "10"),
        ],
    )
    def test_direction(self, side, entry, exit_, expected):
        assert price_change(side, entry, exit_) == Decimal(expected)


class TestExitPriceFromQuote:
    """Closing a buy hits the bid, closing a sell hits the ask."""

    def test_buy_uses_bid(self):
        quote = Quote(symbol="EUR/USD", price=Decimal("1.1041"),
                      bid=Decimal("1.1040"), ask=Decimal("1.1042"))
        assert exit_price_from_quote("buy", quote) == Decimal("1.1040")

    def test_sell_uses_ask(self):
        quote = Quote(symbol="EUR/USD", price=Decimal("1.1041"),
                      bid=Decimal("1.1040"), ask=Decimal("1.1042"))
        assert exit_price_from_quote("sell", quote) == Decimal("1.1042")

    @pytest.mark.parametrize("side", ["buy", "sell"])
    def test_falls_back_to_price(self, side):
        quote = Quote(symbol="BTC/USD", price=Decimal("43000"))
        assert exit_price_from_quote(side, quote) == Decimal("43000")


class TestPositionPnl:
    """*For any* position, the registry multiplier is used, never the stored one."""

    def test_forex_position_uses_lot_size(self):
        position = Position(
            account_id="a", symbol="EUR/USD", side="buy", quantity=Decimal("0.01"),
            open_price=Decimal("1.1000"), close_price=Decimal("1.1010"), status="closed",
        )
        breakdown = calculate_position_pnl(position, default_registry())

        assert breakdown.units == Decimal("1000")
        assert breakdown.net_pnl == Decimal("1.00")

    def test_stored_multiplier_is_ignored(self):
        position = Position(
            account_id="a", symbol="SPX", side="sell", quantity=Decimal("2"),
            open_price=Decimal("5000"), current_price=Decimal("4990"),
            contract_multiplier=Decimal("1"), fees=Decimal("10"),
        )
        breakdown = calculate_position_pnl(position, default_registry())

        assert breakdown.contract_multiplier == Decimal("50")
        assert breakdown.gross_pnl == Decimal("1000")
        assert breakdown.net_pnl == Decimal("990")

    def test_symbol_override_selects_instrument(self):
        position = Position(
            account_id="a", symbol="EURUSD", side="buy", quantity=Decimal("0.1"),
            open_price=Decimal("1.2000"), close_price=Decimal("1.1900"), status="closed",
        )
        registry = default_registry()

        misvalued = calculate_position_pnl(position, registry)
        corrected = calculate_position_pnl(position, registry, symbol="EUR/USD")

        assert misvalued.units == Decimal("0.1")
        assert corrected.units == Decimal("10000")
        assert corrected.net_pnl == Decimal("-100")

    def test_closed_position_falls_back_to_current_price(self):
        position = Position(
            account_id="a", symbol="BTC/USD", side="buy", quantity=Decimal("1"),
            open_price=Decimal("100"), current_price=Decimal("120"), status="closed",
        )
        assert valuation_price(position) == Decimal("120")
        assert calculate_position_pnl(position, default_registry()).net_pnl == Decimal("20")

    def test_position_without_price_raises(self):
        position = Position(
            account_id="a", symbol="BTC/USD", side="buy", quantity=Decimal("1"),
            open_price=Decimal("100"), status="open",
        )
        with pytest.raises(ValueError):
            calculate_position_pnl(position, default_registry())
