"""Position P&L arithmetic.

All inputs are converted to Decimal and results are quantized to storage
precision. Position quantities must be converted to base units with
``InstrumentRegistry.get_position_units`` before reaching these formulas.
"""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from tradeledger.instruments import InstrumentRegistry
from tradeledger.models import Position
from tradeledger.numeric import Number, quantize, to_decimal
from tradeledger.quotes import Quote

Side = Literal["buy", "sell"]


class PnlBreakdown(BaseModel):
    """Intermediate and final values of a P&L calculation."""

    symbol: str = Field(..., description="Symbol the instrument config was taken from")
    units: Decimal = Field(..., description="Position size in base units")
    contract_multiplier: Decimal = Field(..., description="Registry contract multiplier")
    entry_price: Decimal = Field(..., description="Open price")
    exit_price: Decimal = Field(..., description="Price the position was valued at")
    price_change: Decimal = Field(..., description="Signed favourable price move")
    gross_pnl: Decimal = Field(..., description="P&L before fees")
    fees: Decimal = Field(..., description="Fees deducted")
    net_pnl: Decimal = Field(..., description="P&L after fees")

    model_config = {"frozen": True}


def price_change(side: Side, entry_price: Number, exit_price: Number) -> Decimal:
    """Signed price move in the position's favour."""
    entry = to_decimal(entry_price)
    exit_ = to_decimal(exit_price)
    if side == "buy":
        return exit_ - entry
    return entry - exit_


def calculate_pnl(
    side: Side,
    entry_price: Number,
    exit_price: Number,
    units: Number,
    contract_multiplier: Number = 1,
    fees: Number = 0,
) -> tuple[Decimal, Decimal]:
    """Calculate gross and net P&L.

    Fees are an absolute cost and are subtracted whatever the sign of the
    gross P&L.

    Returns:
        Tuple of (gross_pnl, net_pnl), both quantized to 8 places.
    """
    change = price_change(side, entry_price, exit_price)
    gross = change * to_decimal(units) * to_decimal(contract_multiplier)
    net = gross - to_decimal(fees)
    return quantize(gross), quantize(net)


def exit_price_from_quote(side: Side, quote: Quote) -> Decimal:
    """Price at which a position would be closed against a quote.

    Closing a buy means selling at the bid; closing a sell means buying at
    the ask. Falls back to the quote's price when that side is missing.
    """
    if side == "buy":
        return quote.bid or quote.price
    return quote.ask or quote.price


def valuation_price(position: Position) -> Optional[Decimal]:
    """Stored price a position should be valued at, if any.

    Open positions use ``current_price``; closed positions use
    ``close_price`` and fall back to ``current_price``.
    """
    if position.is_open:
        return position.current_price
    if position.close_price is not None:
        return position.close_price
    return position.current_price


def calculate_position_pnl(
    position: Position,
    registry: InstrumentRegistry,
    exit_price: Optional[Number] = None,
    symbol: Optional[str] = None,
) -> PnlBreakdown:
    """Recalculate a position's P&L from its prices and the registry.

    The contract multiplier always comes from the registry; the copy
    stored on the position row is ignored here.

    Args:
        position: Position to value.
        registry: Instrument registry.
        exit_price: Price to value at. Defaults to ``valuation_price``.
        symbol: Symbol to look the instrument up under, when the stored
            symbol is known to be misspelled.

    Returns:
        PnlBreakdown with all intermediate values.

    Raises:
        ValueError: If no exit price is given and the position has none stored.
    """
    symbol = symbol or position.symbol
    if exit_price is None:
        exit_price = valuation_price(position)
        if exit_price is None:
            raise ValueError(f"Position {position.id} has no price to value it at")
    exit_price = to_decimal(exit_price)

    config = registry.get_config(symbol)
    units = registry.get_position_units(position.quantity, symbol)
    gross, net = calculate_pnl(
        position.side,
        position.open_price,
        exit_price,
        units,
        config.contract_multiplier,
        position.fees,
    )

    return PnlBreakdown(
        symbol=symbol,
        units=units,
        contract_multiplier=config.contract_multiplier,
        entry_price=position.open_price,
        exit_price=exit_price,
        price_change=price_change(position.side, position.open_price, exit_price),
        gross_pnl=gross,
        fees=position.fees,
        net_pnl=net,
    )
