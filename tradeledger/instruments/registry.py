"""Instrument configuration registry.

Central source of truth for per-symbol contract parameters. The registry
is built once at startup and passed to the components that need it, so
tests can substitute their own instrument table.
"""

import logging
from decimal import ROUND_FLOOR, Decimal
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from tradeledger.models import InstrumentConfig
from tradeledger.numeric import Number, to_decimal

logger = logging.getLogger(__name__)


def _forex(symbol: str, tick_size: str = "0.00001") -> InstrumentConfig:
    return InstrumentConfig(
        symbol=symbol,
        kind="forex",
        contract_multiplier=Decimal("1"),
        tick_size=Decimal(tick_size),
        qty_step=Decimal("0.01"),  # 0.01 lots = 1,000 units
        max_leverage=500,
        lot_size=Decimal("100000"),
        min_notional=Decimal("1000"),
    )


def _crypto(symbol: str, tick_size: str, qty_step: str, max_leverage: int) -> InstrumentConfig:
    return InstrumentConfig(
        symbol=symbol,
        kind="crypto",
        contract_multiplier=Decimal("1"),
        tick_size=Decimal(tick_size),
        qty_step=Decimal(qty_step),
        max_leverage=max_leverage,
        min_notional=Decimal("10"),
    )


DEFAULT_INSTRUMENTS: tuple[InstrumentConfig, ...] = (
    # Forex majors
    _forex("EUR/USD"),
    _forex("GBP/USD"),
    _forex("USD/JPY", tick_size="0.001"),
    _forex("USD/CHF"),
    _forex("AUD/USD"),
    # Crypto
    _crypto("BTC/USD", "0.01", "0.00001", 100),
    _crypto("ETH/USD", "0.01", "0.0001", 100),
    _crypto("XRP/USD", "0.0001", "0.1", 50),
    _crypto("SOL/USD", "0.01", "0.001", 75),
    _crypto("ADA/USD", "0.0001", "1", 50),
    # Commodities
    InstrumentConfig(
        symbol="XAU/USD",
        kind="commodity",
        tick_size=Decimal("0.01"),
        qty_step=Decimal("0.01"),
        max_leverage=200,
        min_notional=Decimal("100"),
    ),
    InstrumentConfig(
        symbol="XAG/USD",
        kind="commodity",
        tick_size=Decimal("0.001"),
        qty_step=Decimal("0.1"),
        max_leverage=200,
        min_notional=Decimal("50"),
    ),
    # Index CFDs, priced per point
    InstrumentConfig(
        symbol="SPX",
        kind="index",
        contract_multiplier=Decimal("50"),
        tick_size=Decimal("0.25"),
        qty_step=Decimal("1"),
        max_leverage=100,
        min_notional=Decimal("1000"),
    ),
    InstrumentConfig(
        symbol="NQ",
        kind="index",
        contract_multiplier=Decimal("20"),
        tick_size=Decimal("0.25"),
        qty_step=Decimal("1"),
        max_leverage=100,
        min_notional=Decimal("1000"),
    ),
)


def fallback_config(symbol: str) -> InstrumentConfig:
    """Crypto-like config used for symbols missing from the registry."""
    return InstrumentConfig(
        symbol=symbol,
        kind="crypto",
        contract_multiplier=Decimal("1"),
        tick_size=Decimal("0.01"),
        qty_step=Decimal("0.00001"),
        max_leverage=50,
        min_notional=Decimal("10"),
    )


class InstrumentRegistry:
    """Immutable symbol -> InstrumentConfig lookup table."""

    def __init__(self, instruments: Iterable[InstrumentConfig]):
        """Initialize the registry.

        Args:
            instruments: Instrument configs. Later entries replace earlier
                ones with the same symbol.
        """
        table = {config.symbol: config for config in instruments}
        self._instruments: Mapping[str, InstrumentConfig] = MappingProxyType(table)

    @classmethod
    def from_overrides(
        cls,
        overrides: Mapping[str, Mapping[str, Any]],
        base: Iterable[InstrumentConfig] = DEFAULT_INSTRUMENTS,
    ) -> "InstrumentRegistry":
        """Build a registry from a base table plus config-file overrides.

        Args:
            overrides: Mapping of symbol to InstrumentConfig fields, as found
                in the ``[instruments]`` section of the config file. Fields
                not given are taken from the base entry for that symbol.
            base: Instruments to start from.

        Returns:
            A new registry.
        """
        table = {config.symbol: config for config in base}
        for symbol, fields in overrides.items():
            existing = table.get(symbol)
            merged = existing.model_dump() if existing is not None else {}
            merged.update(fields)
            merged["symbol"] = symbol
            table[symbol] = InstrumentConfig.model_validate(merged)
        return cls(table.values())

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._instruments

    def __len__(self) -> int:
        return len(self._instruments)

    def symbols(self) -> list[str]:
        """All registered symbols, sorted."""
        return sorted(self._instruments)

    def lookup(self, symbol: str) -> Optional[InstrumentConfig]:
        """Get the registered config for a symbol, or None."""
        return self._instruments.get(symbol)

    def get_config(self, symbol: str) -> InstrumentConfig:
        """Get instrument configuration by symbol.

        Never fails: unknown symbols get a crypto-like default and a
        warning is logged, since the default multiplier may be wrong.
        """
        config = self._instruments.get(symbol)
        if config is not None:
            return config

        logger.warning("No instrument config found for %s, using defaults", symbol)
        return fallback_config(symbol)

    # ==================== Quantity conversion ====================

    def get_position_units(self, quantity: Number, symbol: str) -> Decimal:
        """Convert a stored position quantity to base units.

        Forex quantities are in lots and are multiplied by the lot size;
        every other instrument is already in units.
        """
        config = self.get_config(symbol)
        quantity = to_decimal(quantity)
        if config.lot_size:
            return quantity * config.lot_size
        return quantity

    def lots_to_quantity(self, lots: Number, symbol: str) -> Decimal:
        """Convert lots to base units (identity when no lot size is defined)."""
        return self.get_position_units(lots, symbol)

    def quantity_to_lots(self, quantity: Number, symbol: str) -> Decimal:
        """Convert base units to lots (identity when no lot size is defined)."""
        config = self.get_config(symbol)
        quantity = to_decimal(quantity)
        if config.lot_size:
            return quantity / config.lot_size
        return quantity

    # ==================== Rounding and risk ====================

    def round_to_tick_size(self, price: Number, symbol: str) -> Decimal:
        """Floor a price to the instrument's tick size."""
        tick = self.get_config(symbol).tick_size
        return (to_decimal(price) / tick).to_integral_value(rounding=ROUND_FLOOR) * tick

    def round_to_qty_step(self, quantity: Number, symbol: str) -> Decimal:
        """Floor a quantity to the instrument's quantity step."""
        step = self.get_config(symbol).qty_step
        return (to_decimal(quantity) / step).to_integral_value(rounding=ROUND_FLOOR) * step

    def validate_leverage(self, leverage: Number, symbol: str) -> bool:
        """Check that leverage is positive and within the instrument's cap."""
        leverage = to_decimal(leverage)
        return 0 < leverage <= self.get_config(symbol).max_leverage

    @staticmethod
    def calculate_required_margin(notional: Number, leverage: Number) -> Decimal:
        """Margin required for a position: notional / leverage.

        Raises:
            ValueError: If leverage is not positive.
        """
        leverage = to_decimal(leverage)
        if leverage <= 0:
            raise ValueError(f"Leverage must be positive, got {leverage}")
        return to_decimal(notional) / leverage


def default_registry(
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> InstrumentRegistry:
    """Build the registry from the built-in table and optional overrides."""
    if overrides:
        return InstrumentRegistry.from_overrides(overrides)
    return InstrumentRegistry(DEFAULT_INSTRUMENTS)
