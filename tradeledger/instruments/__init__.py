"""Instrument registry for tradeledger."""

from tradeledger.instruments.registry import (
    DEFAULT_INSTRUMENTS,
    InstrumentRegistry,
    default_registry,
    fallback_config,
)

__all__ = [
    "DEFAULT_INSTRUMENTS",
    "InstrumentRegistry",
    "default_registry",
    "fallback_config",
]
