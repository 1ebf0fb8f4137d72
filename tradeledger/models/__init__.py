"""Data models for tradeledger."""

from tradeledger.models.instrument import InstrumentConfig, InstrumentKind
from tradeledger.models.position import Position, PositionPnlUpdate
from tradeledger.models.account import Account
from tradeledger.models.transaction import Transaction

__all__ = [
    "Account",
    "InstrumentConfig",
    "InstrumentKind",
    "Position",
    "PositionPnlUpdate",
    "Transaction",
]
