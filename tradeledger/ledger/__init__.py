"""P&L recalculation and balance ledger adjustment."""

from tradeledger.ledger.adjust import (
    MATERIALITY_THRESHOLD,
    AccountAdjustment,
    BalanceAdjuster,
    PendingAdjustment,
    PositionCorrection,
    accumulate_account_deltas,
    build_reference,
)
from tradeledger.ledger.pnl import (
    PnlBreakdown,
    calculate_pnl,
    calculate_position_pnl,
    exit_price_from_quote,
    price_change,
)
from tradeledger.ledger.recalc import PnlRecalculator, RecalcReport, SkippedPosition
from tradeledger.ledger.symbols import (
    compact_symbol,
    default_symbol_mappings,
    normalize_symbol,
    stored_symbol_mappings,
)

__all__ = [
    "MATERIALITY_THRESHOLD",
    "AccountAdjustment",
    "BalanceAdjuster",
    "PendingAdjustment",
    "PnlBreakdown",
    "PnlRecalculator",
    "PositionCorrection",
    "RecalcReport",
    "SkippedPosition",
    "accumulate_account_deltas",
    "build_reference",
    "calculate_pnl",
    "calculate_position_pnl",
    "compact_symbol",
    "default_symbol_mappings",
    "exit_price_from_quote",
    "normalize_symbol",
    "price_change",
    "stored_symbol_mappings",
]
