"""Batch P&L recalculation.

Enumerates positions, recomputes their P&L from the instrument registry,
and (when executing) writes the corrections and posts per-account balance
adjustments for closed positions. Dry runs perform every read and
computation but write nothing.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from pydantic import BaseModel, Field

from tradeledger.db.store import DataStore
from tradeledger.errors import QuoteError
from tradeledger.instruments import InstrumentRegistry
from tradeledger.ledger.adjust import (
    MATERIALITY_THRESHOLD,
    AccountAdjustment,
    BalanceAdjuster,
    PositionCorrection,
    accumulate_account_deltas,
)
from tradeledger.ledger.pnl import (
    calculate_position_pnl,
    exit_price_from_quote,
    valuation_price,
)
from tradeledger.models import Position
from tradeledger.quotes import BaseQuoteProvider, Quote

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_WORKERS = 4


class SkippedPosition(BaseModel):
    """A position the batch could not value."""

    position_id: str = Field(..., description="Position ID")
    symbol: str = Field(..., description="Symbol as stored")
    reason: str = Field(..., description="Why it was skipped")

    model_config = {"frozen": True}


class RecalcReport(BaseModel):
    """Result of a recalculation run."""

    executed: bool = Field(default=False, description="Whether writes were made")
    total_positions: int = Field(default=0, ge=0, description="Positions examined")
    unchanged: int = Field(default=0, ge=0, description="Positions already correct")
    corrections: list[PositionCorrection] = Field(default_factory=list)
    skipped: list[SkippedPosition] = Field(default_factory=list)
    adjustments: list[AccountAdjustment] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def open_corrections(self) -> list[PositionCorrection]:
        return [c for c in self.corrections if c.status == "open"]

    @property
    def closed_corrections(self) -> list[PositionCorrection]:
        return [c for c in self.corrections if c.status == "closed"]

    @property
    def total_balance_adjustment(self) -> Decimal:
        """Sum of all balance-moving differences."""
        return sum(
            (c.difference for c in self.corrections if c.affects_balance),
            Decimal("0"),
        )

    @property
    def failed_adjustments(self) -> list[AccountAdjustment]:
        return [a for a in self.adjustments if a.status == "failed"]


class PnlRecalculator:
    """Recomputes stored position P&L and corrects account balances."""

    def __init__(
        self,
        data_store: DataStore,
        registry: InstrumentRegistry,
        quotes: Optional[BaseQuoteProvider] = None,
        threshold: Decimal = MATERIALITY_THRESHOLD,
        max_workers: int = DEFAULT_QUOTE_WORKERS,
        label: str = "P/L recalculation",
    ):
        """Initialize the recalculator.

        Args:
            data_store: DataStore holding positions, accounts and the ledger.
            registry: Instrument registry supplying units and multipliers.
            quotes: Live quote source for open positions. When None, open
                positions are valued at their stored current price.
            threshold: Materiality threshold for P&L and balance changes.
            max_workers: Maximum concurrent quote fetches.
            label: Prefix for ledger references.
        """
        self._data_store = data_store
        self._registry = registry
        self._quotes = quotes
        self._threshold = threshold
        self._max_workers = max(1, max_workers)
        self._adjuster = BalanceAdjuster(data_store, threshold=threshold, label=label)

    def run(
        self,
        execute: bool = False,
        symbol_map: Optional[Mapping[str, str]] = None,
    ) -> RecalcReport:
        """Plan the corrections and, if ``execute`` is set, apply them."""
        report = self.plan(symbol_map=symbol_map)
        if execute:
            return self.apply(report)
        return report

    # ==================== Planning ====================

    def plan(self, symbol_map: Optional[Mapping[str, str]] = None) -> RecalcReport:
        """Compute corrections without writing anything.

        Args:
            symbol_map: Stored symbol -> canonical symbol. When given, only
                positions stored under one of its keys are examined, they
                are valued under the canonical symbol, and open positions
                must be valued at a live quote.

        Returns:
            RecalcReport with planned corrections and adjustments.
        """
        positions = self._select_positions(symbol_map)
        require_live = symbol_map is not None

        def target(position: Position) -> str:
            if symbol_map is None:
                return position.symbol
            return symbol_map.get(position.symbol, position.symbol)

        quotes: dict[str, Union[Quote, QuoteError]] = {}
        if self._quotes is not None:
            quotes = self._fetch_quotes(target(p) for p in positions if p.is_open)

        corrections: list[PositionCorrection] = []
        skipped: list[SkippedPosition] = []
        unchanged = 0

        for position in positions:
            result = self._evaluate(position, target(position), quotes, require_live)
            if isinstance(result, SkippedPosition):
                logger.warning(
                    "Skipping position %s (%s): %s", position.id, position.symbol, result.reason
                )
                skipped.append(result)
            elif result is None:
                unchanged += 1
            else:
                corrections.append(result)

        pending = accumulate_account_deltas(corrections)
        return RecalcReport(
            executed=False,
            total_positions=len(positions),
            unchanged=unchanged,
            corrections=corrections,
            skipped=skipped,
            adjustments=self._adjuster.plan(pending.values()),
        )

    def _select_positions(self, symbol_map: Optional[Mapping[str, str]]) -> list[Position]:
        if symbol_map is None:
            return self._data_store.get_positions()
        positions: list[Position] = []
        for stored_symbol in symbol_map:
            positions.extend(self._data_store.get_positions(symbol=stored_symbol))
        return positions

    def _fetch_quotes(self, symbols: Iterable[str]) -> dict[str, Union[Quote, QuoteError]]:
        """Fetch one quote per distinct symbol with bounded concurrency.

        Failures are returned in place of the quote rather than raised.
        Malformed provider data is reported as a QuoteError for that symbol.
        """
        unique = sorted(set(symbols))
        if not unique:
            return {}

        def fetch(symbol: str) -> Union[Quote, QuoteError]:
            try:
                return self._quotes.get_quote(symbol)
            except QuoteError as e:
                return e
            except (ValueError, ArithmeticError) as e:
                error = QuoteError(symbol, f"malformed quote: {e}")
                error.__cause__ = e
                return error

        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(unique))) as pool:
            return dict(zip(unique, pool.map(fetch, unique)))

    def _evaluate(
        self,
        position: Position,
        symbol: str,
        quotes: Mapping[str, Union[Quote, QuoteError]],
        require_live: bool,
    ) -> Union[PositionCorrection, SkippedPosition, None]:
        """Value one position and decide whether it needs a correction.

        Returns:
            A correction, a skip record, or None if the stored values are
            already right.
        """
        refreshed_price = None

        if position.is_open and (self._quotes is not None or require_live):
            quote = quotes.get(symbol)
            if quote is None:
                return SkippedPosition(
                    position_id=position.id, symbol=position.symbol,
                    reason="live quote required but no quote provider is configured",
                )
            if isinstance(quote, QuoteError):
                return SkippedPosition(
                    position_id=position.id, symbol=position.symbol,
                    reason=f"quote unavailable: {quote}",
                )
            exit_price = exit_price_from_quote(position.side, quote)
            refreshed_price = exit_price
        else:
            exit_price = valuation_price(position)
            if exit_price is None:
                field = "current price" if position.is_open else "close or current price"
                return SkippedPosition(
                    position_id=position.id, symbol=position.symbol,
                    reason=f"no {field} stored",
                )

        breakdown = calculate_position_pnl(
            position, self._registry, exit_price=exit_price, symbol=symbol
        )

        old_pnl = position.stored_pnl
        difference = breakdown.net_pnl - (old_pnl if old_pnl is not None else Decimal("0"))
        material = abs(difference) > self._threshold

        if position.contract_multiplier != breakdown.contract_multiplier:
            logger.warning(
                "Position %s (%s): stored contract multiplier %s differs from registry %s",
                position.id,
                position.symbol,
                position.contract_multiplier,
                breakdown.contract_multiplier,
            )

        correction = PositionCorrection(
            position_id=position.id,
            account_id=position.account_id,
            status=position.status,
            side=position.side,
            old_symbol=position.symbol,
            new_symbol=symbol,
            quantity=position.quantity,
            units=breakdown.units,
            stored_multiplier=position.contract_multiplier,
            contract_multiplier=breakdown.contract_multiplier,
            exit_price=breakdown.exit_price,
            refreshed_price=refreshed_price,
            old_pnl=old_pnl,
            new_pnl=breakdown.net_pnl,
            difference=difference,
            material=material,
        )

        if not (material or correction.symbol_changed or correction.multiplier_changed):
            return None
        return correction

    # ==================== Execution ====================

    def apply(self, report: RecalcReport) -> RecalcReport:
        """Write a planned report's corrections and balance adjustments.

        Accounts are processed one at a time, each in its own transaction.
        A missing account is logged and recorded as a failed adjustment;
        the rest of the batch continues.

        Returns:
            A copy of the report with ``executed`` set and the adjustment
            outcomes filled in.
        """
        by_account: dict[str, list[PositionCorrection]] = {}
        for correction in report.corrections:
            by_account.setdefault(correction.account_id, []).append(correction)

        pending = accumulate_account_deltas(report.corrections)
        adjustments: list[AccountAdjustment] = []

        for account_id, corrections in by_account.items():
            outcome = self._adjuster.post(account_id, corrections, pending.get(account_id))
            if outcome is not None:
                adjustments.append(outcome)

        logger.info(
            "Applied %d position corrections, %d balance adjustments",
            len(report.corrections),
            sum(1 for a in adjustments if a.status == "applied"),
        )
        return report.model_copy(update={"executed": True, "adjustments": adjustments})
