"""Balance ledger adjustment for corrected closed positions.

A corrected realized P&L changes what the account should have been
credited. Only the difference between the new and old value is posted,
since the old value is already reflected in the balance.
"""

import logging
from decimal import Decimal
from typing import Iterable, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from tradeledger.db.store import DataStore
from tradeledger.errors import AccountNotFoundError
from tradeledger.models import PositionPnlUpdate
from tradeledger.numeric import format_money, quantize

logger = logging.getLogger(__name__)

# Corrections at or below one cent are treated as numerical noise.
MATERIALITY_THRESHOLD = Decimal("0.01")


class PositionCorrection(BaseModel):
    """A position whose stored P&L, symbol or multiplier needs correcting."""

    position_id: str = Field(..., description="Position ID")
    account_id: str = Field(..., description="Owning account ID")
    status: Literal["open", "closed"] = Field(..., description="Position status")
    side: Literal["buy", "sell"] = Field(..., description="Position side")
    old_symbol: str = Field(..., description="Symbol as stored")
    new_symbol: str = Field(..., description="Symbol the P&L was computed under")
    quantity: Decimal = Field(..., description="Stored quantity")
    units: Decimal = Field(..., description="Quantity in base units")
    stored_multiplier: Decimal = Field(..., description="Multiplier stored on the row")
    contract_multiplier: Decimal = Field(..., description="Registry multiplier used")
    exit_price: Decimal = Field(..., description="Price the position was valued at")
    refreshed_price: Optional[Decimal] = Field(
        default=None, description="Live price to store as current_price"
    )
    old_pnl: Optional[Decimal] = Field(default=None, description="Stored P&L, None if uncomputed")
    new_pnl: Decimal = Field(..., description="Recalculated P&L")
    difference: Decimal = Field(..., description="new_pnl minus old_pnl (uncomputed counts as 0)")
    material: bool = Field(..., description="Whether the difference exceeds the threshold")

    model_config = {"frozen": True}

    @property
    def symbol_changed(self) -> bool:
        return self.old_symbol != self.new_symbol

    @property
    def multiplier_changed(self) -> bool:
        return self.stored_multiplier != self.contract_multiplier

    @property
    def affects_balance(self) -> bool:
        """Closed positions with a material difference move the real balance."""
        return self.status == "closed" and self.material

    def to_update(self) -> PositionPnlUpdate:
        return PositionPnlUpdate(
            position_id=self.position_id,
            pnl=self.new_pnl,
            contract_multiplier=self.contract_multiplier,
            current_price=self.refreshed_price,
            symbol=self.new_symbol if self.symbol_changed else None,
        )


class PendingAdjustment(BaseModel):
    """Accumulated balance delta for one account."""

    account_id: str = Field(..., description="Account ID")
    delta: Decimal = Field(default=Decimal("0"), description="Sum of closed-position differences")
    positions: int = Field(default=0, ge=0, description="Closed positions contributing")
    notes: tuple[str, ...] = Field(default=(), description="Audit context for the reference")

    model_config = {"frozen": True}


class AccountAdjustment(BaseModel):
    """Outcome of posting (or planning) a balance adjustment."""

    account_id: str = Field(..., description="Account ID")
    delta: Decimal = Field(..., description="Signed adjustment")
    reference: str = Field(..., description="Ledger reference text")
    status: Literal["planned", "applied", "failed"] = Field(..., description="Outcome")
    old_real_balance: Optional[Decimal] = Field(default=None, description="Real balance before")
    new_real_balance: Optional[Decimal] = Field(default=None, description="Real balance after")
    new_balance: Optional[Decimal] = Field(default=None, description="Total balance after")
    transaction_id: Optional[str] = Field(default=None, description="Ledger entry written")
    error: Optional[str] = Field(default=None, description="Failure reason")

    model_config = {"frozen": True}


def correction_notes(correction: PositionCorrection) -> list[str]:
    """Audit notes describing what was wrong with a position."""
    notes = []
    if correction.symbol_changed:
        notes.append(f"symbol {correction.old_symbol} -> {correction.new_symbol}")
    if correction.multiplier_changed:
        stored = correction.stored_multiplier.normalize()
        registry = correction.contract_multiplier.normalize()
        notes.append(f"{correction.new_symbol} multiplier {stored:f} -> {registry:f}")
    return notes


def accumulate_account_deltas(
    corrections: Iterable[PositionCorrection],
) -> dict[str, PendingAdjustment]:
    """Sum closed-position differences per account.

    Open positions and immaterial differences never move a balance and
    are left out.
    """
    deltas: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    notes: dict[str, list[str]] = {}

    for correction in corrections:
        if not correction.affects_balance:
            continue
        account_id = correction.account_id
        deltas[account_id] = deltas.get(account_id, Decimal("0")) + correction.difference
        counts[account_id] = counts.get(account_id, 0) + 1
        account_notes = notes.setdefault(account_id, [])
        for note in correction_notes(correction):
            if note not in account_notes:
                account_notes.append(note)

    return {
        account_id: PendingAdjustment(
            account_id=account_id,
            delta=quantize(delta),
            positions=counts[account_id],
            notes=tuple(notes[account_id]),
        )
        for account_id, delta in deltas.items()
    }


def build_reference(label: str, pending: PendingAdjustment) -> str:
    """Human-readable ledger reference for a balance adjustment."""
    context = "; ".join(pending.notes) if pending.notes else "corrected lot-to-unit calculation"
    noun = "position" if pending.positions == 1 else "positions"
    return (
        f"{label}: balance adjustment {format_money(pending.delta, signed=True)} "
        f"for {pending.positions} closed {noun} ({context})"
    )


class BalanceAdjuster:
    """Posts position corrections and the resulting real-balance adjustment.

    Each account is handled in its own database transaction, covering the
    position P&L writes, the balance update and the ledger entry.
    """

    def __init__(
        self,
        data_store: DataStore,
        threshold: Decimal = MATERIALITY_THRESHOLD,
        label: str = "P/L recalculation",
    ):
        """Initialize the adjuster.

        Args:
            data_store: DataStore to write to.
            threshold: Minimum absolute delta that gets posted.
            label: Prefix for ledger references.
        """
        self._data_store = data_store
        self._threshold = threshold
        self._label = label

    def is_material(self, delta: Decimal) -> bool:
        return abs(delta) > self._threshold

    def plan(self, pending: Iterable[PendingAdjustment]) -> list[AccountAdjustment]:
        """Describe the adjustments that would be posted, without writing."""
        return [
            AccountAdjustment(
                account_id=p.account_id,
                delta=p.delta,
                reference=build_reference(self._label, p),
                status="planned",
            )
            for p in pending
            if self.is_material(p.delta)
        ]

    def post(
        self,
        account_id: str,
        corrections: Sequence[PositionCorrection],
        pending: Optional[PendingAdjustment] = None,
    ) -> Optional[AccountAdjustment]:
        """Write one account's corrections and balance adjustment.

        Args:
            account_id: Account the corrections belong to.
            corrections: Position corrections for this account.
            pending: Accumulated delta for the account, if any.

        Returns:
            The adjustment outcome, or None if no balance change was due.
            A missing account yields a ``failed`` adjustment and nothing
            (including the position corrections) is written.
        """
        updates = [c.to_update() for c in corrections]

        if pending is None or not self.is_material(pending.delta):
            self._data_store.post_corrections(updates)
            return None

        reference = build_reference(self._label, pending)
        try:
            before, after, txn = self._data_store.post_corrections(
                updates,
                account_id=account_id,
                delta=pending.delta,
                reference=reference,
            )
        except AccountNotFoundError as e:
            logger.warning("Skipping balance adjustment for %s: %s", account_id, e)
            return AccountAdjustment(
                account_id=account_id,
                delta=pending.delta,
                reference=reference,
                status="failed",
                error=str(e),
            )

        logger.info(
            "Adjusted account %s real balance by %s (%s -> %s)",
            account_id,
            pending.delta,
            before.real_balance,
            after.real_balance,
        )
        return AccountAdjustment(
            account_id=account_id,
            delta=pending.delta,
            reference=reference,
            status="applied",
            old_real_balance=before.real_balance,
            new_real_balance=after.real_balance,
            new_balance=after.balance,
            transaction_id=txn.id,
        )
