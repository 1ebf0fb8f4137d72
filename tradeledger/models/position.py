"""Position data model."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Position(BaseModel):
    """Represents an open or closed trading position.

    ``quantity`` is expressed in lots for forex instruments and in raw
    units for everything else. Only one of ``unrealized_pnl`` (open) and
    ``realized_pnl`` (closed) is authoritative. ``None`` means the value
    has never been computed.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Position ID")
    account_id: str = Field(..., min_length=1, description="Owning account ID")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    side: Literal["buy", "sell"] = Field(..., description="Position side")
    quantity: Decimal = Field(..., gt=0, description="Quantity (lots for forex)")
    open_price: Decimal = Field(..., ge=0, description="Entry price")
    current_price: Optional[Decimal] = Field(default=None, ge=0, description="Last marked price")
    close_price: Optional[Decimal] = Field(default=None, ge=0, description="Exit price")
    contract_multiplier: Decimal = Field(
        default=Decimal("1"), gt=0, description="Stored copy of the instrument multiplier"
    )
    fees: Decimal = Field(default=Decimal("0"), ge=0, description="Fees paid")
    unrealized_pnl: Optional[Decimal] = Field(default=None, description="Unrealized P&L")
    realized_pnl: Optional[Decimal] = Field(default=None, description="Realized P&L")
    status: Literal["open", "closed"] = Field(default="open", description="Position status")
    opened_at: datetime = Field(default_factory=datetime.now, description="Open timestamp")
    closed_at: Optional[datetime] = Field(default=None, description="Close timestamp")

    model_config = {"frozen": True}

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    @property
    def stored_pnl(self) -> Optional[Decimal]:
        """The P&L field that is authoritative for this position's status."""
        return self.unrealized_pnl if self.is_open else self.realized_pnl


class PositionPnlUpdate(BaseModel):
    """A recalculated P&L to be written back to a position row."""

    position_id: str = Field(..., description="Position ID")
    pnl: Decimal = Field(..., description="New P&L for the field matching the status")
    contract_multiplier: Decimal = Field(..., gt=0, description="Multiplier used")
    current_price: Optional[Decimal] = Field(
        default=None, ge=0, description="Refreshed mark price, if fetched"
    )
    symbol: Optional[str] = Field(default=None, description="Corrected symbol, if renamed")

    model_config = {"frozen": True}
