"""InstrumentConfig data model."""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

InstrumentKind = Literal["crypto", "forex", "index", "commodity", "stock"]


class InstrumentConfig(BaseModel):
    """Contract parameters for a tradable symbol."""

    symbol: str = Field(..., min_length=1, description="Trading symbol (e.g., 'EUR/USD')")
    kind: InstrumentKind = Field(..., description="Instrument class")
    contract_multiplier: Decimal = Field(
        default=Decimal("1"), gt=0, description="Currency value of a one-point move per unit"
    )
    tick_size: Decimal = Field(..., gt=0, description="Minimum price increment")
    qty_step: Decimal = Field(..., gt=0, description="Minimum quantity increment")
    max_leverage: int = Field(..., gt=0, description="Maximum allowed leverage")
    lot_size: Optional[Decimal] = Field(
        default=None, gt=0, description="Base units per 1.0 lot (forex only)"
    )
    min_notional: Optional[Decimal] = Field(
        default=None, ge=0, description="Minimum position size in quote currency"
    )

    model_config = {"frozen": True}
