"""Account data model."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Account(BaseModel):
    """Represents a client trading account with segmented fund pools.

    ``balance`` is expected to equal ``real_balance + demo_balance +
    bonus_balance``. The database does not enforce this; every write made
    by tradeledger recomputes it.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Account ID")
    account_number: str = Field(..., min_length=1, description="Human-facing account number")
    currency: str = Field(default="USD", description="Account currency")
    balance: Decimal = Field(default=Decimal("0"), description="Total balance")
    real_balance: Decimal = Field(default=Decimal("0"), description="Real funds")
    demo_balance: Decimal = Field(default=Decimal("0"), description="Demo funds")
    bonus_balance: Decimal = Field(default=Decimal("0"), description="Bonus funds")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")

    model_config = {"frozen": True}

    @property
    def fund_total(self) -> Decimal:
        """Sum of the real, demo and bonus pools."""
        return self.real_balance + self.demo_balance + self.bonus_balance

    @property
    def is_balanced(self) -> bool:
        return self.balance == self.fund_total
