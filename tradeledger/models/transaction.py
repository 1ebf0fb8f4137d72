"""Transaction (ledger entry) data model."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Transaction(BaseModel):
    """Represents an append-only record of a balance change."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Transaction ID")
    account_id: str = Field(..., min_length=1, description="Account ID")
    type: Literal["deposit", "withdrawal", "profit", "loss"] = Field(
        ..., description="Transaction type"
    )
    fund_type: Literal["real", "demo", "bonus"] = Field(
        default="real", description="Fund pool affected"
    )
    amount: Decimal = Field(..., ge=0, description="Absolute amount")
    status: Literal["pending", "completed", "rejected"] = Field(
        default="pending", description="Transaction status"
    )
    reference: Optional[str] = Field(default=None, description="Free-text explanation")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp")

    model_config = {"frozen": True}
