"""Base quote provider interface for tradeledger."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from tradeledger.errors import QuoteError

logger = logging.getLogger(__name__)


class Quote(BaseModel):
    """Represents a live quote for a symbol."""

    symbol: str = Field(..., description="Trading symbol")
    price: Decimal = Field(..., gt=0, description="Last traded or mid price")
    bid: Optional[Decimal] = Field(default=None, gt=0, description="Best bid")
    ask: Optional[Decimal] = Field(default=None, gt=0, description="Best ask")
    timestamp: datetime = Field(default_factory=datetime.now, description="Quote time")

    model_config = {"frozen": True}


class BaseQuoteProvider(ABC):
    """Abstract base class for quote sources.

    Implementations must be safe to call from several threads at once;
    the recalculator fetches quotes for different symbols in parallel.
    """

    name: str = "base"

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """Get the current quote for a symbol.

        Args:
            symbol: Trading symbol.

        Returns:
            Quote with at least a price.

        Raises:
            QuoteError: If no quote can be produced.
        """
        pass

    def close(self) -> None:
        """Release any resources held by the provider."""
        pass


class FallbackQuoteProvider(BaseQuoteProvider):
    """Tries a sequence of providers in order and returns the first quote."""

    name = "fallback"

    def __init__(self, providers: Sequence[BaseQuoteProvider]):
        if not providers:
            raise ValueError("FallbackQuoteProvider needs at least one provider")
        self._providers = list(providers)

    @property
    def providers(self) -> list[BaseQuoteProvider]:
        return list(self._providers)

    def close(self) -> None:
        for provider in self._providers:
            provider.close()

    def get_quote(self, symbol: str) -> Quote:
        errors = []
        for provider in self._providers:
            try:
                return provider.get_quote(symbol)
            except QuoteError as e:
                logger.info("Quote from %s failed for %s: %s", provider.name, symbol, e)
                errors.append(f"{provider.name}: {e}")
        raise QuoteError(symbol, "; ".join(errors))
