"""Quote providers for tradeledger."""

from tradeledger.quotes.base import BaseQuoteProvider, FallbackQuoteProvider, Quote
from tradeledger.quotes.market_data import MarketDataProvider
from tradeledger.quotes.twelvedata import TwelveDataProvider

__all__ = [
    "BaseQuoteProvider",
    "FallbackQuoteProvider",
    "MarketDataProvider",
    "Quote",
    "TwelveDataProvider",
]
