"""Quote provider backed by the market_data table."""

from pydantic import ValidationError

from tradeledger.db.store import DataStore
from tradeledger.errors import QuoteError
from tradeledger.quotes.base import BaseQuoteProvider, Quote


class MarketDataProvider(BaseQuoteProvider):
    """Reads the latest bid/ask/last price the trading engine has stored."""

    name = "market_data"

    def __init__(self, data_store: DataStore):
        self._data_store = data_store

    def get_quote(self, symbol: str) -> Quote:
        row = self._data_store.get_market_data(symbol)
        if row is None or not row["last_price"]:
            raise QuoteError(symbol, "no market data stored")

        try:
            return Quote(
                symbol=symbol,
                price=row["last_price"],
                bid=row["bid"] or None,
                ask=row["ask"] or None,
                timestamp=row["timestamp"],
            )
        except ValidationError as e:
            raise QuoteError(symbol, f"invalid market data: {e.error_count()} error(s)") from e
