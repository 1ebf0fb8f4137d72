"""TwelveData REST quote provider."""

import threading
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from tradeledger.errors import QuoteError
from tradeledger.quotes.base import BaseQuoteProvider, Quote

DEFAULT_BASE_URL = "https://api.twelvedata.com"


class TwelveDataProvider(BaseQuoteProvider):
    """Fetches prices from the TwelveData ``/price`` endpoint.

    The endpoint returns a single price without bid/ask, so consumers fall
    back to ``price`` for both sides. Successful quotes are cached for the
    lifetime of the provider; a batch run values every position in a
    symbol at the same price.
    """

    name = "twelvedata"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the provider.

        Args:
            api_key: TwelveData API key.
            base_url: REST base URL.
            timeout_s: Request timeout in seconds.
            client: Preconfigured httpx client (mainly for tests).
        """
        if not api_key:
            raise ValueError("TwelveData API key is required")
        self._api_key = api_key
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout_s)
        self._cache: dict[str, Quote] = {}
        self._lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def get_quote(self, symbol: str) -> Quote:
        with self._lock:
            cached = self._cache.get(symbol)
        if cached is not None:
            return cached

        try:
            r = self._client.get("/price", params={"symbol": symbol, "apikey": self._api_key})
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise QuoteError(symbol, f"request failed: {e}") from e

        if not isinstance(data, dict):
            raise QuoteError(symbol, f"unexpected response {data!r}")
        if data.get("status") == "error" or "price" not in data:
            raise QuoteError(symbol, data.get("message", "no price in response"))

        try:
            price = Decimal(str(data["price"]))
        except InvalidOperation as e:
            raise QuoteError(symbol, f"invalid price {data['price']!r}") from e
        if not price.is_finite() or price <= 0:
            raise QuoteError(symbol, f"invalid price {price}")

        quote = Quote(symbol=symbol, price=price)
        with self._lock:
            self._cache[symbol] = quote
        return quote
