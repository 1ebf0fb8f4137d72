"""tradeledger - P/L recalculation and ledger correction for trading accounts."""

__version__ = "0.1.0"
