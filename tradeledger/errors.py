"""Exception types for tradeledger."""


class TradeLedgerError(Exception):
    """Base class for all tradeledger errors."""


class ConfigError(TradeLedgerError):
    """Raised when the configuration file cannot be read or is invalid."""


class QuoteError(TradeLedgerError):
    """Raised when a quote provider cannot produce a quote for a symbol."""

    def __init__(self, symbol: str, message: str):
        super().__init__(f"{symbol}: {message}")
        self.symbol = symbol


class AccountNotFoundError(TradeLedgerError):
    """Raised when a balance adjustment targets an unknown account."""

    def __init__(self, account_id: str):
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id
