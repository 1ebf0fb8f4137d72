"""Shared fixtures for tradeledger tests."""

import sqlite3
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

from tradeledger.db.store import DataStore
from tradeledger.errors import QuoteError
from tradeledger.instruments import default_registry
from tradeledger.models import Account, Position
from tradeledger.quotes import BaseQuoteProvider, Quote


class StubQuotes(BaseQuoteProvider):
    """Quote provider serving fixed quotes; unknown symbols fail."""

    name = "stub"

    def __init__(self, quotes: dict[str, Quote]):
        self.quotes = quotes
        self.calls: list[str] = []

    def get_quote(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        if symbol not in self.quotes:
            raise QuoteError(symbol, "no quote")
        return self.quotes[symbol]


def dump_db(db_path: Path) -> str:
    """Full SQL dump of a database, for before/after comparisons."""
    conn = sqlite3.connect(db_path)
    try:
        return "\n".join(conn.iterdump())
    finally:
        conn.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> DataStore:
    """Create a temporary database for testing."""
    return DataStore(temp_dir / "test.db")


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def make_account(temp_db: DataStore):
    """Insert a balanced account and return it."""

    def _make(
        account_number: str = "ACC-1",
        real: str = "1000",
        demo: str = "500",
        bonus: str = "100",
        **kwargs,
    ) -> Account:
        real_d, demo_d, bonus_d = Decimal(real), Decimal(demo), Decimal(bonus)
        account = Account(
            account_number=account_number,
            real_balance=real_d,
            demo_balance=demo_d,
            bonus_balance=bonus_d,
            balance=kwargs.pop("balance", real_d + demo_d + bonus_d),
            **kwargs,
        )
        temp_db.add_account(account)
        return account

    return _make


@pytest.fixture
def make_position(temp_db: DataStore):
    """Insert a position and return it."""

    def _make(account_id: str, **kwargs) -> Position:
        position = Position(account_id=account_id, **kwargs)
        temp_db.add_position(position)
        return position

    return _make


@pytest.fixture
def stub_quotes():
    """Factory for StubQuotes providers."""
    return StubQuotes


@pytest.fixture
def db_dump():
    """Function returning a full SQL dump of a database file."""
    return dump_db
