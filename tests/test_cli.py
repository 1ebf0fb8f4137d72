"""Tests for the tradeledger command line."""

from decimal import Decimal

import pytest
from click.testing import CliRunner

from tradeledger.cli import cli


@pytest.fixture
def run(temp_dir, temp_db, monkeypatch):
    """Invoke the CLI against the test database and an empty config."""
    monkeypatch.delenv("TWELVEDATA_API_KEY", raising=False)
    monkeypatch.delenv("TRADELEDGER_DB", raising=False)
    runner = CliRunner()
    config_path = temp_dir / "config.toml"

    def _run(*args: str):
        return runner.invoke(
            cli,
            ["--config", str(config_path), "--db", str(temp_db.db_path), *args],
        )

    return _run


@pytest.fixture
def misvalued(temp_db, make_account, make_position):
    account = make_account()
    position = make_position(
        account.id, symbol="EUR/USD", side="buy", quantity=Decimal("0.01"),
        open_price=Decimal("1.1000"), close_price=Decimal("1.1050"),
        realized_pnl=Decimal("0.05"), status="closed",
    )
    return account, position


class TestRecalcCommand:
    def test_dry_run(self, run, temp_db, misvalued, db_dump):
        before = db_dump(temp_db.db_path)

        result = run("recalc-pnl")

        assert result.exit_code == 0, result.output
        assert "DRY RUN" in result.output
        assert "No changes were made" in result.output
        assert db_dump(temp_db.db_path) == before

    def test_execute(self, run, temp_db, misvalued):
        account, position = misvalued

        result = run("recalc-pnl", "--execute")

        assert result.exit_code == 0, result.output
        assert "EXECUTION MODE" in result.output
        assert "applied successfully" in result.output
        assert temp_db.get_account(account.id).real_balance == Decimal("1004.95")
        assert temp_db.get_position(position.id).realized_pnl == Decimal("5")

    def test_nothing_to_do(self, run, make_account):
        make_account()

        result = run("recalc-pnl", "--no-live-quotes")

        assert result.exit_code == 0, result.output
        assert "Nothing to do" in result.output

    def test_live_quotes_from_market_data(self, run, temp_db, make_account, make_position):
        account = make_account()
        position = make_position(
            account.id, symbol="BTC/USD", side="buy", quantity=Decimal("1"),
            open_price=Decimal("40000"), current_price=Decimal("40000"),
        )
        temp_db.save_market_data("BTC/USD", Decimal("41000"), bid=Decimal("40990"))

        result = run("recalc-pnl", "--execute")

        assert result.exit_code == 0, result.output
        stored = temp_db.get_position(position.id)
        assert stored.unrealized_pnl == Decimal("990")
        assert stored.current_price == Decimal("40990")

    def test_no_live_quotes_uses_stored_price(self, run, temp_db, make_account, make_position):
        account = make_account()
        position = make_position(
            account.id, symbol="BTC/USD", side="buy", quantity=Decimal("1"),
            open_price=Decimal("40000"), current_price=Decimal("40500"),
        )
        temp_db.save_market_data("BTC/USD", Decimal("41000"))

        result = run("recalc-pnl", "--execute", "--no-live-quotes")

        assert result.exit_code == 0, result.output
        assert temp_db.get_position(position.id).unrealized_pnl == Decimal("500")

    def test_bad_config_exits_with_error(self, run, temp_dir):
        (temp_dir / "config.toml").write_text("[recalc\nbroken")

        result = run("recalc-pnl")

        assert result.exit_code == 1
        assert "Error" in result.output


class TestFixSymbolsCommand:
    def test_renames_on_execute(self, run, temp_db, make_account, make_position):
        account = make_account()
        position = make_position(
            account.id, symbol="EURUSD", side="buy", quantity=Decimal("0.01"),
            open_price=Decimal("1.1000"), close_price=Decimal("1.1050"), status="closed",
        )

        dry = run("fix-symbols")
        assert dry.exit_code == 0, dry.output
        assert "SYMBOL FORMAT FIX" in dry.output
        assert temp_db.get_position(position.id).symbol == "EURUSD"

        result = run("fix-symbols", "--execute")
        assert result.exit_code == 0, result.output
        assert temp_db.get_position(position.id).symbol == "EUR/USD"
        (txn,) = temp_db.get_transactions(account.id)
        assert txn.reference.startswith("Symbol format fix")

    def test_finds_separator_variants(self, run, temp_db, make_account, make_position):
        account = make_account()
        dashed = make_position(
            account.id, symbol="EUR-USD", side="buy", quantity=Decimal("0.01"),
            open_price=Decimal("1.1000"), close_price=Decimal("1.1050"), status="closed",
        )
        lower = make_position(
            account.id, symbol="gbp/usd", side="sell", quantity=Decimal("0.01"),
            open_price=Decimal("1.3000"), close_price=Decimal("1.2900"), status="closed",
        )

        result = run("fix-symbols", "--execute")

        assert result.exit_code == 0, result.output
        assert "Found 2 misspelled symbol(s)" in result.output
        assert temp_db.get_position(dashed.id).symbol == "EUR/USD"
        assert temp_db.get_position(lower.id).symbol == "GBP/USD"
        assert temp_db.get_account(account.id).real_balance == Decimal("1015")


class TestInstrumentCommand:
    def test_known_symbol(self, run):
        result = run("instrument", "SPX")

        assert result.exit_code == 0, result.output
        assert "SPX" in result.output
        assert "50" in result.output
        assert "fallback" not in result.output

    def test_unknown_symbol_shows_fallback(self, run):
        result = run("instrument", "XYZ")

        assert result.exit_code == 0, result.output
        assert "crypto" in result.output
        assert "fallback" in result.output

    def test_all(self, run):
        result = run("instrument", "--all")

        assert result.exit_code == 0, result.output
        assert "EUR/USD" in result.output
        assert "NQ" in result.output


class TestCheckBalancesCommand:
    def test_balanced(self, run, make_account):
        make_account()

        result = run("check-balances")

        assert result.exit_code == 0, result.output
        assert "All 1 accounts are balanced" in result.output

    def test_unbalanced_exits_nonzero(self, run, make_account):
        make_account("ACC-BAD", balance=Decimal("1"))

        result = run("check-balances")

        assert result.exit_code == 1
        assert "ACC-BAD" in result.output


class TestCliGroup:
    def test_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        for name in ("recalc-pnl", "fix-symbols", "instrument", "check-balances"):
            assert name in result.output


class TestDatabasePath:
    def test_missing_database_is_an_error(self, temp_dir, monkeypatch):
        monkeypatch.delenv("TRADELEDGER_DB", raising=False)
        db_path = temp_dir / "typo" / "nope.db"

        result = CliRunner().invoke(cli, [
            "--config", str(temp_dir / "config.toml"),
            "--db", str(db_path),
            "recalc-pnl", "--no-live-quotes",
        ])

        assert result.exit_code == 1
        assert "Database not found" in result.output
        assert not db_path.exists()
