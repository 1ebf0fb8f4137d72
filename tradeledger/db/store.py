"""SQLite data store for tradeledger."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional, Sequence

from tradeledger.errors import AccountNotFoundError
from tradeledger.models import Account, Position, PositionPnlUpdate, Transaction
from tradeledger.numeric import format_storage, quantize


def _dec(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _dec_or_none(value: Optional[Decimal]) -> Optional[str]:
    return format_storage(value) if value is not None else None


def _ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value is not None else None


class DataStore:
    """SQLite-based store for accounts, positions and the transaction ledger.

    Monetary columns are TEXT holding decimal strings with 8 fractional
    digits, so values round-trip without binary float error.
    """

    REQUIRED_TABLES = [
        "accounts",
        "positions",
        "transactions",
        "market_data",
    ]

    def __init__(self, db_path: Path, create: bool = True):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
            create: Create the file (and its directory) if it does not exist.

        Raises:
            FileNotFoundError: If ``create`` is False and the file is missing.
        """
        self.db_path = db_path
        if not create and not db_path.is_file():
            raise FileNotFoundError(f"Database not found: {db_path}")
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside a write-locked transaction.

        ``BEGIN IMMEDIATE`` takes the write lock before the first read, so
        a read-modify-write inside the block cannot interleave with another
        writer. Commits on success, rolls back on any exception.
        """
        conn = self._get_connection()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            # Accounts table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    account_number TEXT NOT NULL UNIQUE,
                    currency TEXT NOT NULL DEFAULT 'USD',
                    balance TEXT NOT NULL DEFAULT '0',
                    real_balance TEXT NOT NULL DEFAULT '0',
                    demo_balance TEXT NOT NULL DEFAULT '0',
                    bonus_balance TEXT NOT NULL DEFAULT '0',
                    created_at TEXT NOT NULL
                )
            """)

            # Positions table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS positions (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL REFERENCES accounts(id),
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    quantity TEXT NOT NULL,
                    open_price TEXT NOT NULL,
                    current_price TEXT,
                    close_price TEXT,
                    contract_multiplier TEXT NOT NULL DEFAULT '1',
                    fees TEXT NOT NULL DEFAULT '0',
                    unrealized_pnl TEXT,
                    realized_pnl TEXT,
                    status TEXT NOT NULL DEFAULT 'open',
                    opened_at TEXT NOT NULL,
                    closed_at TEXT
                )
            """)

            # Transactions table (append-only ledger)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL REFERENCES accounts(id),
                    type TEXT NOT NULL,
                    fund_type TEXT NOT NULL DEFAULT 'real',
                    amount TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    reference TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                )
            """)

            # Market data cache, kept current by the trading engine
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS market_data (
                    symbol TEXT PRIMARY KEY,
                    bid TEXT,
                    ask TEXT,
                    last_price TEXT,
                    timestamp TEXT NOT NULL
                )
            """)

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Accounts ====================

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            account_number=row["account_number"],
            currency=row["currency"],
            balance=Decimal(row["balance"]),
            real_balance=Decimal(row["real_balance"]),
            demo_balance=Decimal(row["demo_balance"]),
            bonus_balance=Decimal(row["bonus_balance"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def add_account(self, account: Account) -> None:
        """Insert an account.

        Args:
            account: Account to insert. Its ``balance`` is stored as given.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO accounts
                (id, account_number, currency, balance, real_balance, demo_balance,
                 bonus_balance, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account.id,
                    account.account_number,
                    account.currency,
                    format_storage(account.balance),
                    format_storage(account.real_balance),
                    format_storage(account.demo_balance),
                    format_storage(account.bonus_balance),
                    account.created_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_account(self, account_id: str) -> Optional[Account]:
        """Get an account by ID.

        Returns:
            Account if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM accounts WHERE id = ?", (account_id,))
            row = cursor.fetchone()
            return self._row_to_account(row) if row else None
        finally:
            conn.close()

    def get_accounts(self) -> list[Account]:
        """Get all accounts ordered by account number."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM accounts ORDER BY account_number")
            return [self._row_to_account(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def _adjust_balance(
        self,
        conn: sqlite3.Connection,
        account_id: str,
        delta: Decimal,
        reference: str,
    ) -> tuple[Account, Account, Transaction]:
        row = conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        if row is None:
            raise AccountNotFoundError(account_id)

        before = self._row_to_account(row)
        new_real = quantize(before.real_balance + delta)
        new_balance = quantize(new_real + before.demo_balance + before.bonus_balance)
        after = before.model_copy(update={"real_balance": new_real, "balance": new_balance})

        conn.execute(
            "UPDATE accounts SET real_balance = ?, balance = ? WHERE id = ?",
            (format_storage(new_real), format_storage(new_balance), account_id),
        )

        now = datetime.now()
        txn = Transaction(
            account_id=account_id,
            type="profit" if delta >= 0 else "loss",
            fund_type="real",
            amount=quantize(abs(delta)),
            status="completed",
            reference=reference,
            created_at=now,
            completed_at=now,
        )
        self._insert_transaction(conn, txn)
        return before, after, txn

    def apply_balance_adjustment(
        self,
        account_id: str,
        delta: Decimal,
        reference: str,
    ) -> tuple[Account, Account, Transaction]:
        """Post a real-fund balance correction and its ledger entry atomically.

        Reads the account, adds ``delta`` to ``real_balance``, recomputes
        ``balance`` as the sum of the three fund pools, and inserts a
        completed ``profit``/``loss`` transaction for ``abs(delta)``, all in
        a single transaction.

        Args:
            account_id: Account to adjust.
            delta: Signed amount to add to the real balance.
            reference: Explanation recorded on the transaction.

        Returns:
            Tuple of (account before, account after, transaction written).

        Raises:
            AccountNotFoundError: If the account does not exist.
        """
        with self.transaction() as conn:
            return self._adjust_balance(conn, account_id, delta, reference)

    # ==================== Positions ====================

    @staticmethod
    def _row_to_position(row: sqlite3.Row) -> Position:
        return Position(
            id=row["id"],
            account_id=row["account_id"],
            symbol=row["symbol"],
            side=row["side"],
            quantity=Decimal(row["quantity"]),
            open_price=Decimal(row["open_price"]),
            current_price=_dec(row["current_price"]),
            close_price=_dec(row["close_price"]),
            contract_multiplier=Decimal(row["contract_multiplier"]),
            fees=Decimal(row["fees"]),
            unrealized_pnl=_dec(row["unrealized_pnl"]),
            realized_pnl=_dec(row["realized_pnl"]),
            status=row["status"],
            opened_at=datetime.fromisoformat(row["opened_at"]),
            closed_at=_ts(row["closed_at"]),
        )

    def add_position(self, position: Position) -> None:
        """Insert a position.

        Args:
            position: Position to insert.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO positions
                (id, account_id, symbol, side, quantity, open_price, current_price,
                 close_price, contract_multiplier, fees, unrealized_pnl, realized_pnl,
                 status, opened_at, closed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    position.id,
                    position.account_id,
                    position.symbol,
                    position.side,
                    format_storage(position.quantity),
                    format_storage(position.open_price),
                    _dec_or_none(position.current_price),
                    _dec_or_none(position.close_price),
                    format_storage(position.contract_multiplier),
                    format_storage(position.fees),
                    _dec_or_none(position.unrealized_pnl),
                    _dec_or_none(position.realized_pnl),
                    position.status,
                    position.opened_at.isoformat(),
                    position.closed_at.isoformat() if position.closed_at else None,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_position(self, position_id: str) -> Optional[Position]:
        """Get a position by ID.

        Returns:
            Position if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM positions WHERE id = ?", (position_id,))
            row = cursor.fetchone()
            return self._row_to_position(row) if row else None
        finally:
            conn.close()

    def get_positions(
        self,
        status: Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> list[Position]:
        """Get positions, optionally filtered.

        Args:
            status: Only positions with this status ('open' or 'closed').
            symbol: Only positions stored under this symbol.

        Returns:
            List of positions ordered by open time.
        """
        clauses = []
        params: list[str] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if symbol:
            clauses.append("symbol = ?")
            params.append(symbol)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT * FROM positions {where} ORDER BY opened_at, id", params)
            return [self._row_to_position(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_position_symbols(self) -> list[str]:
        """Distinct symbols positions are stored under, sorted."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT DISTINCT symbol FROM positions ORDER BY symbol")
            return [row["symbol"] for row in cursor.fetchall()]
        finally:
            conn.close()

    @staticmethod
    def _write_position_pnl(conn: sqlite3.Connection, update: PositionPnlUpdate) -> None:
        conn.execute(
            """
            UPDATE positions SET
                unrealized_pnl = CASE WHEN status = 'open' THEN ? ELSE unrealized_pnl END,
                realized_pnl = CASE WHEN status = 'closed' THEN ? ELSE realized_pnl END,
                contract_multiplier = ?,
                current_price = COALESCE(?, current_price),
                symbol = COALESCE(?, symbol)
            WHERE id = ?
            """,
            (
                format_storage(update.pnl),
                format_storage(update.pnl),
                format_storage(update.contract_multiplier),
                _dec_or_none(update.current_price),
                update.symbol,
                update.position_id,
            ),
        )

    def update_position_pnl(self, update: PositionPnlUpdate) -> None:
        """Write a recalculated P&L to the field matching the position's status.

        Open positions get ``unrealized_pnl``, closed positions
        ``realized_pnl``. The stored contract multiplier is refreshed; the
        current price and symbol are only changed when given.

        Args:
            update: The values to write.
        """
        with self.transaction() as conn:
            self._write_position_pnl(conn, update)

    def post_corrections(
        self,
        updates: Sequence[PositionPnlUpdate],
        account_id: Optional[str] = None,
        delta: Optional[Decimal] = None,
        reference: str = "",
    ) -> Optional[tuple[Account, Account, Transaction]]:
        """Write position corrections and an optional balance adjustment atomically.

        Either every update and the adjustment are committed, or nothing is.

        Args:
            updates: Position P&L updates to write.
            account_id: Account to adjust, if any.
            delta: Signed real-balance adjustment for ``account_id``.
            reference: Explanation recorded on the ledger entry.

        Returns:
            The result of the balance adjustment, or None if none was made.

        Raises:
            AccountNotFoundError: If the account to adjust does not exist.
        """
        with self.transaction() as conn:
            for update in updates:
                self._write_position_pnl(conn, update)
            if account_id is not None and delta is not None:
                return self._adjust_balance(conn, account_id, delta, reference)
        return None

    # ==================== Transactions ====================

    @staticmethod
    def _insert_transaction(conn: sqlite3.Connection, txn: Transaction) -> None:
        conn.execute(
            """
            INSERT INTO transactions
            (id, account_id, type, fund_type, amount, status, reference, created_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                txn.id,
                txn.account_id,
                txn.type,
                txn.fund_type,
                format_storage(txn.amount),
                txn.status,
                txn.reference,
                txn.created_at.isoformat(),
                txn.completed_at.isoformat() if txn.completed_at else None,
            ),
        )

    def get_transactions(self, account_id: Optional[str] = None) -> list[Transaction]:
        """Get ledger entries.

        Args:
            account_id: Optional account filter. If None, returns all entries.

        Returns:
            List of transactions, oldest first.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            if account_id:
                cursor.execute(
                    "SELECT * FROM transactions WHERE account_id = ? ORDER BY created_at, id",
                    (account_id,),
                )
            else:
                cursor.execute("SELECT * FROM transactions ORDER BY created_at, id")
            return [
                Transaction(
                    id=row["id"],
                    account_id=row["account_id"],
                    type=row["type"],
                    fund_type=row["fund_type"],
                    amount=Decimal(row["amount"]),
                    status=row["status"],
                    reference=row["reference"],
                    created_at=datetime.fromisoformat(row["created_at"]),
                    completed_at=_ts(row["completed_at"]),
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    # ==================== Market data ====================

    def save_market_data(
        self,
        symbol: str,
        last_price: Optional[Decimal],
        bid: Optional[Decimal] = None,
        ask: Optional[Decimal] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Save or replace the latest market data for a symbol."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO market_data (symbol, bid, ask, last_price, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    symbol,
                    _dec_or_none(bid),
                    _dec_or_none(ask),
                    _dec_or_none(last_price),
                    (timestamp or datetime.now()).isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_market_data(self, symbol: str) -> Optional[dict]:
        """Get the latest market data for a symbol.

        Returns:
            Dict with ``bid``, ``ask``, ``last_price`` (Decimal or None) and
            ``timestamp``, or None if the symbol has no row.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM market_data WHERE symbol = ?", (symbol,))
            row = cursor.fetchone()
            if row is None:
                return None
            return {
                "symbol": row["symbol"],
                "bid": _dec(row["bid"]),
                "ask": _dec(row["ask"]),
                "last_price": _dec(row["last_price"]),
                "timestamp": datetime.fromisoformat(row["timestamp"]),
            }
        finally:
            conn.close()

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
