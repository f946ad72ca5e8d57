"""
SQLite implementation of the FinanceRepository.

This module provides a local SQLite database for users, categories, vendors,
pools, budgets and transactions. The database file is stored in the data/
directory by default.

Amounts are stored as fixed-precision decimal text and timestamps as ISO-8601
text with microseconds, so string comparison orders them correctly.
"""

import dataclasses
import logging
import sqlite3
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional, Sequence

from pool_finance.database.repository import FinanceRepository
from pool_finance.entities import (
    Budget, Category, CategoryType, Pool, PoolType, Transaction,
    TransactionType, User, Vendor,
)
from pool_finance.errors import InvalidInput, StoreFailure

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id),
        name TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('income', 'expense', 'credit')),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS vendors (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id),
        name TEXT NOT NULL,
        description TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pools (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id),
        name TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('income', 'expense', 'credit', 'payment')),
        description TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS budgets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pool_id INTEGER NOT NULL REFERENCES pools(id),
        target_amount TEXT NOT NULL,
        period_start TEXT NOT NULL,
        period_end TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id),
        pool_id INTEGER REFERENCES pools(id),
        type TEXT NOT NULL CHECK (type IN ('income', 'expense', 'credit', 'payment')),
        amount TEXT NOT NULL,
        description TEXT NOT NULL,
        category_id INTEGER REFERENCES categories(id),
        vendor_id INTEGER REFERENCES vendors(id),
        associated_person TEXT,
        transaction_date TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions(user_id, transaction_date)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_category ON transactions(category_id)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_pool ON transactions(pool_id)",
]


def _ts(value: datetime) -> str:
    return value.isoformat(timespec='microseconds')


def _money(value: Decimal) -> str:
    return str(value.quantize(CENT))


class SQLiteRepository(FinanceRepository):
    """
    SQLite implementation of FinanceRepository.

    Stores everything in a local SQLite database file. ``":memory:"`` gives a
    throwaway database.
    """

    def __init__(self, db_path: str = "data/finance.db"):
        """
        Initialize the SQLite repository.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self.initialize()

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def initialize(self) -> None:
        """Create database tables if they don't exist."""
        try:
            for statement in SCHEMA:
                self.conn.execute(statement)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreFailure(f"Could not initialize SQLite schema: {e}") from e

    def _rollback(self) -> None:
        # Only roll back an open connection; never reconnect to do it
        if self._conn is not None:
            self._conn.rollback()

    def _query(self, query: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            cursor = self.conn.execute(query, params)
            return cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"SQLite query failed: {e}")
            raise StoreFailure(str(e)) from e

    def _write(self, query: str, params: Sequence[Any]) -> sqlite3.Cursor:
        try:
            cursor = self.conn.execute(query, params)
            self.conn.commit()
            return cursor
        except sqlite3.IntegrityError as e:
            self._rollback()
            raise InvalidInput(f"Rejected by database: {e}") from e
        except sqlite3.Error as e:
            self._rollback()
            logger.error(f"SQLite write failed: {e}")
            raise StoreFailure(str(e)) from e

    def _insert(self, query: str, params: Sequence[Any]) -> int:
        return self._write(query, params).lastrowid

    # ==================== Users / vendors ====================

    def save_user(self, user: User) -> User:
        user_id = self._insert(
            "INSERT INTO users (email, name, created_at) VALUES (?, ?, ?)",
            (user.email, user.name, _ts(user.created_at)),
        )
        return dataclasses.replace(user, id=user_id)

    def get_user(self, user_id: int) -> Optional[User]:
        rows = self._query("SELECT * FROM users WHERE id = ?", (user_id,))
        if not rows:
            return None
        row = rows[0]
        return User(
            id=row['id'],
            email=row['email'],
            name=row['name'],
            created_at=datetime.fromisoformat(row['created_at']),
        )

    def save_vendor(self, vendor: Vendor) -> Vendor:
        vendor_id = self._insert(
            "INSERT INTO vendors (user_id, name, description, created_at) VALUES (?, ?, ?, ?)",
            (vendor.user_id, vendor.name, vendor.description, _ts(vendor.created_at)),
        )
        return dataclasses.replace(vendor, id=vendor_id)

    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        rows = self._query("SELECT * FROM vendors WHERE id = ?", (vendor_id,))
        return self._row_to_vendor(rows[0]) if rows else None

    def get_user_vendors(self, user_id: int) -> List[Vendor]:
        rows = self._query("SELECT * FROM vendors WHERE user_id = ? ORDER BY name, id", (user_id,))
        return [self._row_to_vendor(row) for row in rows]

    # ==================== Categories / pools / budgets ====================

    def save_category(self, category: Category) -> Category:
        category_id = self._insert(
            "INSERT INTO categories (user_id, name, type, created_at) VALUES (?, ?, ?, ?)",
            (category.user_id, category.name, category.type.value, _ts(category.created_at)),
        )
        return dataclasses.replace(category, id=category_id)

    def get_category(self, category_id: int) -> Optional[Category]:
        rows = self._query("SELECT * FROM categories WHERE id = ?", (category_id,))
        return self._row_to_category(rows[0]) if rows else None

    def get_user_categories(self, user_id: int) -> List[Category]:
        rows = self._query("SELECT * FROM categories WHERE user_id = ? ORDER BY name, id", (user_id,))
        return [self._row_to_category(row) for row in rows]

    def save_pool(self, pool: Pool) -> Pool:
        pool_id = self._insert(
            "INSERT INTO pools (user_id, name, type, description, created_at) VALUES (?, ?, ?, ?, ?)",
            (pool.user_id, pool.name, pool.type.value, pool.description, _ts(pool.created_at)),
        )
        return dataclasses.replace(pool, id=pool_id)

    def get_pool(self, pool_id: int) -> Optional[Pool]:
        rows = self._query("SELECT * FROM pools WHERE id = ?", (pool_id,))
        return self._row_to_pool(rows[0]) if rows else None

    def get_user_pools(self, user_id: int) -> List[Pool]:
        rows = self._query("SELECT * FROM pools WHERE user_id = ? ORDER BY name, id", (user_id,))
        return [self._row_to_pool(row) for row in rows]

    def save_budget(self, budget: Budget) -> Budget:
        self.check_budget(budget)
        budget_id = self._insert(
            """
            INSERT INTO budgets (pool_id, target_amount, period_start, period_end, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                budget.pool_id,
                _money(budget.target_amount),
                _ts(budget.period_start),
                _ts(budget.period_end),
                _ts(budget.created_at),
            ),
        )
        return dataclasses.replace(budget, id=budget_id)

    def get_pool_budgets(self, pool_id: int) -> List[Budget]:
        rows = self._query(
            "SELECT * FROM budgets WHERE pool_id = ? ORDER BY period_start, id", (pool_id,)
        )
        return [
            Budget(
                id=row['id'],
                pool_id=row['pool_id'],
                target_amount=Decimal(row['target_amount']),
                period_start=datetime.fromisoformat(row['period_start']),
                period_end=datetime.fromisoformat(row['period_end']),
                created_at=datetime.fromisoformat(row['created_at']),
            )
            for row in rows
        ]

    # ==================== Transactions ====================

    def save_transaction(self, transaction: Transaction) -> Transaction:
        """Validate and save a transaction. Returns it with its new id."""
        self.check_transaction_references(transaction)
        transaction_id = self._insert(
            """
            INSERT INTO transactions
            (user_id, pool_id, type, amount, description, category_id, vendor_id,
             associated_person, transaction_date, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                transaction.user_id,
                transaction.pool_id,
                transaction.type.value,
                _money(transaction.amount),
                transaction.description,
                transaction.category_id,
                transaction.vendor_id,
                transaction.associated_person,
                _ts(transaction.transaction_date),
                _ts(transaction.created_at),
                _ts(transaction.updated_at),
            ),
        )
        logger.debug(f"Saved transaction {transaction_id} for user {transaction.user_id}")
        return dataclasses.replace(transaction, id=transaction_id)

    def get_transaction_by_id(self, transaction_id: int) -> Optional[Transaction]:
        rows = self._query("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
        return self._row_to_transaction(rows[0]) if rows else None

    def get_transactions(
        self,
        user_id: int,
        transaction_type: Optional[TransactionType] = None,
        pool_id: Optional[int] = None,
        category_id: Optional[int] = None,
        vendor_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[Transaction]:
        """Query transactions with optional filters."""
        query = "SELECT * FROM transactions WHERE user_id = ?"
        params: List[Any] = [user_id]

        if transaction_type:
            query += " AND type = ?"
            params.append(transaction_type.value)

        if pool_id is not None:
            query += " AND pool_id = ?"
            params.append(pool_id)

        if category_id is not None:
            query += " AND category_id = ?"
            params.append(category_id)

        if vendor_id is not None:
            query += " AND vendor_id = ?"
            params.append(vendor_id)

        if start_date:
            query += " AND transaction_date >= ?"
            params.append(_ts(start_date))

        if end_date:
            query += " AND transaction_date <= ?"
            params.append(_ts(end_date))

        query += " ORDER BY transaction_date DESC, id"

        return [self._row_to_transaction(row) for row in self._query(query, params)]

    def update_transaction(self, transaction_id: int, **changes) -> Transaction:
        """Apply a partial update to a transaction. Returns the updated record."""
        updated = self.apply_transaction_changes(transaction_id, changes)
        self._write(
            """
            UPDATE transactions
            SET pool_id = ?, amount = ?, description = ?, category_id = ?, vendor_id = ?,
                associated_person = ?, transaction_date = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                updated.pool_id,
                _money(updated.amount),
                updated.description,
                updated.category_id,
                updated.vendor_id,
                updated.associated_person,
                _ts(updated.transaction_date),
                _ts(updated.updated_at),
                transaction_id,
            ),
        )
        logger.debug(f"Updated transaction {transaction_id}: {', '.join(sorted(changes))}")
        return updated

    def delete_transaction(self, transaction_id: int) -> bool:
        """Delete a transaction by ID."""
        cursor = self._write("DELETE FROM transactions WHERE id = ?", (transaction_id,))
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # ==================== Row mapping ====================

    def _row_to_category(self, row: sqlite3.Row) -> Category:
        return Category(
            id=row['id'],
            user_id=row['user_id'],
            name=row['name'],
            type=CategoryType(row['type']),
            created_at=datetime.fromisoformat(row['created_at']),
        )

    def _row_to_pool(self, row: sqlite3.Row) -> Pool:
        return Pool(
            id=row['id'],
            user_id=row['user_id'],
            name=row['name'],
            type=PoolType(row['type']),
            description=row['description'],
            created_at=datetime.fromisoformat(row['created_at']),
        )

    def _row_to_vendor(self, row: sqlite3.Row) -> Vendor:
        return Vendor(
            id=row['id'],
            user_id=row['user_id'],
            name=row['name'],
            description=row['description'],
            created_at=datetime.fromisoformat(row['created_at']),
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        """Convert a database row to a Transaction object."""
        return Transaction(
            id=row['id'],
            user_id=row['user_id'],
            pool_id=row['pool_id'],
            type=TransactionType(row['type']),
            amount=Decimal(row['amount']),
            description=row['description'],
            category_id=row['category_id'],
            vendor_id=row['vendor_id'],
            associated_person=row['associated_person'],
            transaction_date=datetime.fromisoformat(row['transaction_date']),
            created_at=datetime.fromisoformat(row['created_at']),
            updated_at=datetime.fromisoformat(row['updated_at']),
        )
