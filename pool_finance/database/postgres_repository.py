"""
PostgreSQL implementation of the FinanceRepository.

This module provides a PostgreSQL database for the finance store, enabling
shared access by the MCP server and other services. Tables are created from
the SQLAlchemy models; queries go through psycopg2 directly.
"""

import dataclasses
import logging
import os
from datetime import datetime
from typing import Any, List, Optional, Sequence

from pool_finance.database.models import create_schema, get_engine
from pool_finance.database.repository import FinanceRepository
from pool_finance.entities import (
    Budget, Category, CategoryType, Pool, PoolType, Transaction,
    TransactionType, User, Vendor,
)
from pool_finance.errors import InvalidInput, StoreFailure

try:
    import psycopg2
    from psycopg2.extras import RealDictCursor
    PSYCOPG2_AVAILABLE = True
except ImportError:
    PSYCOPG2_AVAILABLE = False

logger = logging.getLogger(__name__)


class PostgresRepository(FinanceRepository):
    """
    PostgreSQL implementation of FinanceRepository.

    NUMERIC columns come back as Decimal, so amounts never pass through float.
    """

    def __init__(
        self,
        host: str = None,
        port: int = None,
        database: str = None,
        user: str = None,
        password: str = None,
    ):
        """
        Initialize the PostgreSQL repository.

        Args:
            host: PostgreSQL host (default: DB_HOST env var or localhost)
            port: PostgreSQL port (default: DB_PORT env var or 5432)
            database: Database name (default: DB_NAME env var or pool_finance)
            user: Database user (default: DB_USER env var)
            password: Database password (default: DB_PASSWORD env var)
        """
        if not PSYCOPG2_AVAILABLE:
            raise ImportError("psycopg2 is required for PostgreSQL support. Install with: pip install psycopg2-binary")

        self.host = host or os.environ.get('DB_HOST', 'localhost')
        self.port = port or int(os.environ.get('DB_PORT', '5432'))
        self.database = database or os.environ.get('DB_NAME', 'pool_finance')
        self.user = user or os.environ.get('DB_USER')
        self.password = password or os.environ.get('DB_PASSWORD')

        if not self.user or not self.password:
            raise ValueError("Database user and password are required. Set DB_USER and DB_PASSWORD environment variables.")

        self._conn = None
        self.initialize()

    @property
    def url(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    @property
    def conn(self):
        """Get or create database connection."""
        if self._conn is None or self._conn.closed:
            self._conn = psycopg2.connect(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
            )
        return self._conn

    def initialize(self) -> None:
        """Create database tables if they don't exist."""
        engine = get_engine(self.url)
        try:
            create_schema(engine)
        finally:
            engine.dispose()

    def _rollback(self) -> None:
        # Only roll back an open connection; never reconnect to do it
        if self._conn is None or self._conn.closed:
            return
        try:
            self._conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"PostgreSQL rollback failed: {e}")

    def _query(self, query: str, params: Sequence[Any] = ()) -> List[dict]:
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                rows = cursor.fetchall()
            # Reads happen in their own transaction; end it so we see new commits
            self.conn.rollback()
            return rows
        except psycopg2.Error as e:
            self._rollback()
            logger.error(f"PostgreSQL query failed: {e}")
            raise StoreFailure(str(e)) from e

    def _write(self, query: str, params: Sequence[Any], returning: bool = False) -> int:
        """Run a write and commit. Returns the new id when ``returning``, else the row count."""
        try:
            with self.conn.cursor() as cursor:
                if returning:
                    cursor.execute(query + " RETURNING id", params)
                    result = cursor.fetchone()[0]
                else:
                    cursor.execute(query, params)
                    result = cursor.rowcount
            self.conn.commit()
            return result
        except psycopg2.IntegrityError as e:
            self._rollback()
            raise InvalidInput(f"Rejected by database: {e}") from e
        except psycopg2.Error as e:
            self._rollback()
            logger.error(f"PostgreSQL write failed: {e}")
            raise StoreFailure(str(e)) from e

    def _insert(self, query: str, params: Sequence[Any]) -> int:
        return self._write(query, params, returning=True)

    # ==================== Users / vendors ====================

    def save_user(self, user: User) -> User:
        user_id = self._insert(
            "INSERT INTO users (email, name, created_at) VALUES (%s, %s, %s)",
            (user.email, user.name, user.created_at),
        )
        return dataclasses.replace(user, id=user_id)

    def get_user(self, user_id: int) -> Optional[User]:
        rows = self._query("SELECT * FROM users WHERE id = %s", (user_id,))
        if not rows:
            return None
        row = rows[0]
        return User(id=row['id'], email=row['email'], name=row['name'], created_at=row['created_at'])

    def save_vendor(self, vendor: Vendor) -> Vendor:
        vendor_id = self._insert(
            "INSERT INTO vendors (user_id, name, description, created_at) VALUES (%s, %s, %s, %s)",
            (vendor.user_id, vendor.name, vendor.description, vendor.created_at),
        )
        return dataclasses.replace(vendor, id=vendor_id)

    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        rows = self._query("SELECT * FROM vendors WHERE id = %s", (vendor_id,))
        return Vendor(**rows[0]) if rows else None

    def get_user_vendors(self, user_id: int) -> List[Vendor]:
        rows = self._query("SELECT * FROM vendors WHERE user_id = %s ORDER BY name, id", (user_id,))
        return [Vendor(**row) for row in rows]

    # ==================== Categories / pools / budgets ====================

    def save_category(self, category: Category) -> Category:
        category_id = self._insert(
            "INSERT INTO categories (user_id, name, type, created_at) VALUES (%s, %s, %s, %s)",
            (category.user_id, category.name, category.type.value, category.created_at),
        )
        return dataclasses.replace(category, id=category_id)

    def get_category(self, category_id: int) -> Optional[Category]:
        rows = self._query("SELECT * FROM categories WHERE id = %s", (category_id,))
        return self._row_to_category(rows[0]) if rows else None

    def get_user_categories(self, user_id: int) -> List[Category]:
        rows = self._query("SELECT * FROM categories WHERE user_id = %s ORDER BY name, id", (user_id,))
        return [self._row_to_category(row) for row in rows]

    def save_pool(self, pool: Pool) -> Pool:
        pool_id = self._insert(
            "INSERT INTO pools (user_id, name, type, description, created_at) VALUES (%s, %s, %s, %s, %s)",
            (pool.user_id, pool.name, pool.type.value, pool.description, pool.created_at),
        )
        return dataclasses.replace(pool, id=pool_id)

    def get_pool(self, pool_id: int) -> Optional[Pool]:
        rows = self._query("SELECT * FROM pools WHERE id = %s", (pool_id,))
        return self._row_to_pool(rows[0]) if rows else None

    def get_user_pools(self, user_id: int) -> List[Pool]:
        rows = self._query("SELECT * FROM pools WHERE user_id = %s ORDER BY name, id", (user_id,))
        return [self._row_to_pool(row) for row in rows]

    def save_budget(self, budget: Budget) -> Budget:
        self.check_budget(budget)
        budget_id = self._insert(
            """
            INSERT INTO budgets (pool_id, target_amount, period_start, period_end, created_at)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (budget.pool_id, budget.target_amount, budget.period_start, budget.period_end, budget.created_at),
        )
        return dataclasses.replace(budget, id=budget_id)

    def get_pool_budgets(self, pool_id: int) -> List[Budget]:
        rows = self._query(
            "SELECT * FROM budgets WHERE pool_id = %s ORDER BY period_start, id", (pool_id,)
        )
        return [Budget(**row) for row in rows]

    # ==================== Transactions ====================

    def save_transaction(self, transaction: Transaction) -> Transaction:
        self.check_transaction_references(transaction)
        transaction_id = self._insert(
            """
            INSERT INTO transactions
            (user_id, pool_id, type, amount, description, category_id, vendor_id,
             associated_person, transaction_date, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                transaction.user_id,
                transaction.pool_id,
                transaction.type.value,
                transaction.amount,
                transaction.description,
                transaction.category_id,
                transaction.vendor_id,
                transaction.associated_person,
                transaction.transaction_date,
                transaction.created_at,
                transaction.updated_at,
            ),
        )
        return dataclasses.replace(transaction, id=transaction_id)

    def get_transaction_by_id(self, transaction_id: int) -> Optional[Transaction]:
        rows = self._query("SELECT * FROM transactions WHERE id = %s", (transaction_id,))
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
        query = "SELECT * FROM transactions WHERE user_id = %s"
        params: List[Any] = [user_id]

        if transaction_type:
            query += " AND type = %s"
            params.append(transaction_type.value)

        if pool_id is not None:
            query += " AND pool_id = %s"
            params.append(pool_id)

        if category_id is not None:
            query += " AND category_id = %s"
            params.append(category_id)

        if vendor_id is not None:
            query += " AND vendor_id = %s"
            params.append(vendor_id)

        if start_date:
            query += " AND transaction_date >= %s"
            params.append(start_date)

        if end_date:
            query += " AND transaction_date <= %s"
            params.append(end_date)

        query += " ORDER BY transaction_date DESC, id"

        return [self._row_to_transaction(row) for row in self._query(query, params)]

    def update_transaction(self, transaction_id: int, **changes) -> Transaction:
        updated = self.apply_transaction_changes(transaction_id, changes)
        self._write(
            """
            UPDATE transactions
            SET pool_id = %s, amount = %s, description = %s, category_id = %s, vendor_id = %s,
                associated_person = %s, transaction_date = %s, updated_at = %s
            WHERE id = %s
            """,
            (
                updated.pool_id,
                updated.amount,
                updated.description,
                updated.category_id,
                updated.vendor_id,
                updated.associated_person,
                updated.transaction_date,
                updated.updated_at,
                transaction_id,
            ),
        )
        return updated

    def delete_transaction(self, transaction_id: int) -> bool:
        return self._write("DELETE FROM transactions WHERE id = %s", (transaction_id,)) > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()
        self._conn = None

    # ==================== Row mapping ====================

    def _row_to_category(self, row: dict) -> Category:
        return Category(
            id=row['id'],
            user_id=row['user_id'],
            name=row['name'],
            type=CategoryType(row['type']),
            created_at=row['created_at'],
        )

    def _row_to_pool(self, row: dict) -> Pool:
        return Pool(
            id=row['id'],
            user_id=row['user_id'],
            name=row['name'],
            type=PoolType(row['type']),
            description=row['description'],
            created_at=row['created_at'],
        )

    def _row_to_transaction(self, row: dict) -> Transaction:
        """Convert a database row to a Transaction object."""
        return Transaction(
            id=row['id'],
            user_id=row['user_id'],
            pool_id=row['pool_id'],
            type=TransactionType(row['type']),
            amount=row['amount'],
            description=row['description'],
            category_id=row['category_id'],
            vendor_id=row['vendor_id'],
            associated_person=row['associated_person'],
            transaction_date=row['transaction_date'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )
