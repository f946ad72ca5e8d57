"""
Database module providing abstracted storage for the finance entities.

This module provides:
- TransactionRepository, CategoryRepository, PoolRepository: read interfaces
  the report generators depend on
- FinanceRepository: full read/write interface
- SQLiteRepository: SQLite implementation (default)
- PostgresRepository: PostgreSQL implementation (for shared access)

Usage:
    from pool_finance.database import get_repository

    # SQLite (default)
    repo = get_repository()

    # PostgreSQL
    repo = get_repository(db_type="postgres")
"""

import os

from .repository import (
    CategoryRepository, FinanceRepository, PoolRepository, TransactionRepository,
)
from .sqlite_repository import SQLiteRepository
from .postgres_repository import PSYCOPG2_AVAILABLE, PostgresRepository


def get_repository(db_type: str = None, **kwargs) -> FinanceRepository:
    """
    Get a new repository instance.

    Args:
        db_type: Type of database ("sqlite" or "postgres")
                 Default: Uses DB_TYPE env var, or "sqlite" if not set
        **kwargs: Database-specific configuration
            SQLite:
                - db_path: Path to SQLite database file (default: DB_PATH env var or "data/finance.db")
            PostgreSQL:
                - host, port, database, user, password (default: DB_* env vars)

    Returns:
        FinanceRepository instance
    """
    if db_type is None:
        db_type = os.environ.get('DB_TYPE', 'sqlite')

    if db_type == "sqlite":
        db_path = kwargs.get('db_path', os.environ.get('DB_PATH', 'data/finance.db'))
        return SQLiteRepository(db_path)
    elif db_type == "postgres":
        return PostgresRepository(
            host=kwargs.get('host'),
            port=kwargs.get('port'),
            database=kwargs.get('database'),
            user=kwargs.get('user'),
            password=kwargs.get('password'),
        )
    else:
        raise ValueError(f"Unsupported database type: {db_type}. Use 'sqlite' or 'postgres'.")


__all__ = [
    'TransactionRepository',
    'CategoryRepository',
    'PoolRepository',
    'FinanceRepository',
    'SQLiteRepository',
    'PostgresRepository',
    'get_repository',
    'PSYCOPG2_AVAILABLE',
]
