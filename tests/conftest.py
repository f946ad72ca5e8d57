"""Shared fixtures: a SQLite store in a temp dir and an in-memory read-only store."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from pool_finance.database import SQLiteRepository
from pool_finance.database.repository import (
    CategoryRepository, PoolRepository, TransactionRepository,
)
from pool_finance.entities import (
    Budget, Category, CategoryType, Pool, PoolType, Transaction,
    TransactionType, User, Vendor,
)


class InMemoryRepository(TransactionRepository, CategoryRepository, PoolRepository):
    """
    Read-only store over plain lists.

    Does no validation, so tests can plant rows that the real stores reject.
    """

    def __init__(self, transactions=(), categories=(), pools=(), budgets=()):
        self.transactions = list(transactions)
        self.categories = {c.id: c for c in categories}
        self.pools = {p.id: p for p in pools}
        self.budgets = list(budgets)
        self.queries = 0

    def get_transactions(self, user_id, transaction_type=None, pool_id=None,
                         category_id=None, vendor_id=None, start_date=None, end_date=None):
        self.queries += 1
        result = []
        for txn in self.transactions:
            if txn.user_id != user_id:
                continue
            if transaction_type and txn.type != transaction_type:
                continue
            if pool_id is not None and txn.pool_id != pool_id:
                continue
            if category_id is not None and txn.category_id != category_id:
                continue
            if vendor_id is not None and txn.vendor_id != vendor_id:
                continue
            if start_date and txn.transaction_date < start_date:
                continue
            if end_date and txn.transaction_date > end_date:
                continue
            result.append(txn)
        return sorted(result, key=lambda t: t.transaction_date, reverse=True)

    def get_transaction_by_id(self, transaction_id) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def get_category(self, category_id) -> Optional[Category]:
        return self.categories.get(category_id)

    def get_user_categories(self, user_id) -> List[Category]:
        return [c for c in self.categories.values() if c.user_id == user_id]

    def get_pool(self, pool_id) -> Optional[Pool]:
        return self.pools.get(pool_id)

    def get_user_pools(self, user_id) -> List[Pool]:
        return [p for p in self.pools.values() if p.user_id == user_id]

    def get_pool_budgets(self, pool_id) -> List[Budget]:
        return [b for b in self.budgets if b.pool_id == pool_id]


def make_txn(user_id, txn_type, amount, when, **kwargs) -> Transaction:
    return Transaction(
        user_id=user_id,
        type=txn_type,
        amount=Decimal(amount),
        description=kwargs.pop('description', f"{txn_type.value} {amount}"),
        transaction_date=when,
        **kwargs,
    )


@pytest.fixture
def repo(tmp_path):
    repository = SQLiteRepository(str(tmp_path / "finance.db"))
    yield repository
    repository.close()


@pytest.fixture
def user(repo) -> User:
    return repo.save_user(User(email="test@example.com", name="Test User"))


@pytest.fixture
def other_user(repo) -> User:
    return repo.save_user(User(email="other@example.com", name="Other User"))


@pytest.fixture
def categories(repo, user) -> Dict[str, Category]:
    specs = [
        ("Salary", CategoryType.INCOME),
        ("Groceries", CategoryType.EXPENSE),
        ("Loan", CategoryType.CREDIT),
    ]
    return {
        name: repo.save_category(Category(user_id=user.id, name=name, type=category_type))
        for name, category_type in specs
    }


@pytest.fixture
def vendor(repo, user) -> Vendor:
    return repo.save_vendor(Vendor(user_id=user.id, name="Power Co", description="Electricity"))


@pytest.fixture
def pools(repo, user) -> Dict[str, Pool]:
    specs = [
        ("Household Bills", PoolType.EXPENSE),
        ("Salary Pool", PoolType.INCOME),
    ]
    return {
        name: repo.save_pool(Pool(user_id=user.id, name=name, type=pool_type))
        for name, pool_type in specs
    }


@pytest.fixture
def january_transactions(repo, user, categories, vendor):
    """The four transactions of the January 2024 scenario."""
    return [
        repo.save_transaction(make_txn(
            user.id, TransactionType.INCOME, "50000.00", datetime(2024, 1, 15),
            category_id=categories["Salary"].id,
        )),
        repo.save_transaction(make_txn(
            user.id, TransactionType.EXPENSE, "5000.00", datetime(2024, 1, 10),
            category_id=categories["Groceries"].id,
        )),
        repo.save_transaction(make_txn(
            user.id, TransactionType.CREDIT, "10000.00", datetime(2024, 1, 5),
            category_id=categories["Loan"].id, associated_person="Alex",
        )),
        repo.save_transaction(make_txn(
            user.id, TransactionType.PAYMENT, "1500.00", datetime(2024, 1, 12),
            vendor_id=vendor.id,
        )),
    ]
