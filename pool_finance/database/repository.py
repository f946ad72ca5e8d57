"""
Abstract repository interfaces for the finance store.

The report generators only depend on the three read interfaces
(TransactionRepository, CategoryRepository, PoolRepository). FinanceRepository
combines them with the write operations that a concrete database backend
(SQLite, PostgreSQL) provides.
"""

import dataclasses
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from pool_finance.entities import (
    Budget, Category, CATEGORIZED_TYPES, Pool, Transaction, TransactionType,
    User, Vendor, as_datetime, check_amount, parse_amount,
)
from pool_finance.errors import InvalidInput

UPDATABLE_TRANSACTION_FIELDS = frozenset({
    'pool_id', 'amount', 'description', 'category_id',
    'vendor_id', 'associated_person', 'transaction_date',
})


class TransactionRepository(ABC):
    """Read access to stored transactions."""

    @abstractmethod
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
        """
        Query a user's transactions with optional filters.

        Args:
            user_id: Owner of the transactions
            transaction_type: Filter by transaction type
            pool_id: Filter by pool
            category_id: Filter by category
            vendor_id: Filter by vendor
            start_date: Filter transactions on or after this moment
            end_date: Filter transactions on or before this moment

        Returns:
            List of matching transactions, newest first

        Raises:
            StoreFailure: if the query could not be executed
        """
        pass

    @abstractmethod
    def get_transaction_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """Get a transaction by its ID, or None."""
        pass


class CategoryRepository(ABC):
    """Category lookup."""

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    def get_user_categories(self, user_id: int) -> List[Category]:
        pass


class PoolRepository(ABC):
    """Pool and budget lookup."""

    @abstractmethod
    def get_pool(self, pool_id: int) -> Optional[Pool]:
        pass

    @abstractmethod
    def get_user_pools(self, user_id: int) -> List[Pool]:
        pass

    @abstractmethod
    def get_pool_budgets(self, pool_id: int) -> List[Budget]:
        pass


class FinanceRepository(TransactionRepository, CategoryRepository, PoolRepository):
    """
    Full storage interface implemented by database backends.

    Saving returns a copy of the entity with its generated ``id`` filled in.
    """

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the database schema.
        Creates tables if they don't exist.
        """
        pass

    # ==================== Users / vendors ====================

    @abstractmethod
    def save_user(self, user: User) -> User:
        pass

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def save_vendor(self, vendor: Vendor) -> Vendor:
        pass

    @abstractmethod
    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        pass

    @abstractmethod
    def get_user_vendors(self, user_id: int) -> List[Vendor]:
        pass

    # ==================== Categories / pools / budgets ====================

    @abstractmethod
    def save_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    def save_pool(self, pool: Pool) -> Pool:
        pass

    @abstractmethod
    def save_budget(self, budget: Budget) -> Budget:
        """
        Save a budget for a pool.

        Raises:
            InvalidInput: if the pool does not exist, the target is not
                positive or the period ends before it starts
        """
        pass

    # ==================== Transactions ====================

    @abstractmethod
    def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Validate and save a single transaction.

        Raises:
            InvalidInput: if the transaction breaks a field invariant or
                references a missing user, pool, category or vendor
        """
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def update_transaction(self, transaction_id: int, **changes) -> Transaction:
        """
        Change some fields of a stored transaction and bump ``updated_at``.

        Args:
            transaction_id: ID of the transaction to change
            **changes: New values for any of pool_id, amount, description,
                category_id, vendor_id, associated_person, transaction_date

        Returns:
            The updated transaction

        Raises:
            InvalidInput: if the transaction is not found, a field cannot be
                changed, or the updated record breaks an invariant
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the database connection."""
        pass

    # ==================== Shared validation ====================

    def check_transaction_references(self, transaction: Transaction) -> None:
        """
        Check that everything a transaction points at exists.

        Also enforces that a category's type matches the transaction type.
        """
        transaction.validate()

        if self.get_user(transaction.user_id) is None:
            raise InvalidInput(f"User with id {transaction.user_id} does not exist")

        if transaction.pool_id is not None and self.get_pool(transaction.pool_id) is None:
            raise InvalidInput(f"Pool with id {transaction.pool_id} does not exist")

        if transaction.category_id is not None and transaction.type in CATEGORIZED_TYPES:
            category = self.get_category(transaction.category_id)
            if category is None:
                raise InvalidInput(f"Category with id {transaction.category_id} does not exist")
            if category.type.value != transaction.type.value:
                raise InvalidInput(
                    f"Category type '{category.type.value}' does not match "
                    f"transaction type '{transaction.type.value}'"
                )

        if transaction.vendor_id is not None and self.get_vendor(transaction.vendor_id) is None:
            raise InvalidInput(f"Vendor with id {transaction.vendor_id} does not exist")

    def apply_transaction_changes(self, transaction_id: int, changes: Dict[str, Any]) -> Transaction:
        """Merge ``changes`` into the stored transaction and validate the result."""
        unknown = set(changes) - UPDATABLE_TRANSACTION_FIELDS
        if unknown:
            raise InvalidInput(f"Cannot update transaction fields: {', '.join(sorted(unknown))}")

        existing = self.get_transaction_by_id(transaction_id)
        if existing is None:
            raise InvalidInput(f"Transaction with id {transaction_id} not found")

        if 'amount' in changes:
            changes['amount'] = parse_amount(changes['amount'])
        if 'transaction_date' in changes:
            changes['transaction_date'] = as_datetime(changes['transaction_date'])

        updated = dataclasses.replace(existing, updated_at=datetime.now(), **changes)
        self.check_transaction_references(updated)
        return updated

    def check_budget(self, budget: Budget) -> None:
        check_amount(budget.target_amount, "Budget target")
        if budget.period_end < budget.period_start:
            raise InvalidInput("Budget period ends before it starts")
        if self.get_pool(budget.pool_id) is None:
            raise InvalidInput(f"Pool with id {budget.pool_id} does not exist")
