"""
Entity data models for users, categories, vendors, pools, budgets and transactions.

This module provides:
- TransactionType, CategoryType, PoolType: the allowed type values
- User, Category, Vendor, Pool, Budget, Transaction: stored records
- as_datetime: normalises date/datetime bounds used in queries

Amounts are kept as Decimal everywhere; they are only turned into floats
when a report is serialized.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Union

from pool_finance.errors import InvalidInput


class TransactionType(Enum):
    """Kind of financial event."""
    INCOME = "income"
    EXPENSE = "expense"
    CREDIT = "credit"      # Money borrowed from someone
    PAYMENT = "payment"    # Money paid out to a vendor


class CategoryType(Enum):
    """Transaction types that can carry a category."""
    INCOME = "income"
    EXPENSE = "expense"
    CREDIT = "credit"


class PoolType(Enum):
    """Type label of a pool."""
    INCOME = "income"
    EXPENSE = "expense"
    CREDIT = "credit"
    PAYMENT = "payment"


# Transaction types that may reference a category
CATEGORIZED_TYPES = frozenset({
    TransactionType.INCOME,
    TransactionType.EXPENSE,
    TransactionType.CREDIT,
})


def as_datetime(value: Union[date, datetime, str, None], end_of_day: bool = False) -> Optional[datetime]:
    """
    Normalise a query bound to a datetime.

    A plain date covers the whole day: 00:00:00 when used as a lower bound,
    23:59:59.999999 when ``end_of_day`` is set. Strings are parsed as
    ISO-8601 dates or datetimes. Values with a UTC offset are converted to
    naive local time, the form every stored timestamp uses.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value) if 'T' in value or ' ' in value else date.fromisoformat(value)
        except ValueError:
            raise InvalidInput(f"Invalid ISO date: {value!r}")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    raise InvalidInput(f"Expected a date or datetime, got {type(value).__name__}")


def parse_amount(value: Any) -> Decimal:
    """Convert a stored or user-supplied amount to a finite Decimal."""
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1
        value = repr(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidInput(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidInput(f"Invalid amount: {value!r}")
    return amount


def check_amount(value: Any, label: str = "Transaction amount") -> Decimal:
    """
    Require a positive amount with at most two decimal places.

    The stores keep amounts to the cent, so finer values would be rounded
    on write (0.004 would be stored as 0.00).
    """
    amount = parse_amount(value)
    if amount <= 0:
        raise InvalidInput(f"{label} must be positive, got {amount}")
    if amount.normalize().as_tuple().exponent < -2:
        raise InvalidInput(f"{label} has more than two decimal places: {amount}")
    return amount


@dataclass
class User:
    email: str
    name: str
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class Category:
    """A classification for income, expense and credit transactions."""
    user_id: int
    name: str
    type: CategoryType
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'type': self.type.value,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(
            id=data.get('id'),
            user_id=data['user_id'],
            name=data['name'],
            type=CategoryType(data['type']),
            created_at=datetime.fromisoformat(data['created_at']) if data.get('created_at') else datetime.now(),
        )


@dataclass
class Vendor:
    """A payee; only payment transactions reference vendors."""
    user_id: int
    name: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description,
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class Pool:
    """
    A user-defined grouping label for transactions (e.g. "Household Bills").

    Pools are independent of categories. The pool type is informational:
    transactions of any type may be attached to any pool.
    """
    user_id: int
    name: str
    type: PoolType
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'type': self.type.value,
            'description': self.description,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Pool':
        return cls(
            id=data.get('id'),
            user_id=data['user_id'],
            name=data['name'],
            type=PoolType(data['type']),
            description=data.get('description'),
            created_at=datetime.fromisoformat(data['created_at']) if data.get('created_at') else datetime.now(),
        )


@dataclass
class Budget:
    """Target amount for a pool over a period."""
    pool_id: int
    target_amount: Decimal
    period_start: datetime
    period_end: datetime
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'pool_id': self.pool_id,
            'target_amount': str(self.target_amount),
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class Transaction:
    """
    A recorded financial event.

    Amounts are always positive; the direction of money is given by ``type``.
    Categories are only meaningful for income, expense and credit, vendors
    only for payments and ``associated_person`` only for credit.
    """
    user_id: int
    type: TransactionType
    amount: Decimal
    description: str
    transaction_date: datetime

    id: Optional[int] = None
    pool_id: Optional[int] = None
    category_id: Optional[int] = None
    vendor_id: Optional[int] = None
    associated_person: Optional[str] = None

    # Timestamps
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def validate(self) -> None:
        """
        Check the field-level invariants.

        Raises:
            InvalidInput: if the amount is not a positive number of cents, a
                payment carries a category, or a non-payment carries a vendor
        """
        check_amount(self.amount)
        if self.category_id is not None and self.type not in CATEGORIZED_TYPES:
            raise InvalidInput(f"Transactions of type '{self.type.value}' cannot have a category")
        if self.vendor_id is not None and self.type != TransactionType.PAYMENT:
            raise InvalidInput(f"Only payment transactions can have a vendor, got '{self.type.value}'")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'pool_id': self.pool_id,
            'type': self.type.value,
            'amount': str(self.amount),
            'description': self.description,
            'category_id': self.category_id,
            'vendor_id': self.vendor_id,
            'associated_person': self.associated_person,
            'transaction_date': self.transaction_date.isoformat(),
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create Transaction from dictionary."""
        now = datetime.now()
        return cls(
            id=data.get('id'),
            user_id=data['user_id'],
            pool_id=data.get('pool_id'),
            type=TransactionType(data['type']),
            amount=parse_amount(data['amount']),
            description=data.get('description', ''),
            category_id=data.get('category_id'),
            vendor_id=data.get('vendor_id'),
            associated_person=data.get('associated_person'),
            transaction_date=as_datetime(data['transaction_date']),
            created_at=datetime.fromisoformat(data['created_at']) if data.get('created_at') else now,
            updated_at=datetime.fromisoformat(data['updated_at']) if data.get('updated_at') else now,
        )
