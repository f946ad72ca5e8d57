"""
Shared building blocks for the report generators.

- YearMonth: composite (year, month) grouping key
- ReportPeriod: an inclusive time window
- BaseReport: holds the injected repositories and resolves ids to names
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, NamedTuple, Optional

from dateutil.relativedelta import relativedelta

from pool_finance.database.repository import (
    CategoryRepository, PoolRepository, TransactionRepository,
)
from pool_finance.entities import Category, Pool
from pool_finance.errors import InvalidInput

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def as_float(amount: Decimal) -> float:
    """Convert a Decimal sum to a JSON number at the serialization edge."""
    return float(amount)


class YearMonth(NamedTuple):
    """Calendar month key. Tuples sort by year, then month."""
    year: int
    month: int

    @classmethod
    def of(cls, moment: datetime) -> 'YearMonth':
        return cls(moment.year, moment.month)


@dataclass(frozen=True)
class ReportPeriod:
    """Time window with both ends inclusive."""
    start: datetime
    end: datetime

    @classmethod
    def for_month(cls, year: int, month: int) -> 'ReportPeriod':
        """
        Window covering one calendar month.

        Months outside 1-12 roll over: month 13 is January of the next year,
        month 0 is December of the previous year.

        Raises:
            InvalidInput: if the resulting month is outside the datetime range
        """
        try:
            start = datetime(year, 1, 1) + relativedelta(months=month - 1)
            next_start = start + relativedelta(months=1)
        except (ValueError, OverflowError, TypeError) as e:
            raise InvalidInput(f"Invalid report month {year}-{month}: {e}") from e
        # The store keeps microseconds, so this is the last representable moment
        return cls(start=start, end=next_start - timedelta(microseconds=1))

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class BaseReport(ABC):
    """
    Base class for reports computed from the transaction store.

    Reports are pure functions of the stored transactions and the query
    parameters: nothing is cached between calls.
    """

    def __init__(
        self,
        transactions: TransactionRepository,
        categories: CategoryRepository,
        pools: PoolRepository,
    ):
        self.transactions = transactions
        self.categories = categories
        self.pools = pools

    @abstractmethod
    def generate(self, user_id: int, *args, **kwargs):
        pass

    def _lookup_categories(self, category_ids: Iterable[Optional[int]]) -> Dict[int, Category]:
        """Resolve category ids; ids with no stored category are left out."""
        found = {}
        for category_id in set(category_ids):
            if category_id is None:
                continue
            category = self.categories.get_category(category_id)
            if category is None:
                logger.warning(f"Transactions reference missing category {category_id}")
                continue
            found[category_id] = category
        return found

    def _lookup_pools(self, pool_ids: Iterable[Optional[int]]) -> Dict[int, Pool]:
        """Resolve pool ids; ids with no stored pool are left out."""
        found = {}
        for pool_id in set(pool_ids):
            if pool_id is None:
                continue
            pool = self.pools.get_pool(pool_id)
            if pool is None:
                logger.warning(f"Transactions reference missing pool {pool_id}")
                continue
            found[pool_id] = pool
        return found
