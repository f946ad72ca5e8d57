"""
Category report.

Per-category totals, averages and month-by-month series over an optional
date range. Only income, expense and credit transactions carry categories,
so payments never show up here.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pool_finance.entities import (
    CATEGORIZED_TYPES, Category, CategoryType, Transaction, as_datetime,
)
from pool_finance.reports.base import BaseReport, YearMonth, ZERO, as_float

logger = logging.getLogger(__name__)

DateBound = Union[date, datetime, str, None]


@dataclass
class MonthlyTotal:
    year: int
    month: int
    total_amount: Decimal = ZERO
    transaction_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'year': self.year,
            'month': self.month,
            'totalAmount': as_float(self.total_amount),
            'transactionCount': self.transaction_count,
        }


@dataclass
class CategorySummary:
    id: int
    name: str
    type: CategoryType
    total_amount: Decimal = ZERO
    transaction_count: int = 0
    monthly_breakdown: List[MonthlyTotal] = field(default_factory=list)

    @property
    def average_amount(self) -> Decimal:
        if self.transaction_count == 0:
            return ZERO
        return self.total_amount / self.transaction_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type.value,
            'totalAmount': as_float(self.total_amount),
            'transactionCount': self.transaction_count,
            'averageAmount': as_float(self.average_amount),
            'monthlyBreakdown': [m.to_dict() for m in self.monthly_breakdown],
        }


@dataclass
class CategoryReport:
    categories: List[CategorySummary] = field(default_factory=list)

    @property
    def totals_by_type(self) -> Dict[CategoryType, Decimal]:
        """Sum of category totals for each of income, expense and credit."""
        totals = {category_type: ZERO for category_type in CategoryType}
        for summary in self.categories:
            totals[summary.type] += summary.total_amount
        return totals

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'categories': [c.to_dict() for c in self.categories],
            'totalsByType': {
                category_type.value: as_float(total)
                for category_type, total in self.totals_by_type.items()
            },
        }


class CategoryReportGenerator(BaseReport):
    """
    Builds CategoryReport objects.

    Usage:
        generator = CategoryReportGenerator(repo, repo, repo)
        report = generator.generate(user_id=1, start_date=date(2024, 1, 1))
    """

    def generate(
        self,
        user_id: int,
        start_date: DateBound = None,
        end_date: DateBound = None,
    ) -> CategoryReport:
        """
        Generate the category report.

        Args:
            user_id: Owner of the transactions
            start_date: Include transactions on or after this date (optional)
            end_date: Include transactions on or before this date (optional).
                A plain date includes the whole day.

        Returns:
            CategoryReport; empty when nothing matches

        Raises:
            InvalidInput: if a bound is not a valid date
            StoreFailure: if the store query fails
        """
        start = as_datetime(start_date)
        end = as_datetime(end_date, end_of_day=True)
        logger.info(f"Generating category report for user {user_id}: {start or '-'} .. {end or '-'}")

        if start is not None and end is not None and start > end:
            logger.debug("Empty date range requested")
            return CategoryReport()

        try:
            transactions = [
                txn for txn in self.transactions.get_transactions(
                    user_id=user_id,
                    start_date=start,
                    end_date=end,
                )
                if txn.type in CATEGORIZED_TYPES and txn.category_id is not None
            ]
            categories = self._lookup_categories(t.category_id for t in transactions)
            summaries = self._summarize(transactions, categories)
        except Exception as e:
            logger.error(f"Category report generation failed for user {user_id}: {e}")
            raise

        return CategoryReport(categories=summaries)

    def _summarize(
        self,
        transactions: List[Transaction],
        categories: Dict[int, Category],
    ) -> List[CategorySummary]:
        summaries: Dict[int, CategorySummary] = {}
        monthly: Dict[int, Dict[YearMonth, MonthlyTotal]] = {}

        for txn in transactions:
            category = categories.get(txn.category_id)
            if category is None:
                continue

            summary = summaries.get(txn.category_id)
            if summary is None:
                summary = summaries[txn.category_id] = CategorySummary(
                    id=category.id, name=category.name, type=category.type
                )
                monthly[txn.category_id] = {}
            summary.total_amount += txn.amount
            summary.transaction_count += 1

            key = YearMonth.of(txn.transaction_date)
            month_total = monthly[txn.category_id].get(key)
            if month_total is None:
                month_total = monthly[txn.category_id][key] = MonthlyTotal(key.year, key.month)
            month_total.total_amount += txn.amount
            month_total.transaction_count += 1

        for category_id, summary in summaries.items():
            by_month = monthly[category_id]
            summary.monthly_breakdown = [by_month[key] for key in sorted(by_month)]

        return sorted(summaries.values(), key=lambda s: (s.name, s.id))
