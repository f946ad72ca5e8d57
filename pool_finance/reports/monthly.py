"""
Monthly financial report.

Totals one user's transactions for a calendar month by type, then breaks the
same transactions down by category and by pool.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from pool_finance.entities import Transaction, TransactionType
from pool_finance.reports.base import BaseReport, ReportPeriod, ZERO, as_float

logger = logging.getLogger(__name__)


@dataclass
class BreakdownEntry:
    """Total for one category or pool. ``type`` comes from the category/pool."""
    id: int
    name: str
    type: str
    total_amount: Decimal = ZERO
    transaction_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'totalAmount': as_float(self.total_amount),
            'transactionCount': self.transaction_count,
        }


@dataclass
class MonthlyReport:
    year: int
    month: int
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    total_credit: Decimal = ZERO
    total_payments: Decimal = ZERO
    transaction_count: int = 0
    category_breakdown: List[BreakdownEntry] = field(default_factory=list)
    pool_breakdown: List[BreakdownEntry] = field(default_factory=list)

    @property
    def net_amount(self) -> Decimal:
        # Payments count on the positive side, unlike expenses and credit
        return self.total_income + self.total_payments - self.total_expenses - self.total_credit

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'year': self.year,
            'month': self.month,
            'totalIncome': as_float(self.total_income),
            'totalExpenses': as_float(self.total_expenses),
            'totalCredit': as_float(self.total_credit),
            'totalPayments': as_float(self.total_payments),
            'netAmount': as_float(self.net_amount),
            'transactionCount': self.transaction_count,
            'categoryBreakdown': [entry.to_dict() for entry in self.category_breakdown],
            'poolBreakdown': [entry.to_dict() for entry in self.pool_breakdown],
        }


class MonthlyReportGenerator(BaseReport):
    """
    Builds MonthlyReport objects.

    Usage:
        generator = MonthlyReportGenerator(repo, repo, repo)
        report = generator.generate(user_id=1, year=2024, month=1)
    """

    def generate(self, user_id: int, year: int, month: int) -> MonthlyReport:
        """
        Generate the report for one calendar month.

        Args:
            user_id: Owner of the transactions
            year: Calendar year
            month: Calendar month; values outside 1-12 roll over into the
                neighbouring years

        Returns:
            MonthlyReport with zero totals and empty breakdowns when the
            month has no transactions

        Raises:
            InvalidInput: if the month cannot be represented
            StoreFailure: if the store query fails
        """
        period = ReportPeriod.for_month(year, month)
        logger.info(f"Generating monthly report for user {user_id}: {period.start:%Y-%m}")

        try:
            transactions = self.transactions.get_transactions(
                user_id=user_id,
                start_date=period.start,
                end_date=period.end,
            )
            report = MonthlyReport(year=period.start.year, month=period.start.month)
            self._add_type_totals(report, transactions)
            report.category_breakdown = self._category_breakdown(transactions)
            report.pool_breakdown = self._pool_breakdown(transactions)
        except Exception as e:
            logger.error(f"Monthly report generation failed for user {user_id}: {e}")
            raise

        logger.debug(f"Monthly report for user {user_id}: {report.transaction_count} transactions")
        return report

    def _add_type_totals(self, report: MonthlyReport, transactions: List[Transaction]) -> None:
        totals: Dict[TransactionType, Decimal] = defaultdict(lambda: ZERO)
        for txn in transactions:
            totals[txn.type] += txn.amount

        report.total_income = totals[TransactionType.INCOME]
        report.total_expenses = totals[TransactionType.EXPENSE]
        report.total_credit = totals[TransactionType.CREDIT]
        report.total_payments = totals[TransactionType.PAYMENT]
        report.transaction_count = len(transactions)

    def _category_breakdown(self, transactions: List[Transaction]) -> List[BreakdownEntry]:
        categories = self._lookup_categories(t.category_id for t in transactions)
        groups: Dict[int, BreakdownEntry] = {}

        for txn in transactions:
            category = categories.get(txn.category_id)
            if category is None:
                continue
            entry = groups.get(category.id)
            if entry is None:
                entry = groups[category.id] = BreakdownEntry(
                    id=category.id, name=category.name, type=category.type.value
                )
            entry.total_amount += txn.amount
            entry.transaction_count += 1

        return sorted(groups.values(), key=lambda e: (e.name, e.id))

    def _pool_breakdown(self, transactions: List[Transaction]) -> List[BreakdownEntry]:
        # Pool type is not checked against the transaction type
        pools = self._lookup_pools(t.pool_id for t in transactions)
        groups: Dict[int, BreakdownEntry] = {}

        for txn in transactions:
            pool = pools.get(txn.pool_id)
            if pool is None:
                continue
            entry = groups.get(pool.id)
            if entry is None:
                entry = groups[pool.id] = BreakdownEntry(
                    id=pool.id, name=pool.name, type=pool.type.value
                )
            entry.total_amount += txn.amount
            entry.transaction_count += 1

        return sorted(groups.values(), key=lambda e: (e.name, e.id))
