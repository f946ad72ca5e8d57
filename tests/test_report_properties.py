"""Property tests over random transaction sets."""

from datetime import datetime
from decimal import Decimal

from hypothesis import given, settings, strategies as st

from pool_finance.entities import (
    CATEGORIZED_TYPES, Category, CategoryType, Pool, PoolType, Transaction, TransactionType,
)
from pool_finance.reports import CategoryReportGenerator, MonthlyReportGenerator

from conftest import InMemoryRepository

CATEGORIES = [
    Category(id=1, user_id=1, name="Salary", type=CategoryType.INCOME),
    Category(id=2, user_id=1, name="Groceries", type=CategoryType.EXPENSE),
    Category(id=3, user_id=1, name="Rent", type=CategoryType.EXPENSE),
    Category(id=4, user_id=1, name="Loan", type=CategoryType.CREDIT),
]
POOLS = [
    Pool(id=1, user_id=1, name="Bills", type=PoolType.EXPENSE),
    Pool(id=2, user_id=1, name="Savings", type=PoolType.INCOME),
]

amounts = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("99999.99"), places=2)
moments = st.datetimes(min_value=datetime(2023, 11, 1), max_value=datetime(2024, 3, 31, 23, 59, 59))


@st.composite
def transactions(draw):
    txn_type = draw(st.sampled_from(list(TransactionType)))
    category_id = None
    if txn_type in CATEGORIZED_TYPES:
        category_id = draw(st.one_of(st.none(), st.sampled_from([
            c.id for c in CATEGORIES if c.type.value == txn_type.value
        ])))
    return Transaction(
        user_id=draw(st.sampled_from([1, 1, 1, 2])),
        type=txn_type,
        amount=draw(amounts),
        description="generated",
        transaction_date=draw(moments),
        pool_id=draw(st.one_of(st.none(), st.sampled_from([1, 2]))),
        category_id=category_id,
    )


def _store(txns):
    return InMemoryRepository(transactions=txns, categories=CATEGORIES, pools=POOLS)


@settings(max_examples=75)
@given(st.lists(transactions(), max_size=40), st.integers(min_value=11, max_value=15))
def test_monthly_report_invariants(txns, month):
    store = _store(txns)
    report = MonthlyReportGenerator(store, store, store).generate(1, 2023, month)

    assert report.net_amount == (
        report.total_income + report.total_payments - report.total_expenses - report.total_credit
    )
    assert sum(e.transaction_count for e in report.category_breakdown) <= report.transaction_count
    assert sum(e.transaction_count for e in report.pool_breakdown) <= report.transaction_count

    in_month = [
        t for t in txns
        if t.user_id == 1 and (t.transaction_date.year, t.transaction_date.month) == (report.year, report.month)
    ]
    assert report.transaction_count == len(in_month)
    assert report.total_income == sum(
        (t.amount for t in in_month if t.type == TransactionType.INCOME), Decimal("0")
    )


@settings(max_examples=75)
@given(st.lists(transactions(), max_size=40))
def test_category_report_invariants(txns):
    store = _store(txns)
    report = CategoryReportGenerator(store, store, store).generate(1)

    for category_type in CategoryType:
        assert report.totals_by_type[category_type] == sum(
            (c.total_amount for c in report.categories if c.type == category_type), Decimal("0")
        )

    for summary in report.categories:
        assert summary.transaction_count > 0
        assert summary.average_amount == summary.total_amount / summary.transaction_count
        keys = [(m.year, m.month) for m in summary.monthly_breakdown]
        assert keys == sorted(set(keys))
        assert sum(m.transaction_count for m in summary.monthly_breakdown) == summary.transaction_count
        assert sum((m.total_amount for m in summary.monthly_breakdown), Decimal("0")) == summary.total_amount

    expected = sum(
        (t.amount for t in txns if t.user_id == 1 and t.category_id is not None), Decimal("0")
    )
    assert sum((c.total_amount for c in report.categories), Decimal("0")) == expected
