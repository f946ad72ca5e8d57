from datetime import date, datetime
from decimal import Decimal

import pytest

from pool_finance.entities import Category, CategoryType, TransactionType
from pool_finance.errors import InvalidInput
from pool_finance.reports import CategoryReportGenerator, get_category_report

from conftest import InMemoryRepository, make_txn


def test_two_expenses_in_one_month(repo, user, categories):
    groceries = categories["Groceries"].id
    repo.save_transaction(make_txn(user.id, TransactionType.EXPENSE, "3000.00", datetime(2024, 3, 2), category_id=groceries))
    repo.save_transaction(make_txn(user.id, TransactionType.EXPENSE, "2500.00", datetime(2024, 3, 20), category_id=groceries))

    report = get_category_report(repo, user.id)

    assert len(report.categories) == 1
    summary = report.categories[0]
    assert summary.name == "Groceries"
    assert summary.total_amount == Decimal("5500")
    assert summary.transaction_count == 2
    assert summary.average_amount == Decimal("2750")
    assert [(m.year, m.month, m.total_amount, m.transaction_count) for m in summary.monthly_breakdown] == [
        (2024, 3, Decimal("5500.00"), 2),
    ]


def test_range_excluding_everything(repo, user, january_transactions):
    report = get_category_report(repo, user.id, start_date=date(2025, 1, 1), end_date=date(2025, 12, 31))

    assert report.categories == []
    assert report.to_dict()["totalsByType"] == {"income": 0, "expense": 0, "credit": 0}


def test_payments_never_appear():
    # A payment with a category slipped past validation
    store = InMemoryRepository(
        transactions=[
            make_txn(1, TransactionType.PAYMENT, "40", datetime(2024, 1, 2), category_id=1),
            make_txn(1, TransactionType.EXPENSE, "10", datetime(2024, 1, 3), category_id=1),
        ],
        categories=[Category(id=1, user_id=1, name="Bills", type=CategoryType.EXPENSE)],
    )
    report = CategoryReportGenerator(store, store, store).generate(1)

    assert report.categories[0].total_amount == Decimal("10")
    assert report.categories[0].transaction_count == 1


def test_uncategorized_transactions_are_skipped(repo, user, categories):
    repo.save_transaction(make_txn(user.id, TransactionType.INCOME, "100.00", datetime(2024, 1, 1)))
    assert get_category_report(repo, user.id).categories == []


def test_monthly_breakdown_sorted_across_years(repo, user, categories):
    salary = categories["Salary"].id
    for when in (datetime(2024, 2, 1), datetime(2023, 11, 5), datetime(2024, 1, 31), datetime(2023, 11, 20)):
        repo.save_transaction(make_txn(user.id, TransactionType.INCOME, "100.00", when, category_id=salary))

    summary = get_category_report(repo, user.id).categories[0]
    keys = [(m.year, m.month) for m in summary.monthly_breakdown]
    assert keys == [(2023, 11), (2024, 1), (2024, 2)]
    assert summary.monthly_breakdown[0].transaction_count == 2
    assert sum(m.total_amount for m in summary.monthly_breakdown) == summary.total_amount


def test_totals_by_type(repo, user, categories, january_transactions):
    extra = repo.save_category(Category(user_id=user.id, name="Bonus", type=CategoryType.INCOME))
    repo.save_transaction(make_txn(user.id, TransactionType.INCOME, "250.00", datetime(2024, 6, 1), category_id=extra.id))

    report = get_category_report(repo, user.id)
    totals = report.totals_by_type

    assert totals[CategoryType.INCOME] == Decimal("50250.00")
    assert totals[CategoryType.EXPENSE] == Decimal("5000.00")
    assert totals[CategoryType.CREDIT] == Decimal("10000.00")
    for category_type in CategoryType:
        assert totals[category_type] == sum(
            (c.total_amount for c in report.categories if c.type == category_type), Decimal("0")
        )


def test_categories_ordered_by_name(repo, user, categories, january_transactions):
    names = [c.name for c in get_category_report(repo, user.id).categories]
    assert names == ["Groceries", "Loan", "Salary"]


class TestDateBounds:
    @pytest.fixture
    def spread(self, repo, user, categories):
        groceries = categories["Groceries"].id
        for when in (datetime(2024, 1, 9, 18, 0), datetime(2024, 1, 10, 8, 0), datetime(2024, 1, 10, 22, 30), datetime(2024, 1, 11)):
            repo.save_transaction(make_txn(user.id, TransactionType.EXPENSE, "1.00", when, category_id=groceries))

    def test_end_date_covers_the_whole_day(self, repo, user, spread):
        report = get_category_report(repo, user.id, end_date=date(2024, 1, 10))
        assert report.categories[0].transaction_count == 3

    def test_start_date_is_inclusive(self, repo, user, spread):
        report = get_category_report(repo, user.id, start_date=date(2024, 1, 10))
        assert report.categories[0].transaction_count == 3

    def test_single_day(self, repo, user, spread):
        report = get_category_report(repo, user.id, start_date="2024-01-10", end_date="2024-01-10")
        assert report.categories[0].transaction_count == 2

    def test_datetime_bound_used_as_is(self, repo, user, spread):
        report = get_category_report(repo, user.id, end_date=datetime(2024, 1, 10, 12, 0))
        assert report.categories[0].transaction_count == 2

    def test_reversed_range_is_empty(self, repo, user, spread):
        report = get_category_report(repo, user.id, start_date=date(2024, 1, 11), end_date=date(2024, 1, 9))
        assert report.categories == []

    def test_offset_bound_mixes_with_date_bound(self, repo, user, spread):
        report = get_category_report(repo, user.id, start_date="2024-01-01T00:00:00+00:00", end_date="2024-01-31")
        assert report.categories[0].transaction_count == 4

    def test_bad_date_string(self, repo, user):
        with pytest.raises(InvalidInput):
            get_category_report(repo, user.id, start_date="yesterday")


def test_to_dict_shape(repo, user, january_transactions):
    data = get_category_report(repo, user.id).to_dict()

    entry = data["categories"][0]
    assert set(entry) == {
        "id", "name", "type", "totalAmount", "transactionCount", "averageAmount", "monthlyBreakdown",
    }
    assert entry["monthlyBreakdown"] == [{"year": 2024, "month": 1, "totalAmount": 5000.0, "transactionCount": 1}]
    assert data["totalsByType"] == {"income": 50000.0, "expense": 5000.0, "credit": 10000.0}
