"""
Reports module for generating financial reports from transaction data.

This module provides:
- MonthlyReportGenerator: totals by type plus category and pool breakdowns
- CategoryReportGenerator: per-category totals, averages and monthly series
- get_monthly_report / get_category_report: shortcuts for a single repository
  that implements all three read interfaces
"""

from .base import BaseReport, ReportPeriod, YearMonth
from .category import CategoryReport, CategoryReportGenerator, CategorySummary, MonthlyTotal
from .monthly import BreakdownEntry, MonthlyReport, MonthlyReportGenerator


def get_monthly_report(repository, user_id: int, year: int, month: int) -> MonthlyReport:
    return MonthlyReportGenerator(repository, repository, repository).generate(user_id, year, month)


def get_category_report(repository, user_id: int, start_date=None, end_date=None) -> CategoryReport:
    return CategoryReportGenerator(repository, repository, repository).generate(
        user_id, start_date=start_date, end_date=end_date
    )


__all__ = [
    'BaseReport',
    'ReportPeriod',
    'YearMonth',
    'BreakdownEntry',
    'MonthlyReport',
    'MonthlyReportGenerator',
    'MonthlyTotal',
    'CategorySummary',
    'CategoryReport',
    'CategoryReportGenerator',
    'get_monthly_report',
    'get_category_report',
]
