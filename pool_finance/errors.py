"""
Error types shared by the stores and the report generators.

- FinanceError: base class for everything raised by this package
- StoreFailure: the underlying database read or write failed
- InvalidInput: malformed ids, dates, years or transaction fields

An empty result is never an error: reports with no matching transactions
come back with zero totals and empty breakdowns.
"""


class FinanceError(Exception):
    """Base class for pool-finance errors."""


class StoreFailure(FinanceError):
    """The transaction store could not complete a query."""


class InvalidInput(FinanceError, ValueError):
    """Input that the store or a report cannot work with."""
