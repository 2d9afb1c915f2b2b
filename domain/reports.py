from __future__ import annotations

import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date as dt_date

from prettytable import PrettyTable

from .currency import BASE_CURRENCY, RateTable, normalize
from .records import Transaction, TransactionType
from .validation import ensure_valid_timeframe


@dataclass(frozen=True)
class PeriodSummary:
    key: str
    label: str
    income: float = 0.0
    expense: float = 0.0
    saving: float = 0.0
    net: float = 0.0


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: float


@dataclass(frozen=True)
class LedgerSummary:
    income: float
    expense: float
    saving: float

    @property
    def balance(self) -> float:
        """Available wealth: income minus expenses. Savings are retained, not spent."""
        return self.income - self.expense


def _bucket(record_date: dt_date, timeframe: str) -> tuple[str, str]:
    month_name = calendar.month_abbr[record_date.month]
    if timeframe == "daily":
        return record_date.isoformat(), f"{month_name} {record_date.day}"
    if timeframe == "monthly":
        return f"{record_date.year:04d}-{record_date.month:02d}", month_name
    year = f"{record_date.year:04d}"
    return year, year


def _format_amount(value: float) -> str:
    return f"{value:,.2f}" if value >= 0 else f"({abs(value):,.2f})"


class Report:
    """Derived views over a ledger, recomputed from scratch on every call."""

    def __init__(self, transactions: Iterable[Transaction], rates: RateTable):
        self._transactions = list(transactions)
        self._rates = rates

    def _normalized(self, transaction: Transaction) -> float:
        return normalize(transaction.amount, transaction.currency, self._rates)

    def _in_period(self, timeframe: str, year: int | None) -> list[Transaction]:
        ensure_valid_timeframe(timeframe)
        if timeframe == "yearly":
            return list(self._transactions)
        if year is None:
            year = dt_date.today().year
        return [t for t in self._transactions if t.date.year == year]

    def time_series(self, timeframe: str = "monthly", year: int | None = None) -> list[PeriodSummary]:
        buckets: dict[str, dict] = {}
        for transaction in self._in_period(timeframe, year):
            key, label = _bucket(transaction.date, timeframe)
            bucket = buckets.setdefault(
                key,
                {"label": label, "income": 0.0, "expense": 0.0, "saving": 0.0, "net": 0.0},
            )
            amount = self._normalized(transaction)
            if transaction.type is TransactionType.INCOME:
                bucket["income"] += amount
                bucket["net"] += amount
            elif transaction.type is TransactionType.EXPENSE:
                bucket["expense"] += amount
                bucket["net"] -= amount
            else:
                bucket["saving"] += amount
        return [PeriodSummary(key=key, **buckets[key]) for key in sorted(buckets)]

    def category_breakdown(
        self, timeframe: str = "monthly", year: int | None = None
    ) -> list[CategoryTotal]:
        totals: dict[str, float] = {}
        for transaction in self._in_period(timeframe, year):
            if transaction.type is not TransactionType.EXPENSE:
                continue
            totals[transaction.category] = (
                totals.get(transaction.category, 0.0) + self._normalized(transaction)
            )
        return [CategoryTotal(category, total) for category, total in totals.items()]

    def available_years(self, today: dt_date | None = None) -> list[int]:
        current_year = (today or dt_date.today()).year
        years = {t.date.year for t in self._transactions}
        years.add(current_year)
        return sorted(years, reverse=True)

    def summary(self) -> LedgerSummary:
        income = expense = saving = 0.0
        for transaction in self._transactions:
            amount = self._normalized(transaction)
            if transaction.type is TransactionType.INCOME:
                income += amount
            elif transaction.type is TransactionType.EXPENSE:
                expense += amount
            else:
                saving += amount
        return LedgerSummary(income=income, expense=expense, saving=saving)

    def time_series_table(self, timeframe: str = "monthly", year: int | None = None) -> str:
        rows = self.time_series(timeframe, year)
        table = PrettyTable()
        table.field_names = [
            "Period",
            f"Income ({BASE_CURRENCY})",
            f"Expense ({BASE_CURRENCY})",
            f"Saving ({BASE_CURRENCY})",
            f"Net ({BASE_CURRENCY})",
        ]
        table.align = "r"
        table.align["Period"] = "l"
        for row in rows:
            table.add_row(
                [
                    row.key,
                    _format_amount(row.income),
                    _format_amount(row.expense),
                    _format_amount(row.saving),
                    _format_amount(row.net),
                ]
            )
        if rows:
            table.add_row(
                [
                    "TOTAL",
                    _format_amount(sum(row.income for row in rows)),
                    _format_amount(sum(row.expense for row in rows)),
                    _format_amount(sum(row.saving for row in rows)),
                    _format_amount(sum(row.net for row in rows)),
                ],
                divider=True,
            )
        return str(table)

    def category_table(self, timeframe: str = "monthly", year: int | None = None) -> str:
        rows = sorted(
            self.category_breakdown(timeframe, year), key=lambda item: item.total, reverse=True
        )
        table = PrettyTable()
        table.field_names = ["Category", f"Expense ({BASE_CURRENCY})"]
        table.align["Category"] = "l"
        table.align[f"Expense ({BASE_CURRENCY})"] = "r"
        for row in rows:
            table.add_row([row.category, _format_amount(row.total)])
        return str(table)
