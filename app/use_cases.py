import logging
from collections.abc import Callable
from concurrent.futures import Future
from datetime import date as dt_date

from backup import (
    ImportResult,
    ParsedBackup,
    export_snapshot,
    import_snapshot,
    read_backup,
    write_backup,
)
from domain.records import Transaction
from domain.reports import CategoryTotal, LedgerSummary, PeriodSummary

from .sync_manager import SyncManager

logger = logging.getLogger(__name__)


class CreateTransaction:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(
        self,
        *,
        date: str,
        amount: float,
        type: str,
        currency: str,
        category: str = "General",
        description: str = "",
    ) -> Transaction:
        """Validate the input and store a new transaction."""
        draft = Transaction(
            date=date,
            amount=amount,
            type=type,
            currency=currency,
            category=category,
            description=description,
        )
        return self._session.add_transaction(draft)


class DeleteTransaction:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self, transaction_id: str) -> bool:
        return self._session.delete_transaction(transaction_id)


class UpdateRates:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self, **changes: float) -> Future:
        """Change one or more rates; unspecified rates keep their current value."""
        new_rates = self._session.rates.merged(**changes)
        logger.info("Rates updated %s", new_rates.to_dict())
        return self._session.update_rates(new_rates)


class UpdateCalculatorSettings:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self, **changes: float) -> Future:
        return self._session.update_calculator_settings(self._session.calculator.merged(changes))


class GenerateTimeSeries:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self, timeframe: str = "monthly", year: int | None = None) -> list[PeriodSummary]:
        return self._session.report().time_series(timeframe, year)


class GenerateCategoryBreakdown:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self, timeframe: str = "monthly", year: int | None = None) -> list[CategoryTotal]:
        return self._session.report().category_breakdown(timeframe, year)


class GetAvailableYears:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self, today: dt_date | None = None) -> list[int]:
        return self._session.report().available_years(today)


class GenerateSummary:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self) -> LedgerSummary:
        return self._session.report().summary()


class ExportBackup:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(self, directory: str) -> str:
        return write_backup(export_snapshot(self._session), directory)


class ImportBackup:
    def __init__(self, session: SyncManager):
        self._session = session

    def execute(
        self, filepath: str, confirm: Callable[[ParsedBackup], bool]
    ) -> ImportResult | None:
        return import_snapshot(self._session, read_backup(filepath), confirm)
