import json
from concurrent.futures import Future
from datetime import date
from unittest.mock import Mock

import pytest

from app.sync_manager import SyncManager
from app.use_cases import (
    CreateTransaction,
    DeleteTransaction,
    ExportBackup,
    GenerateCategoryBreakdown,
    GenerateSummary,
    GenerateTimeSeries,
    GetAvailableYears,
    ImportBackup,
    UpdateCalculatorSettings,
    UpdateRates,
)
from domain.errors import InvalidCurrency, InvalidRates
from domain.records import Transaction, TransactionType
from domain.settings import DEFAULT_RATES, CalculatorSettings
from storage.base import LocalBackend
from storage.json_storage import JsonStorage


@pytest.fixture
def session(tmp_path):
    manager = SyncManager(LocalBackend(local=JsonStorage(str(tmp_path / "device"))))
    manager.start()
    yield manager
    manager.close()


class TestCreateTransaction:
    def test_execute_builds_transaction_and_adds_it(self):
        # Arrange
        mock_session = Mock(spec=SyncManager)
        mock_session.add_transaction.side_effect = lambda t: t
        use_case = CreateTransaction(mock_session)

        # Act
        created = use_case.execute(
            date="2025-01-01", amount=100.0, type="expense", currency="usd", category="Food"
        )

        # Assert
        mock_session.add_transaction.assert_called_once()
        assert created == Transaction(
            date="2025-01-01",
            amount=100.0,
            type=TransactionType.EXPENSE,
            currency="USD",
            category="Food",
        )

    def test_invalid_input_never_reaches_session(self):
        mock_session = Mock(spec=SyncManager)
        use_case = CreateTransaction(mock_session)

        with pytest.raises(InvalidCurrency):
            use_case.execute(date="2025-01-01", amount=1, type="income", currency="EUR")
        with pytest.raises(ValueError, match="negative"):
            use_case.execute(date="2025-01-01", amount=-1, type="income", currency="MMK")

        mock_session.add_transaction.assert_not_called()

    def test_with_real_session(self, session):
        created = CreateTransaction(session).execute(
            date="2025-02-02", amount=5, type="saving", currency="SGD"
        )
        assert created in session.transactions
        assert created.category == "General"


def test_delete_transaction(session):
    target = session.transactions[0].id
    assert DeleteTransaction(session).execute(target) is True
    assert DeleteTransaction(session).execute(target) is False


class TestUpdateRates:
    def test_partial_update_keeps_other_rates(self, session):
        future = UpdateRates(session).execute(THB=130)
        assert isinstance(future, Future)
        future.result()
        assert session.rates == DEFAULT_RATES.merged(THB=130)

    def test_invalid_rate_leaves_rates_unchanged(self, session):
        with pytest.raises(InvalidRates):
            UpdateRates(session).execute(USD=0)
        assert session.rates == DEFAULT_RATES

    def test_unknown_rate_key(self, session):
        with pytest.raises(InvalidRates, match="Unknown rate"):
            UpdateRates(session).execute(EUR=1)


def test_update_calculator_settings(session):
    UpdateCalculatorSettings(session).execute(years=12, loanRate=3.5).result()
    assert session.calculator == CalculatorSettings.defaults().merged({"years": 12, "loanRate": 3.5})


class TestReports:
    def test_time_series_defaults_to_monthly(self, session):
        rows = GenerateTimeSeries(session).execute(year=2024)
        assert [row.key for row in rows] == ["2024-09", "2024-10"]

    def test_category_breakdown(self, session):
        totals = {row.category: row.total for row in GenerateCategoryBreakdown(session).execute("yearly")}
        assert totals == {"Food": 3700 * 124.0, "Housing": 3700 * 124.0}

    def test_available_years(self, session):
        assert GetAvailableYears(session).execute(today=date(2026, 1, 1)) == [2026, 2024]

    def test_summary(self, session):
        summary = GenerateSummary(session).execute()
        assert summary.income == 36000 * 124
        assert summary.balance == (36000 - 7400) * 124


class TestBackupUseCases:
    def test_export_writes_file(self, session, tmp_path):
        path = ExportBackup(session).execute(str(tmp_path / "backups"))
        with open(path, encoding="utf-8") as fp:
            data = json.load(fp)
        assert len(data["transactions"]) == 6

    def test_import_reads_file_and_replaces(self, session, tmp_path):
        path = tmp_path / "in.json"
        path.write_text(
            json.dumps(
                {
                    "transactions": [
                        {"date": "2023-01-01", "amount": 1, "type": "INCOME", "currency": "MMK"}
                    ],
                    "rates": DEFAULT_RATES.to_dict(),
                }
            ),
            encoding="utf-8",
        )
        result = ImportBackup(session).execute(str(path), lambda parsed: True)
        assert result.imported == 1
        assert len(session.transactions) == 1
