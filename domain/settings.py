from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType

from .currency import RateTable
from .records import Transaction, TransactionType

DEFAULT_RATES = RateTable(THB=124.0, USD=4500.0, SGD=3300.0, Gold=6500000.0)

DEFAULT_CALCULATOR = {
    "targetAmount": 100000000,
    "years": 4,
    "interestRate": 8,
    "monthlyDeposit": 500000,
    "fvYears": 3,
    "fvRate": 8,
    "loanAmount": 30000000,
    "loanTermYears": 5,
    "loanRate": 10,
    "monthlyExpense": 500000,
    "fundMonths": 6,
}


class CalculatorSettings(Mapping):
    """Read-only bag of planning parameters; stored as-is, never interpreted."""

    def __init__(self, values: Mapping | None = None):
        data: dict[str, float] = {}
        for key, value in dict(values or {}).items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Calculator setting {key} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"Calculator setting {key} must be finite")
            data[str(key)] = value
        self._data = MappingProxyType(data)

    def __getitem__(self, key: str):
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other) -> bool:
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"CalculatorSettings({dict(self._data)!r})"

    def merged(self, changes: Mapping) -> "CalculatorSettings":
        values = dict(self._data)
        values.update(changes)
        return CalculatorSettings(values)

    def to_dict(self) -> dict:
        return dict(self._data)

    @classmethod
    def defaults(cls) -> "CalculatorSettings":
        return cls(DEFAULT_CALCULATOR)


@dataclass(frozen=True)
class UserProfile:
    id: str
    name: str
    created_at: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        return cls(
            id=str(data.get("id", "") or ""),
            name=str(data.get("name", "") or ""),
            created_at=str(data.get("createdAt", "") or ""),
        )

    @classmethod
    def guest(cls) -> "UserProfile":
        return cls(
            id="guest",
            name="Guest",
            created_at=datetime.now(timezone.utc).isoformat(),
        )


def seed_transactions() -> list[Transaction]:
    return [
        Transaction(id="1", date="2024-09-15", description="Salary", amount=18000,
                    type=TransactionType.INCOME, category="Salary", currency="THB"),
        Transaction(id="2", date="2024-09-16", description="Housing Savings", amount=15000,
                    type=TransactionType.SAVING, category="Investment", currency="THB"),
        Transaction(id="3", date="2024-09-20", description="Food & Dining", amount=3700,
                    type=TransactionType.EXPENSE, category="Food", currency="THB"),
        Transaction(id="4", date="2024-10-01", description="Salary", amount=18000,
                    type=TransactionType.INCOME, category="Salary", currency="THB"),
        Transaction(id="5", date="2024-10-05", description="Monthly Saving", amount=15000,
                    type=TransactionType.SAVING, category="Investment", currency="THB"),
        Transaction(id="6", date="2024-10-12", description="Utilities", amount=3700,
                    type=TransactionType.EXPENSE, category="Housing", currency="THB"),
    ]
