from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date as dt_date
from enum import Enum
from uuid import uuid4

from .currency import BASE_CURRENCY, ensure_supported_currency
from .validation import parse_amount, parse_ymd


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    SAVING = "SAVING"

    @classmethod
    def parse(cls, value: "TransactionType | str") -> "TransactionType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError as exc:
            raise ValueError(f"Invalid transaction type: {value!r}") from exc


def new_transaction_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class Transaction:
    date: dt_date | str
    amount: float
    type: TransactionType | str
    currency: str = BASE_CURRENCY
    category: str = "General"
    description: str = ""
    id: str = field(default_factory=new_transaction_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", parse_ymd(self.date))
        object.__setattr__(self, "amount", parse_amount(self.amount))
        object.__setattr__(self, "type", TransactionType.parse(self.type))
        object.__setattr__(self, "currency", ensure_supported_currency(self.currency))
        object.__setattr__(self, "category", str(self.category or ""))
        object.__setattr__(self, "description", str(self.description or ""))
        record_id = str(self.id or "").strip()
        if not record_id:
            raise ValueError("id must be a non-empty string")
        object.__setattr__(self, "id", record_id)

    @property
    def year(self) -> int:
        return self.date.year

    def with_id(self, record_id: str) -> "Transaction":
        return replace(self, id=record_id)

    def to_document(self) -> dict:
        """Payload without the identifier, as stored in the remote collection."""
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": self.amount,
            "type": self.type.value,
            "category": self.category,
            "currency": self.currency,
        }

    def to_dict(self) -> dict:
        payload = {"id": self.id}
        payload.update(self.to_document())
        return payload

    @classmethod
    def from_dict(cls, data: dict, record_id: str | None = None) -> "Transaction":
        if not isinstance(data, dict):
            raise ValueError("Transaction payload must be an object")
        kwargs = {
            "date": str(data.get("date", "") or ""),
            "amount": data.get("amount"),
            "type": data.get("type", ""),
            "currency": data.get("currency", BASE_CURRENCY),
            "category": data.get("category", ""),
            "description": data.get("description", ""),
        }
        resolved_id = record_id if record_id is not None else data.get("id")
        if resolved_id not in (None, ""):
            kwargs["id"] = str(resolved_id)
        return cls(**kwargs)
