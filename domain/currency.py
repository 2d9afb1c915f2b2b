from __future__ import annotations

from dataclasses import asdict, dataclass, replace

from .errors import InvalidCurrency, InvalidRates
from .validation import parse_positive_rate

BASE_CURRENCY = "MMK"
FOREIGN_CURRENCIES = ("THB", "USD", "SGD")
SUPPORTED_CURRENCIES = (BASE_CURRENCY, *FOREIGN_CURRENCIES)


@dataclass(frozen=True)
class RateTable:
    """Conversion factors into MMK: 1 unit of the currency = factor MMK.

    ``Gold`` is the price of one kyattha in MMK and is not a ledger currency.
    """

    THB: float
    USD: float
    SGD: float
    Gold: float

    def __post_init__(self) -> None:
        for name in (*FOREIGN_CURRENCIES, "Gold"):
            try:
                value = parse_positive_rate(name, getattr(self, name))
            except ValueError as exc:
                raise InvalidRates(str(exc)) from exc
            object.__setattr__(self, name, value)

    def factor(self, currency: str) -> float:
        if currency == BASE_CURRENCY:
            return 1.0
        if currency not in FOREIGN_CURRENCIES:
            raise InvalidCurrency(currency)
        return getattr(self, currency)

    def merged(self, **changes: float) -> "RateTable":
        unknown = set(changes) - {*FOREIGN_CURRENCIES, "Gold"}
        if unknown:
            raise InvalidRates(f"Unknown rate keys: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RateTable":
        if not isinstance(data, dict):
            raise InvalidRates("Rates must be an object")
        missing = [key for key in (*FOREIGN_CURRENCIES, "Gold") if key not in data]
        if missing:
            raise InvalidRates(f"Missing rates: {missing}")
        return cls(THB=data["THB"], USD=data["USD"], SGD=data["SGD"], Gold=data["Gold"])


def ensure_supported_currency(currency: str) -> str:
    code = str(currency or "").strip().upper()
    if code not in SUPPORTED_CURRENCIES:
        raise InvalidCurrency(currency)
    return code


def normalize(amount: float, currency: str, rates: RateTable) -> float:
    """Convert ``amount`` in ``currency`` to the base currency.

    Raises InvalidCurrency if the currency is not in the supported set.
    """
    if currency == BASE_CURRENCY:
        return amount
    return amount * rates.factor(currency)
