import calendar
import math
import re
from datetime import date

TIMEFRAMES = ("daily", "monthly", "yearly")


def parse_ymd(value: str | date) -> date:
    if isinstance(value, date):
        return value
    if not value:
        raise ValueError("Date value is empty")
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        raise ValueError("Invalid date format")
    year, month, day = map(int, value.split("-"))
    if not (1 <= month <= 12):
        raise ValueError("Invalid month")
    last_day = calendar.monthrange(year, month)[1]
    if not (1 <= day <= last_day):
        raise ValueError("Invalid day")
    return date(year, month, day)


def ensure_valid_timeframe(timeframe: str) -> None:
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Invalid timeframe: {timeframe}. Must be one of {list(TIMEFRAMES)}")


def parse_amount(value) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not math.isfinite(amount):
        raise ValueError("Amount must be a finite number")
    if amount < 0:
        raise ValueError("Amount cannot be negative")
    return amount


def parse_positive_rate(name: str, value) -> float:
    """Return ``value`` as a float, rejecting zero, negative and non-finite rates."""
    try:
        rate = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Rate {name} must be a number, got {value!r}") from exc
    if not math.isfinite(rate) or rate <= 0:
        raise ValueError(f"Rate {name} must be positive, got {value!r}")
    return rate
