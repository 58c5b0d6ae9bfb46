import re
from dataclasses import dataclass
from datetime import date

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class Period:
    key: str
    start: date
    end: date


def period_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def resolve_period(key: str) -> Period:
    """Validate a ``YYYY-MM`` key and return the calendar month it covers."""
    match = _PERIOD_RE.match((key or "").strip())
    if not match:
        raise ValueError(f"Invalid period '{key}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid period '{key}', month must be 01-12")
    start = date(year, month, 1)
    return Period(period_key(start), start, _month_end(year, month))
