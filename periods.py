from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def month_period(value: Optional[str], *, today: Optional[date] = None) -> Period:
    """Resolve a ``YYYY-MM`` string (default: current month)."""
    today = today or date.today()
    if not value:
        year, month = today.year, today.month
    else:
        try:
            year_raw, month_raw = value.strip().split("-", 1)
            year, month = int(year_raw), int(month_raw)
        except ValueError as exc:
            raise ValueError(f"Invalid month: {value}") from exc
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {value}")
    start = date(year, month, 1)
    return Period(f"{year:04d}-{month:02d}", start, _month_end(year, month))


def year_period(value: Optional[str], *, today: Optional[date] = None) -> Period:
    today = today or date.today()
    if not value:
        year = today.year
    else:
        try:
            year = int(value.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid year: {value}") from exc
        if not 1970 <= year <= 3000:
            raise ValueError(f"Invalid year: {value}")
    return Period(f"{year:04d}", date(year, 1, 1), date(year, 12, 31))
