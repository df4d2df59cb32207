"""Period ("YYYY-MM") manipulation utilities"""

import re
from datetime import date
from typing import List, Optional, Tuple

from rt_finance.domain.exceptions import ValidationError

PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

MONTH_NAMES_ID = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]


def parse_period(period: Optional[str]) -> Tuple[int, int]:
    """Split a period into (year, month), rejecting anything but YYYY-MM"""
    match = PERIOD_PATTERN.match(period or "")
    if not match:
        raise ValidationError(f"Invalid period format: {period!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month in period: {period!r}")
    return year, month


def normalize_period(value: Optional[str]) -> str:
    """Accept a period (2025-01) or a full ISO date (2025-01-20) and return the period"""
    if value and len(value) == 10:
        try:
            return period_of(date.fromisoformat(value))
        except ValueError:
            raise ValidationError(f"Invalid date format: {value!r}") from None
    year, month = parse_period(value)
    return format_period(year, month)


def format_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def period_of(day: date) -> str:
    return format_period(day.year, day.month)


def current_period(today: Optional[date] = None) -> str:
    return period_of(today or date.today())


def next_period(period: str) -> str:
    year, month = parse_period(period)
    if month == 12:
        return format_period(year + 1, 1)
    return format_period(year, month + 1)


def generate_period_range(start: str, end: str) -> List[str]:
    """Generate list of periods from start to end (inclusive)"""
    parse_period(end)
    periods = []
    current = normalize_period(start)
    while current <= end:
        periods.append(current)
        current = next_period(current)
    return periods


def is_in_range(period: str, start: str, end: str) -> bool:
    """Inclusive range check; YYYY-MM strings sort chronologically"""
    return start <= period <= end


def month_label(period: str) -> str:
    """Indonesian month label, e.g. 2025-03 -> Maret 2025"""
    year, month = parse_period(period)
    return f"{MONTH_NAMES_ID[month - 1]} {year}"
