# ctam_core/common/fiscal.py
from __future__ import annotations

from datetime import date, datetime

from django.conf import settings
from django.utils import timezone


def _start_month() -> int:
    return int(getattr(settings, "CTAM_FISCAL_YEAR_START_MONTH", 10))


def _display_offset() -> int:
    return int(getattr(settings, "CTAM_FISCAL_YEAR_DISPLAY_OFFSET", 543))


def fiscal_year_for(day: date | datetime | None = None) -> int:
    """
    Stored (calendar-based) fiscal year containing `day`.

    The fiscal year is named after the calendar year it ends in, so with an
    October start 2024-10-01 belongs to fiscal year 2025.
    """
    if day is None:
        day = timezone.localdate()
    elif isinstance(day, datetime):
        day = timezone.localtime(day).date() if timezone.is_aware(day) else day.date()

    return day.year + 1 if day.month >= _start_month() else day.year


def to_display_year(fiscal_year: int) -> int:
    """Display-only conversion (e.g. 2025 -> 2568). Never persist the result."""
    return int(fiscal_year) + _display_offset()
