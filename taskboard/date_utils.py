"""Calendar-date helpers and due-date time filters.

All values are plain ``YYYY-MM-DD`` calendar dates; nothing here carries a
time of day, so comparisons are immune to timezone and DST shifts.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, TypeVar

from taskboard.line_codec import TaskRecord

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EPOCH = "1970-01-01"

T = TypeVar("T", bound=TaskRecord)


class TimePreset(str, Enum):
    ALL = "all"
    OVERDUE = "overdue"
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    THIS_QUARTER = "this_quarter"
    THIS_YEAR = "this_year"
    CUSTOM = "custom"


def today() -> str:
    return format_date(date.today())


def format_date(value: date) -> str:
    return value.isoformat()


def parse_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string; raises ValueError otherwise."""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value.strip()):
        raise ValueError(f"Invalid date: {value!r}")
    return date.fromisoformat(value.strip())


def is_valid_date(value: str | None) -> bool:
    if value is None:
        return False
    try:
        parse_date(value)
    except ValueError:
        return False
    return True


def preset_range(
    preset: TimePreset | str, reference: date | None = None
) -> tuple[str, str] | None:
    """Return the inclusive ``(from, to)`` range for a preset, or None for "all"."""
    preset = TimePreset(preset)
    current = reference or date.today()
    start = format_date(current)

    if preset is TimePreset.ALL:
        return None
    if preset is TimePreset.OVERDUE:
        return EPOCH, format_date(current - timedelta(days=1))
    if preset is TimePreset.TODAY:
        return start, start
    if preset is TimePreset.THIS_WEEK:
        # weeks end on Sunday
        return start, format_date(current + timedelta(days=6 - current.weekday()))
    if preset is TimePreset.THIS_MONTH:
        last_day = calendar.monthrange(current.year, current.month)[1]
        return start, format_date(current.replace(day=last_day))
    if preset is TimePreset.THIS_QUARTER:
        quarter_end_month = (current.month - 1) // 3 * 3 + 3
        last_day = calendar.monthrange(current.year, quarter_end_month)[1]
        return start, format_date(date(current.year, quarter_end_month, last_day))
    if preset is TimePreset.THIS_YEAR:
        return start, f"{current.year}-12-31"
    return start, start


def normalize_range(from_date: str, to_date: str) -> tuple[str, str]:
    if parse_date(from_date) > parse_date(to_date):
        return to_date, from_date
    return from_date, to_date


def is_in_range(value: str | None, from_date: str, to_date: str) -> bool:
    """Inclusive range check; a missing date counts as today."""
    effective = parse_date(value or today())
    return parse_date(from_date) <= effective <= parse_date(to_date)


@dataclass(frozen=True)
class TimeFilter:
    preset: TimePreset
    from_date: str
    to_date: str

    @classmethod
    def create(cls, preset: TimePreset | str, reference: date | None = None) -> "TimeFilter":
        preset = TimePreset(preset)
        fallback = format_date(reference or date.today())
        bounds = preset_range(preset, reference)
        if bounds is None:
            return cls(preset=preset, from_date=fallback, to_date=fallback)
        return cls(preset=preset, from_date=bounds[0], to_date=bounds[1])

    @classmethod
    def default(cls) -> "TimeFilter":
        return cls.create(TimePreset.ALL)

    @classmethod
    def custom(cls, from_date: str, to_date: str) -> "TimeFilter":
        start, end = normalize_range(from_date, to_date)
        return cls(preset=TimePreset.CUSTOM, from_date=start, to_date=end)

    def to_dict(self) -> dict[str, str]:
        return {
            "preset": self.preset.value,
            "fromDate": self.from_date,
            "toDate": self.to_date,
        }


def apply_time_filter(
    tasks: Iterable[T], time_filter: TimeFilter, show_unscheduled: bool = True
) -> list[T]:
    """Keep tasks whose due date falls inside the filter range.

    Tasks without a due date (or with one that is not a real calendar date)
    are kept only when ``show_unscheduled`` is set.
    """
    if time_filter.preset is TimePreset.ALL:
        return list(tasks)

    kept: list[T] = []
    for task in tasks:
        if not is_valid_date(task.due_date):
            if show_unscheduled:
                kept.append(task)
            continue
        if is_in_range(task.due_date, time_filter.from_date, time_filter.to_date):
            kept.append(task)
    return kept
