"""Recurrence engine: occurrence streams for simple calendar rules.

A ``RecurrenceSpec`` describes "every N days/weeks/months/years", optionally
pinned to one weekday (weekly rules) or one day of the month (monthly and
yearly rules), counted from an anchor date.

Month arithmetic always starts again from the anchor and clamps to the last
day of a shorter month (via ``relativedelta``): Jan 31 + 1 month is Feb 28
(Feb 29 in leap years) and Jan 31 + 2 months is Mar 31. The same rule covers
Feb 29 + 1 year and "on the 31st" in 30-day months.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from functools import lru_cache
from typing import Iterator

from dateutil.relativedelta import relativedelta

MONDAY = 0
SUNDAY = 6
WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurrenceSpecError(ValueError):
    """Raised when a recurrence specification is not a valid calendar rule."""


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class RecurrenceSpec:
    frequency: Frequency
    anchor: date
    interval: int = 1
    weekday: int | None = None
    month_day: int | None = None
    week_start: int = MONDAY

    def __post_init__(self) -> None:
        try:
            frequency = Frequency(self.frequency)
        except ValueError as exc:
            raise RecurrenceSpecError(
                f"Unknown frequency: {self.frequency!r}"
            ) from exc
        object.__setattr__(self, "frequency", frequency)

        if isinstance(self.anchor, datetime):
            object.__setattr__(self, "anchor", self.anchor.date())
        if not isinstance(self.anchor, date):
            raise RecurrenceSpecError("anchor must be a calendar date.")

        if not _is_int(self.interval) or self.interval < 1:
            raise RecurrenceSpecError(
                f"interval must be a positive integer, got {self.interval!r}."
            )
        if not _is_int(self.week_start) or not MONDAY <= self.week_start <= SUNDAY:
            raise RecurrenceSpecError("week_start must be a weekday number 0-6.")

        if self.weekday is not None:
            if not _is_int(self.weekday) or not MONDAY <= self.weekday <= SUNDAY:
                raise RecurrenceSpecError("weekday must be a weekday number 0-6.")
            if frequency is not Frequency.WEEKLY:
                raise RecurrenceSpecError("weekday applies to weekly rules only.")

        if self.month_day is not None:
            if not _is_int(self.month_day) or not 1 <= self.month_day <= 31:
                raise RecurrenceSpecError("month_day must be between 1 and 31.")
            if frequency not in {Frequency.MONTHLY, Frequency.YEARLY}:
                raise RecurrenceSpecError(
                    "month_day applies to monthly and yearly rules only."
                )


def _week_origin(spec: RecurrenceSpec) -> date:
    offset = (spec.anchor.weekday() - spec.week_start) % 7
    return spec.anchor - timedelta(days=offset)


def _candidate(spec: RecurrenceSpec, period: int) -> date:
    """The single candidate date of the ``period``-th period after the anchor."""
    step = period * spec.interval
    if spec.frequency is Frequency.DAILY:
        return spec.anchor + timedelta(days=step)

    if spec.frequency is Frequency.WEEKLY:
        if spec.weekday is None:
            return spec.anchor + timedelta(weeks=step)
        offset = (spec.weekday - spec.week_start) % 7
        return _week_origin(spec) + timedelta(weeks=step, days=offset)

    if spec.frequency is Frequency.MONTHLY:
        if spec.month_day is None:
            return spec.anchor + relativedelta(months=step)
        return spec.anchor + relativedelta(months=step, day=spec.month_day)

    if spec.month_day is None:
        return spec.anchor + relativedelta(years=step)
    return spec.anchor + relativedelta(years=step, day=spec.month_day)


def _first_period_near(spec: RecurrenceSpec, reference: date) -> int:
    """A period index whose candidate is not after ``reference``."""
    if reference <= spec.anchor:
        return 0
    if spec.frequency is Frequency.DAILY:
        elapsed = (reference - spec.anchor).days
        return elapsed // spec.interval
    if spec.frequency is Frequency.WEEKLY:
        elapsed = (reference - _week_origin(spec)).days // 7
        return max(0, elapsed // spec.interval - 1)
    if spec.frequency is Frequency.MONTHLY:
        elapsed = (
            (reference.year - spec.anchor.year) * 12
            + reference.month
            - spec.anchor.month
        )
        return max(0, elapsed // spec.interval - 1)
    elapsed = reference.year - spec.anchor.year
    return max(0, elapsed // spec.interval - 1)


def occurrences(spec: RecurrenceSpec, start_period: int = 0) -> Iterator[date]:
    """Yield the occurrences of ``spec`` in order, starting at the anchor."""
    for period in itertools.count(start_period):
        try:
            candidate = _candidate(spec, period)
        except (OverflowError, ValueError):
            return
        if candidate >= spec.anchor:
            yield candidate


@lru_cache(maxsize=1024)
def _next_occurrence(
    spec: RecurrenceSpec, reference: date, inclusive: bool
) -> date | None:
    for candidate in occurrences(spec, _first_period_near(spec, reference)):
        if candidate > reference or (inclusive and candidate == reference):
            return candidate
    return None


def next_occurrence(
    spec: RecurrenceSpec, reference: date, inclusive: bool = False
) -> date | None:
    """Earliest occurrence after ``reference`` (on or after it when inclusive).

    Returns None only when no later occurrence fits in the calendar range.
    """
    if isinstance(reference, datetime):
        reference = reference.date()
    return _next_occurrence(spec, reference, bool(inclusive))


def _ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def describe(spec: RecurrenceSpec) -> str:
    """Render a spec back into the phrase form the interpreter reads."""
    unit = {
        Frequency.DAILY: "day",
        Frequency.WEEKLY: "week",
        Frequency.MONTHLY: "month",
        Frequency.YEARLY: "year",
    }[spec.frequency]

    if spec.weekday is not None and spec.interval == 1:
        return f"every {WEEKDAY_NAMES[spec.weekday]}"
    if spec.month_day is not None and spec.frequency is Frequency.MONTHLY and spec.interval == 1:
        return f"every month on the {_ordinal(spec.month_day)}"

    phrase = f"every {unit}" if spec.interval == 1 else f"every {spec.interval} {unit}s"
    if spec.weekday is not None:
        phrase += f" on {WEEKDAY_NAMES[spec.weekday]}"
    elif spec.month_day is not None:
        phrase += f" on the {_ordinal(spec.month_day)}"
    return phrase
