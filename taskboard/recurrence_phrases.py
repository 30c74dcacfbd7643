"""Turn recurrence phrases ("every 2 weeks", "every monday") into rules.

The phrases the board writes itself map onto a ``RecurrenceSpec`` through a
small table of fast paths. Anything richer that a person typed by hand
("every monday, wednesday and friday", "every month on the last friday",
"every week until 2025-12-31") goes through a fallback grammar built on
``dateutil.rrule``.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from typing import Union

from dateutil.rrule import (
    DAILY,
    FR,
    MO,
    MONTHLY,
    SA,
    SU,
    TH,
    TU,
    WE,
    WEEKLY,
    YEARLY,
    rrule,
    weekday as RRuleWeekday,
)

from taskboard import line_codec
from taskboard.columns import DEFAULT_STATUS
from taskboard.date_utils import format_date, parse_date
from taskboard.recurrence import (
    WEEKDAY_NAMES,
    Frequency,
    RecurrenceSpec,
    RecurrenceSpecError,
    next_occurrence,
)

logger = logging.getLogger(__name__)

UNIT_FREQUENCIES = {
    "day": Frequency.DAILY,
    "daily": Frequency.DAILY,
    "week": Frequency.WEEKLY,
    "weekly": Frequency.WEEKLY,
    "month": Frequency.MONTHLY,
    "monthly": Frequency.MONTHLY,
    "year": Frequency.YEARLY,
    "yearly": Frequency.YEARLY,
}
_WEEKDAY_ALTERNATION = "|".join(WEEKDAY_NAMES)

_INTERVAL_UNIT = re.compile(r"^(\d+)\s*(day|week|month|year)s?$")
_WEEKDAY = re.compile(rf"^(?:week\s+on\s+)?({_WEEKDAY_ALTERNATION})$")
_MONTH_DAY = re.compile(r"^month\s+on\s+the\s+(\d+)(?:st|nd|rd|th)?$")
_BARE_WEEKS = re.compile(r"^(\d+)\s*weeks?$")
_BARE_UNIT = re.compile(r"^(day|daily|week|weekly|month|monthly|year|yearly)$")

_LEADING_EVERY = re.compile(r"^every\s+")


def normalize_phrase(text: str) -> str:
    """Lowercase, collapse whitespace and drop a leading "every"."""
    cleaned = re.sub(r"\s+", " ", text.strip().lower())
    return _LEADING_EVERY.sub("", cleaned).strip()


def _fast_path(text: str, anchor: date) -> RecurrenceSpec | None:
    match = _INTERVAL_UNIT.match(text)
    if match:
        return RecurrenceSpec(
            frequency=UNIT_FREQUENCIES[match.group(2)],
            anchor=anchor,
            interval=int(match.group(1)),
        )

    match = _WEEKDAY.match(text)
    if match:
        return RecurrenceSpec(
            frequency=Frequency.WEEKLY,
            anchor=anchor,
            weekday=WEEKDAY_NAMES.index(match.group(1)),
        )

    match = _MONTH_DAY.match(text)
    if match:
        return RecurrenceSpec(
            frequency=Frequency.MONTHLY,
            anchor=anchor,
            month_day=int(match.group(1)),
        )

    match = _BARE_WEEKS.match(text)
    if match:
        return RecurrenceSpec(
            frequency=Frequency.WEEKLY, anchor=anchor, interval=int(match.group(1))
        )

    match = _BARE_UNIT.match(text)
    if match:
        return RecurrenceSpec(frequency=UNIT_FREQUENCIES[match.group(1)], anchor=anchor)

    return None


# Fallback grammar ---------------------------------------------------------

_RRULE_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)
_WEEKDAY_TOKENS: dict[str, RRuleWeekday] = {}
for _index, _name in enumerate(WEEKDAY_NAMES):
    for _token in {_name, _name + "s", _name[:3], _name[:3] + "s"}:
        _WEEKDAY_TOKENS[_token] = _RRULE_WEEKDAYS[_index]
_WEEKDAY_TOKENS.update({"tues": TU, "thur": TH, "thurs": TH})

MONTH_NAMES = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)
_MONTH_TOKENS: dict[str, int] = {}
for _index, _name in enumerate(MONTH_NAMES, start=1):
    _MONTH_TOKENS[_name] = _index
    _MONTH_TOKENS[_name[:3]] = _index
_MONTH_TOKENS["sept"] = 9
del _index, _name, _token

_NTH_WORDS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5, "last": -1}
_FREQUENCY_RRULE = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}

_UNTIL = re.compile(r"^(?P<body>.+?)\s+until\s+(?P<until>\d{4}-\d{2}-\d{2})$")
_COUNT = re.compile(r"^(?P<body>.+?)\s+for\s+(?P<count>\d+)\s+times?$")
_LIST_SPLIT = re.compile(r"\s*(?:,|\band\b)\s*")
_DAY_NUMBER = re.compile(r"^(?:the\s+)?(\d{1,2})(?:st|nd|rd|th)?$")
_NTH_WEEKDAY = re.compile(
    r"^(?:the\s+)?(first|second|third|fourth|fifth|last|\d)(?:st|nd|rd|th)?\s+(\w+)$"
)
_UNIT_PREFIX = re.compile(r"^(?:(\d+)\s+)?(day|week|month|year)s?$")
_UNIT_ON = re.compile(r"^(?:(\d+)\s+)?(week|month|year)s?\s+on\s+(.+)$")


class RuleRecurrence:
    """A recurrence from the fallback grammar, evaluated by ``dateutil.rrule``."""

    def __init__(self, rule: rrule, phrase: str) -> None:
        self.rule = rule
        self.phrase = phrase

    def next_after(self, reference: date, inclusive: bool = False) -> date | None:
        found = self.rule.after(datetime.combine(reference, time.min), inc=inclusive)
        return found.date() if found is not None else None

    def __repr__(self) -> str:
        return f"RuleRecurrence({self.phrase!r})"


Recurrence = Union[RecurrenceSpec, RuleRecurrence]


def _split_list(text: str) -> list[str]:
    return [item for item in _LIST_SPLIT.split(text) if item]


def _parse_weekdays(text: str) -> list[RRuleWeekday] | None:
    tokens = _split_list(text)
    if not tokens or any(token not in _WEEKDAY_TOKENS for token in tokens):
        return None
    return [_WEEKDAY_TOKENS[token] for token in tokens]


def _parse_month_days(text: str) -> list[int] | None:
    if text in {"the last day", "last day", "the last", "last"}:
        return [-1]
    days: list[int] = []
    for token in _split_list(text):
        match = _DAY_NUMBER.match(token)
        if not match or not 1 <= int(match.group(1)) <= 31:
            return None
        days.append(int(match.group(1)))
    return days or None


def _parse_nth_weekday(text: str) -> RRuleWeekday | None:
    match = _NTH_WEEKDAY.match(text)
    if not match or match.group(2) not in _WEEKDAY_TOKENS:
        return None
    raw = match.group(1)
    nth = _NTH_WORDS[raw] if raw in _NTH_WORDS else int(raw)
    if nth == 0 or nth > 5:
        return None
    return _WEEKDAY_TOKENS[match.group(2)](nth)


def _parse_months(text: str) -> tuple[list[int], int | None] | None:
    """Parse "march", "january and july" or "march 15" into months and a day."""
    day: int | None = None
    words = text.rsplit(" ", 1)
    if len(words) == 2:
        match = _DAY_NUMBER.match(words[1])
        if match:
            day = int(match.group(1))
            text = words[0]
    tokens = _split_list(text)
    if not tokens or any(token not in _MONTH_TOKENS for token in tokens):
        return None
    return [_MONTH_TOKENS[token] for token in tokens], day


def _rule_options(body: str, anchor: date) -> dict | None:
    if body in {"weekday", "weekdays"}:
        return {"freq": WEEKLY, "byweekday": [MO, TU, WE, TH, FR]}
    if body in {"weekend", "weekends"}:
        return {"freq": WEEKLY, "byweekday": [SA, SU]}

    if body in UNIT_FREQUENCIES:
        return {"freq": _FREQUENCY_RRULE[UNIT_FREQUENCIES[body]]}

    match = _UNIT_PREFIX.match(body)
    if match:
        return {
            "freq": _FREQUENCY_RRULE[UNIT_FREQUENCIES[match.group(2)]],
            "interval": int(match.group(1) or 1),
        }

    weekdays = _parse_weekdays(body)
    if weekdays:
        return {"freq": WEEKLY, "byweekday": weekdays}

    months = _parse_months(body.removeprefix("year on "))
    if months:
        month_list, day = months
        options: dict = {"freq": YEARLY, "bymonth": month_list}
        if day is not None:
            options["bymonthday"] = [day]
        return options

    match = _UNIT_ON.match(body)
    if not match:
        return None
    interval = int(match.group(1) or 1)
    unit = match.group(2)
    detail = match.group(3)

    if unit == "week":
        weekdays = _parse_weekdays(detail)
        if weekdays:
            return {"freq": WEEKLY, "interval": interval, "byweekday": weekdays}
        return None

    if unit == "month":
        nth_weekday = _parse_nth_weekday(detail)
        if nth_weekday is not None:
            return {"freq": MONTHLY, "interval": interval, "byweekday": [nth_weekday]}
        days = _parse_month_days(detail)
        if days:
            return {"freq": MONTHLY, "interval": interval, "bymonthday": days}
        return None

    days = _parse_month_days(detail)
    if days:
        return {
            "freq": YEARLY,
            "interval": interval,
            "bymonth": [anchor.month],
            "bymonthday": days,
        }
    months = _parse_months(detail)
    if months:
        month_list, day = months
        options = {"freq": YEARLY, "interval": interval, "bymonth": month_list}
        if day is not None:
            options["bymonthday"] = [day]
        return options
    return None


def _fallback_rule(text: str, anchor: date) -> RuleRecurrence | None:
    body = text
    extra: dict = {}

    until_match = _UNTIL.match(body)
    if until_match:
        try:
            until = parse_date(until_match.group("until"))
        except ValueError:
            return None
        body = until_match.group("body")
        extra["until"] = datetime.combine(until, time.min)
    else:
        count_match = _COUNT.match(body)
        if count_match:
            body = count_match.group("body")
            extra["count"] = int(count_match.group("count"))

    options = _rule_options(body.strip(), anchor)
    if options is None:
        return None
    freq = options.pop("freq")
    if options.get("interval", 1) < 1 or extra.get("count", 1) < 1:
        return None
    try:
        rule = rrule(
            freq,
            dtstart=datetime.combine(anchor, time.min),
            wkst=MO,
            **options,
            **extra,
        )
    except ValueError:
        return None
    return RuleRecurrence(rule, text)


def interpret(text: str, anchor: date) -> Recurrence | None:
    """Map a normalized phrase onto a recurrence, or None if unrecognized.

    Raises RecurrenceSpecError when a fast-path phrase names an impossible
    rule, such as "0 days".
    """
    spec = _fast_path(text, anchor)
    if spec is not None:
        return spec
    return _fallback_rule(text, anchor)


def resolve(phrase: str, anchor: date) -> Recurrence | None:
    return interpret(normalize_phrase(phrase), anchor)


def next_date(
    recurrence: Recurrence, reference: date, inclusive: bool = False
) -> date | None:
    if isinstance(recurrence, RecurrenceSpec):
        return next_occurrence(recurrence, reference, inclusive)
    return recurrence.next_after(reference, inclusive)


def next_occurrence_for_phrase(phrase: str, reference: date) -> date | None:
    """Next date after ``reference`` for a phrase anchored on ``reference``."""
    try:
        recurrence = resolve(phrase, reference)
    except RecurrenceSpecError as exc:
        logger.warning("Invalid recurrence %r: %s", phrase, exc)
        return None
    if recurrence is None:
        logger.warning("Unrecognized recurrence phrase %r", phrase)
        return None
    return next_date(recurrence, reference)


def create_next_recurring_task_line(
    line: str,
    recurrence: str,
    current_due_date: str,
    *,
    default_status: str = DEFAULT_STATUS,
) -> str | None:
    """Build the next instance of a recurring task line, or None.

    The new line is unchecked, carries the next due date, keeps the
    recurrence and tags, drops done/archive markers and is reset to the
    default status.
    """
    try:
        due = parse_date(current_due_date)
    except ValueError:
        logger.warning("Cannot advance recurrence: invalid due date %r", current_due_date)
        return None

    next_due = next_occurrence_for_phrase(recurrence, due)
    if next_due is None:
        return None

    new_line = line_codec.set_checkbox(line, False)
    new_line = line_codec.set_date_marker(
        new_line, line_codec.DUE_GLYPH, format_date(next_due)
    )
    new_line = line_codec.set_date_marker(new_line, line_codec.DONE_GLYPH, None)
    new_line = line_codec.set_date_marker(new_line, line_codec.ARCHIVED_GLYPH, None)
    new_line = line_codec.remove_tag(new_line, line_codec.ARCHIVE_TAG)
    return line_codec.set_status(new_line, default_status)
