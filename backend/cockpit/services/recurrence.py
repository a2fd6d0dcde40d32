"""
Recurrence rule evaluation.

Rules are RFC 5545 RRULE strings (``FREQ=WEEKLY;BYDAY=MO,WE,FR``, optionally
prefixed with ``RRULE:``) expanded with ``dateutil.rrule``. Everything here
works on calendar dates: a rule is anchored at midnight of its anchor day and
the window covers whole days, so the evaluating host's timezone never shifts
an occurrence onto a neighbouring day.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List, Optional, Union

from dateutil.rrule import rrulestr

logger = logging.getLogger(__name__)

# what rrulestr/between raise on rules they cannot handle
_RULE_ERRORS = (ValueError, KeyError, TypeError, IndexError, OverflowError)

DateLike = Union[date, datetime, str, None]


def parse_date_only(value: DateLike) -> Optional[date]:
    """Read the calendar day out of a date, datetime or ISO string.

    Only the ``YYYY-MM-DD`` part is looked at; time of day and offsets are
    ignored. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    date_part = str(value).split("T")[0].split(" ")[0]
    try:
        year, month, day = (int(p) for p in date_part.split("-"))
        return date(year, month, day)
    except ValueError:
        return None


def recurrence_anchor(task) -> date:
    """dtstart for a template: do_date, then due_date, then creation day."""
    return (
        parse_date_only(task.do_date)
        or parse_date_only(task.due_date)
        or parse_date_only(task.created_at)
    )


def _build(rule: str, anchor: date):
    built = rrulestr(rule, dtstart=datetime.combine(anchor, time.min), ignoretz=True)
    # INTERVAL=0 never advances and would spin forever in between()
    for r in getattr(built, "_rrule", [built]):
        if r._interval < 1:
            raise ValueError("INTERVAL must be a positive integer")
    return built


def is_valid_rule(rule: Optional[str]) -> bool:
    if not rule or not rule.strip():
        return False
    try:
        _build(rule, date(2000, 1, 1))
    except _RULE_ERRORS:
        return False
    return True


def expand_occurrences(
    rule: Optional[str],
    anchor: date,
    window_start: date,
    window_end: date,
) -> List[date]:
    """Occurrence dates of ``rule`` within ``[window_start, window_end]``.

    Both boundary days are included. A rule that cannot be parsed is logged
    and expands to nothing.
    """
    if not rule or window_end < window_start:
        return []
    start = datetime.combine(window_start, time.min)
    end = datetime.combine(window_end, time.max)
    try:
        occurrences = _build(rule, anchor).between(start, end, inc=True)
    except _RULE_ERRORS as e:
        logger.warning("Failed to parse recurrence rule %r: %s", rule, e)
        return []
    return sorted({dt.date() for dt in occurrences})


def expand_task(task, window_start: date, window_end: date) -> List[date]:
    return expand_occurrences(
        task.recurrence_rule, recurrence_anchor(task), window_start, window_end
    )
