"""
Next-occurrence search for recurrence rules.

The search walks forward from the anchor one step at a time (a day for
DAILY and WEEKLY rules, a month for MONTHLY ones) and returns the first
candidate that satisfies the rule. It gives up after a fixed number of
steps so that rules which can never be satisfied, e.g. BYDAY=XX, return
None instead of looping forever.
"""

import calendar
from datetime import datetime, timedelta
from dateutil.relativedelta import relativedelta

from .rule import Rule
from .shared import weekday_code

MAX_ITERATIONS = 500
MONTH_ROLLOVERS = ("clamp", "skip")


def days_between(anchor: datetime, candidate: datetime) -> int:
    # floor of the elapsed whole days, as timedelta.days already is
    return (candidate - anchor).days


def months_between(anchor: datetime, candidate: datetime) -> int:
    return (candidate.year - anchor.year) * 12 + (candidate.month - anchor.month)


def step(anchor: datetime, rule: Rule, count: int) -> datetime:
    """
    The anchor advanced by ``count`` steps of the rule's cadence.

    Always measured from the anchor, never from the previous candidate,
    so a clamped Feb 29 does not pin later months to the 29th.
    """
    if rule.frequency == "MONTHLY":
        return anchor + relativedelta(months=count)
    return anchor + timedelta(days=count)


def _same_monthday(candidate: datetime, anchor: datetime, month_rollover: str) -> bool:
    if month_rollover == "skip":
        return candidate.day == anchor.day
    last_day = calendar.monthrange(candidate.year, candidate.month)[1]
    return candidate.day == min(anchor.day, last_day)


def matches(
    candidate: datetime,
    anchor: datetime,
    rule: Rule,
    month_rollover: str = "clamp",
) -> bool:
    """
    True when ``candidate`` is an occurrence of ``rule`` anchored at ``anchor``.

    Candidates on or before the anchor's day never match. Rules with an
    unrecognized frequency never match.
    """
    days_diff = days_between(anchor, candidate)
    if days_diff <= 0:
        return False
    interval = rule.interval or 1

    if rule.frequency == "DAILY":
        return days_diff % interval == 0

    if rule.frequency == "WEEKLY":
        weeks_diff = days_diff // 7
        if weeks_diff % interval != 0:
            return False
        if rule.weekdays:
            return weekday_code(candidate) in rule.weekdays
        return True

    if rule.frequency == "MONTHLY":
        months_diff = months_between(anchor, candidate)
        if months_diff <= 0 or months_diff % interval != 0:
            return False
        return _same_monthday(candidate, anchor, month_rollover)

    return False


def next_occurrence(
    rule: Rule,
    anchor: datetime,
    *,
    max_iterations: int = MAX_ITERATIONS,
    month_rollover: str = "clamp",
) -> datetime | None:
    """
    Return the first occurrence of ``rule`` strictly after ``anchor``'s day,
    keeping the anchor's time of day, or None when the rule is inert or no
    occurrence turns up within ``max_iterations`` steps.
    """
    if rule.is_inert:
        return None
    if month_rollover not in MONTH_ROLLOVERS:
        raise ValueError(
            f"month_rollover must be one of {', '.join(MONTH_ROLLOVERS)}, not {month_rollover!r}"
        )
    for count in range(1, max_iterations + 1):
        candidate = step(anchor, rule, count)
        if matches(candidate, anchor, rule, month_rollover):
            return candidate
    return None
