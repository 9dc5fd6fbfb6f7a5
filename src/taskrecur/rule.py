"""
Recurrence rules.

Only the small RRULE subset that task notes use is understood: FREQ
(DAILY, WEEKLY or MONTHLY), INTERVAL and BYDAY. Parsing never fails;
text that cannot be understood produces a rule that never matches.
"""

import math
import re
from dataclasses import dataclass, field

from .shared import WEEKDAY_CODES

RRULE_PREFIX = "RRULE:"
RRULE_PREFIX_REGEX = re.compile(r"^RRULE:", re.IGNORECASE)

FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY")

RECURRENCE_OPTIONS = (
    ("Daily", "RRULE:FREQ=DAILY"),
    ("Weekdays", "RRULE:FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR"),
    ("Weekly", "RRULE:FREQ=WEEKLY"),
    ("Monthly", "RRULE:FREQ=MONTHLY"),
)

freq_to_unit = dict(DAILY="day", WEEKLY="week", MONTHLY="month")


@dataclass(frozen=True)
class Rule:
    frequency: str | None = None
    interval: int = 1
    weekdays: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_inert(self) -> bool:
        return not self.frequency

    @property
    def is_known(self) -> bool:
        return self.frequency in FREQUENCIES

    def describe(self) -> str:
        """'every 2 weeks on MO, WE' style summary."""
        if self.is_inert:
            return "no recurrence"
        if not self.is_known:
            return f"unsupported frequency {self.frequency}"
        unit = freq_to_unit[self.frequency]
        text = f"every {unit}" if self.interval == 1 else f"every {self.interval} {unit}s"
        if self.frequency == "WEEKLY" and self.weekdays:
            text += f" on {', '.join(self.weekdays)}"
        return text


def _positive_int(value: str) -> int | None:
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number) or number <= 0 or number != int(number):
        return None
    return int(number)


def parse_rule(rule_text) -> Rule:
    """
    Parse 'RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR' into a Rule.

    The 'RRULE:' prefix is optional and keys are case-insensitive. Unknown
    keys are ignored, a non-numeric or non-positive INTERVAL keeps the
    default of 1, and unrecognized FREQ values and BYDAY tokens are kept
    verbatim so that they simply fail to match later on.
    """
    if not isinstance(rule_text, str):
        return Rule()
    body = RRULE_PREFIX_REGEX.sub("", rule_text.strip()).strip()
    if not body:
        return Rule()

    frequency = None
    interval = 1
    weekdays: tuple[str, ...] = ()
    for part in body.split(";"):
        key, _, value = part.partition("=")
        key = key.strip().upper()
        value = value.strip()
        if not key or not value:
            continue
        if key == "FREQ":
            frequency = value.upper()
        elif key == "INTERVAL":
            number = _positive_int(value)
            if number is not None:
                interval = number
        elif key == "BYDAY":
            weekdays = tuple(
                day.strip() for day in value.upper().split(",") if day.strip()
            )
    return Rule(frequency=frequency, interval=interval, weekdays=weekdays)


def normalize_rule_text(text) -> str:
    """
    Canonical stored form of user-entered rule text: trimmed and carrying
    the 'RRULE:' prefix. Empty input gives '' (meaning: clear the rule).
    """
    if not isinstance(text, str):
        return ""
    trimmed = text.strip()
    if not trimmed:
        return ""
    if RRULE_PREFIX_REGEX.match(trimmed):
        return trimmed
    return f"{RRULE_PREFIX}{trimmed}"


def has_valid_weekdays(rule: Rule) -> bool:
    return all(day in WEEKDAY_CODES for day in rule.weekdays)
