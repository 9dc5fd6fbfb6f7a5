"""
The metadata record carried in a task note's front matter.

Records are immutable. Every edit is a method returning a new record so
that stores can apply edits as ``read → transform → write`` without the
transform touching any storage. Keys the record does not model are kept
in ``extra`` and written back unchanged.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any

from .rule import normalize_rule_text
from .shared import fmt_iso, normalize_tags, parse_timestamp

# front matter key → TaskRecord attribute
FIELD_KEYS = {
    "status": "status",
    "priority": "priority",
    "title": "title",
    "scheduled": "scheduled",
    "timeEstimate": "time_estimate",
    "scheduledEnd": "scheduled_end",
    "tags": "tags",
    "recurrenceRule": "recurrence_rule",
}


def estimate_minutes(value) -> int | None:
    """Whole minutes from an int, float or numeric string; None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(minutes):
        return None
    return int(round(minutes))


def compute_scheduled_end(scheduled, time_estimate) -> datetime | None:
    """
    ``scheduled + time_estimate`` minutes, or None unless ``scheduled``
    parses and the estimate is a positive number of minutes.
    """
    start = parse_timestamp(scheduled)
    if start is None:
        return None
    minutes = estimate_minutes(time_estimate)
    if not minutes or minutes <= 0:
        return None
    return start + timedelta(minutes=minutes)


@dataclass(frozen=True)
class TaskRecord:
    status: str | None = None
    priority: str | None = None
    title: str | None = None
    scheduled: Any = None
    time_estimate: Any = None
    scheduled_end: Any = None
    tags: tuple[str, ...] = ()
    recurrence_rule: str | None = None
    extra: dict = field(default_factory=dict)
    key_order: tuple[str, ...] = field(default=(), compare=False)

    # ---- conversion ----

    @classmethod
    def from_mapping(cls, data: dict | None) -> "TaskRecord":
        data = dict(data or {})
        values = {}
        extra = {}
        for key, value in data.items():
            attr = FIELD_KEYS.get(key)
            if attr is None:
                extra[key] = value
            elif attr == "tags":
                values[attr] = tuple(normalize_tags(value))
            else:
                values[attr] = value
        return cls(**values, extra=extra, key_order=tuple(data))

    def to_mapping(self) -> dict:
        values = {}
        for key, attr in FIELD_KEYS.items():
            value = getattr(self, attr)
            if value is None or value == "" or value == ():
                continue
            values[key] = list(value) if attr == "tags" else value
        values.update(self.extra)
        ordered = {key: values[key] for key in self.key_order if key in values}
        ordered.update({k: v for k, v in values.items() if k not in ordered})
        return ordered

    # ---- effective values (canonical key, then legacy alias) ----

    @property
    def effective_status(self) -> str:
        return self.status or "open"

    @property
    def effective_priority(self) -> str | None:
        return self.priority or self.extra.get("prio") or None

    @property
    def rule_text(self) -> str:
        value = self.recurrence_rule or self.extra.get("recurrence")
        return value.strip() if isinstance(value, str) else ""

    @property
    def scheduled_at(self) -> datetime | None:
        return parse_timestamp(self.scheduled)

    @property
    def scheduled_end_at(self) -> datetime | None:
        return parse_timestamp(self.scheduled_end or self.extra.get("sheduledEnd"))

    @property
    def minutes(self) -> int | None:
        return estimate_minutes(self.time_estimate)

    # ---- transforms ----

    def _without_extra(self, *keys: str) -> dict:
        return {k: v for k, v in self.extra.items() if k not in keys}

    def with_status(self, status: str) -> "TaskRecord":
        return replace(self, status=status)

    def with_priority(self, priority: str) -> "TaskRecord":
        return replace(self, priority=priority, extra=self._without_extra("prio"))

    def with_title(self, title: str | None) -> "TaskRecord":
        return replace(self, title=title or None)

    def with_tags(self, tags) -> "TaskRecord":
        return replace(self, tags=tuple(normalize_tags(list(tags))))

    def with_recurrence(self, rule_text) -> "TaskRecord":
        """Store the canonical form of ``rule_text``; empty clears the rule."""
        return replace(
            self,
            recurrence_rule=normalize_rule_text(rule_text) or None,
            extra=self._without_extra("recurrence"),
        )

    def without_recurrence(self) -> "TaskRecord":
        return self.with_recurrence("")

    def with_end_recomputed(self) -> "TaskRecord":
        end = compute_scheduled_end(self.scheduled, self.time_estimate)
        return replace(
            self,
            scheduled_end=fmt_iso(end) if end else None,
            extra=self._without_extra("sheduledEnd"),
        )

    def with_scheduled(self, when: datetime | None) -> "TaskRecord":
        scheduled = fmt_iso(when) if when else None
        return replace(self, scheduled=scheduled).with_end_recomputed()

    def with_time_estimate(self, minutes: int | None) -> "TaskRecord":
        return replace(self, time_estimate=minutes).with_end_recomputed()

    def as_successor(
        self, scheduled: datetime, title: str, time_estimate=None
    ) -> "TaskRecord":
        """
        The record of a freshly spawned successor note: open, scheduled at
        the next occurrence, titled after its own file name, and without a
        recurrence rule of its own. ``scheduledEnd`` is derived from the
        source note's ``time_estimate`` when one is given.
        """
        estimate = self.time_estimate if time_estimate is None else time_estimate
        end = compute_scheduled_end(scheduled, estimate)
        record = self.without_recurrence()
        return replace(
            record,
            status="open",
            scheduled=fmt_iso(scheduled),
            scheduled_end=fmt_iso(end) if end else None,
            title=title or None,
            extra=record._without_extra("sheduledEnd"),
        )
