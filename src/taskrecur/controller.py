from __future__ import annotations

from datetime import datetime

from .naming import next_name, sanitize_file_name
from .occurrence import next_occurrence
from .record import TaskRecord
from .rule import parse_rule
from .shared import (
    FINISHED_STATUSES,
    PRIORITIES,
    STATUSES,
    bug_msg,
    fmt_iso,
    log_msg,
    normalize_tag,
    parse_timestamp,
)
from .store import (
    Artifact,
    ArtifactStore,
    MetadataStore,
    join_path,
    normalize_folder,
)
from .taskrecur_env import TaskrecurConfig


class Controller:
    """
    Applies edits to task notes and runs the recurrence side effects that
    status changes carry:

    - moving a note into ``blocked`` drops its recurrence rule;
    - moving a recurring note into ``complete`` or ``wont-do`` creates the
      note for the next occurrence beside it.

    Every decision starts from a fresh read of the note's record.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        artifacts: ArtifactStore | None = None,
        config: TaskrecurConfig | None = None,
    ):
        self.metadata = metadata
        # a Vault is both stores
        self.artifacts = artifacts if artifacts is not None else metadata
        self.config = config or TaskrecurConfig()

    @property
    def max_iterations(self) -> int:
        return self.config.recurrence.max_iterations

    @property
    def month_rollover(self) -> str:
        return self.config.recurrence.month_rollover

    # ---- lifecycle ----

    def on_status_changed(
        self, artifact: Artifact, old_status: str | None, new_status: str
    ) -> Artifact | None:
        """
        Run the side effects of a committed status edit. Returns the
        successor note when one was created.
        """
        old_status = old_status or "open"
        if new_status == old_status:
            return None

        if new_status == "blocked":
            self.metadata.mutate(artifact, lambda record: record.without_recurrence())
            return None

        if new_status in FINISHED_STATUSES:
            return self.complete_and_spawn_successor(artifact)

        return None

    def complete_and_spawn_successor(self, artifact: Artifact) -> Artifact | None:
        """
        Create the note for the next occurrence of a recurring task.

        Nothing happens when the note has no rule, no usable ``scheduled``
        anchor, no next occurrence, or when the successor's name is already
        taken. Failures are logged and swallowed: the status change that
        triggered this has already been written and must stand.
        """
        try:
            return self._spawn_successor(artifact)
        except Exception as e:
            log_msg(f"Failed to create next occurrence of {artifact.path}: {e!r}")
            return None

    def _spawn_successor(self, artifact: Artifact) -> Artifact | None:
        record = self.metadata.read(artifact)

        rule_text = record.rule_text
        if not rule_text:
            bug_msg(f"{artifact.path} has no recurrence rule")
            return None

        anchor = record.scheduled_at
        if anchor is None:
            bug_msg(f"{artifact.path} has no usable scheduled value: {record.scheduled!r}")
            return None

        rule = parse_rule(rule_text)
        upcoming = next_occurrence(
            rule,
            anchor,
            max_iterations=self.max_iterations,
            month_rollover=self.month_rollover,
        )
        if upcoming is None:
            log_msg(f"No occurrence of {rule_text!r} after {fmt_iso(anchor)} for {artifact.path}")
            return None

        destination = join_path(artifact.parent, next_name(artifact.name, upcoming))
        if self.artifacts.exists(destination):
            log_msg(f"Not creating {destination}: a note with that name already exists")
            return None

        successor = self.artifacts.copy(artifact, destination)
        try:
            self.metadata.mutate(
                successor,
                lambda copied: copied.as_successor(
                    upcoming, successor.stem, time_estimate=record.time_estimate
                ),
            )
        except Exception:
            # an unconverted copy still carries the source's status and rule
            self.artifacts.delete(successor)
            raise
        log_msg(f"Created {successor.path} for the occurrence on {fmt_iso(upcoming)}")
        return successor

    def set_recurrence_rule(self, artifact: Artifact, rule_text: str | None) -> str:
        """
        Store ``rule_text`` as the note's recurrence rule, adding the
        'RRULE:' prefix when it is missing. Empty text clears the rule.
        Returns the stored value, '' when cleared.
        """
        record = self.metadata.mutate(
            artifact, lambda record: record.with_recurrence(rule_text)
        )
        return record.recurrence_rule or ""

    def set_status(self, artifact: Artifact, status: str) -> Artifact | None:
        """
        Write ``status`` and then run its lifecycle side effects. The status
        write is committed before, and independently of, any successor.
        """
        if status not in STATUSES:
            raise ValueError(f"status must be one of {', '.join(STATUSES)}, not {status!r}")
        old_status = self.metadata.read(artifact).effective_status
        self.metadata.mutate(artifact, lambda record: record.with_status(status))
        return self.on_status_changed(artifact, old_status, status)

    # ---- ordinary field edits ----

    def set_priority(self, artifact: Artifact, priority: str) -> TaskRecord:
        if priority not in PRIORITIES:
            raise ValueError(
                f"priority must be one of {', '.join(PRIORITIES)}, not {priority!r}"
            )
        return self.metadata.mutate(artifact, lambda record: record.with_priority(priority))

    def set_scheduled(self, artifact: Artifact, when) -> TaskRecord:
        """Set (or with None/'' clear) ``scheduled``; ``scheduledEnd`` follows."""
        if when is None or when == "":
            parsed = None
        else:
            parsed = parse_timestamp(when)
            if parsed is None:
                raise ValueError(f"cannot parse {when!r} as a date or datetime")
        return self.metadata.mutate(artifact, lambda record: record.with_scheduled(parsed))

    def set_time_estimate(self, artifact: Artifact, minutes: int | None) -> TaskRecord:
        if minutes is not None and (
            not isinstance(minutes, int) or isinstance(minutes, bool) or minutes < 0
        ):
            raise ValueError(
                f"time estimate must be a non-negative whole number of minutes, not {minutes!r}"
            )
        return self.metadata.mutate(
            artifact, lambda record: record.with_time_estimate(minutes)
        )

    def set_end(self, artifact: Artifact, end) -> TaskRecord:
        """Record the end time by deriving ``timeEstimate`` from ``scheduled``."""
        end_at = parse_timestamp(end)
        if end_at is None:
            raise ValueError(f"cannot parse {end!r} as a date or datetime")
        start = self.metadata.read(artifact).scheduled_at
        if start is None:
            raise ValueError("an end time needs a scheduled time")
        try:
            minutes = round((end_at - start).total_seconds() / 60)
        except TypeError as e:
            # naive vs aware
            raise ValueError(f"cannot compare {end!r} with the scheduled time") from e
        if minutes <= 0:
            raise ValueError("the end time must come after the scheduled time")
        return self.set_time_estimate(artifact, minutes)

    def add_tag(self, artifact: Artifact, tag: str) -> TaskRecord:
        normalized = normalize_tag(tag)
        if not normalized:
            raise ValueError(f"{tag!r} is not a usable tag")
        return self.metadata.mutate(
            artifact, lambda record: record.with_tags([*record.tags, normalized])
        )

    def remove_tag(self, artifact: Artifact, tag: str) -> TaskRecord:
        normalized = normalize_tag(tag)
        return self.metadata.mutate(
            artifact,
            lambda record: record.with_tags([t for t in record.tags if t != normalized]),
        )

    def set_title(self, artifact: Artifact, title: str) -> Artifact:
        """
        Write ``title`` and rename the note after it. When another note
        already has that name the title is still written but the note keeps
        its current name. Returns the note as it now is.
        """
        title = (title or "").strip()
        if not title:
            raise ValueError("title cannot be empty")
        self.metadata.mutate(artifact, lambda record: record.with_title(title))

        name = sanitize_file_name(title, artifact.stem) + artifact.extension
        destination = join_path(artifact.parent, name)
        if destination == artifact.path:
            return artifact
        if self.artifacts.exists(destination):
            log_msg(f"Not renaming {artifact.path}: {destination} already exists")
            return artifact
        return self.artifacts.rename(artifact, destination)

    def move_to_folder(self, artifact: Artifact, folder: str) -> Artifact:
        folder = normalize_folder(folder)
        destination = join_path(folder, artifact.name)
        if destination == artifact.path:
            return artifact
        self.artifacts.ensure_folder(folder)
        return self.artifacts.rename(artifact, destination)

    # ---- queries ----

    def preview_next(self, artifact: Artifact) -> datetime | None:
        """The occurrence a completion would spawn, without creating anything."""
        record = self.metadata.read(artifact)
        anchor = record.scheduled_at
        if not record.rule_text or anchor is None:
            return None
        return next_occurrence(
            parse_rule(record.rule_text),
            anchor,
            max_iterations=self.max_iterations,
            month_rollover=self.month_rollover,
        )
