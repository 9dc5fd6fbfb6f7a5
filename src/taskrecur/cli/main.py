import os
import click
from contextlib import contextmanager
from rich import print
from rich.console import Console
from rich.table import Table
from rich.text import Text

from taskrecur import __version__
from taskrecur.controller import Controller
from taskrecur.occurrence import next_occurrence
from taskrecur.record import TaskRecord
from taskrecur.rule import RECURRENCE_OPTIONS, has_valid_weekdays, parse_rule
from taskrecur.shared import (
    PRIORITIES,
    REPEATING,
    STATUSES,
    STATUS_COLORS,
    fmt_iso,
    fmt_user,
    parse_timestamp,
)
from taskrecur.store import StoreError, Vault
from taskrecur.taskrecur_env import TaskrecurEnvironment

console = Console()

PRESETS = {label.lower(): value for label, value in RECURRENCE_OPTIONS}


class _TimestampParam(click.ParamType):
    name = "datetime"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        parsed = parse_timestamp(value)
        if parsed is None:
            self.fail("Expected a date or datetime such as 2024-01-01T09:00", param, ctx)
        return parsed


_TIMESTAMP = _TimestampParam()


@contextmanager
def _user_errors():
    """Report bad input and store failures as click errors."""
    try:
        yield
    except ValueError as e:
        raise click.BadParameter(str(e))
    except StoreError as e:
        raise click.ClickException(str(e))


def _controller(ctx) -> Controller:
    return ctx.obj["CONTROLLER"]


def _artifact(ctx, path: str):
    with _user_errors():
        return ctx.obj["VAULT"].get(path)


def _expand_rule(rule: str) -> str:
    return PRESETS.get(rule.strip().lower(), rule)


def print_record(record: TaskRecord, title: str, config, upcoming=None):
    status = record.status or config.defaults.status
    table = Table(title=Text(title), show_header=False, box=None)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("status", f"[{STATUS_COLORS.get(status, 'white')}]{status}[/]")
    table.add_row("priority", record.effective_priority or config.defaults.priority)
    if record.title:
        table.add_row("title", Text(record.title))
    table.add_row("scheduled", fmt_user(record.scheduled_at))
    if record.minutes:
        table.add_row("estimate", f"{record.minutes}m")
    if record.scheduled_end_at:
        table.add_row("ends", fmt_user(record.scheduled_end_at))
    if record.tags:
        table.add_row("tags", Text(", ".join(f"#{tag}" for tag in record.tags)))
    if record.rule_text:
        rule = parse_rule(record.rule_text)
        table.add_row("recurrence", f"{REPEATING} {record.rule_text} ({rule.describe()})")
        table.add_row("next", fmt_user(upcoming) if upcoming else "none")
    for key, value in record.extra.items():
        table.add_row(key, Text(str(value)))
    console.print(table)


@click.group()
@click.version_option(
    __version__, prog_name="taskrecur", message="%(prog)s version %(version)s"
)
@click.option(
    "--home",
    help="Override the taskrecur home directory (equivalent to setting $TASKRECUR_HOME).",
)
@click.option("--vault", "vault_dir", help="Directory holding the task notes.")
@click.pass_context
def cli(ctx, home, vault_dir):
    """taskrecur – manage recurring task notes from the command line."""
    if home:
        os.environ["TASKRECUR_HOME"] = (
            home  # Must be set before TaskrecurEnvironment is instantiated
        )

    env = TaskrecurEnvironment()
    env.ensure(init_config=True, init_vault=not vault_dir)
    config = env.load_config()
    vault = Vault(vault_dir or env.vault_path)

    ctx.ensure_object(dict)
    ctx.obj["ENV"] = env
    ctx.obj["CONFIG"] = config
    ctx.obj["VAULT"] = vault
    ctx.obj["CONTROLLER"] = Controller(vault, config=config)


@cli.command("list")
@click.argument("folder", default="")
@click.pass_context
def list_notes(ctx, folder):
    """List the notes in FOLDER (default: the whole vault)."""
    vault = ctx.obj["VAULT"]
    config = ctx.obj["CONFIG"]
    table = Table(show_header=True, header_style="bold")
    table.add_column("status")
    table.add_column("scheduled")
    table.add_column("note")
    with _user_errors():
        for artifact in vault.iter_artifacts(folder):
            record = vault.read(artifact)
            status = record.status or config.defaults.status
            flag = f" {REPEATING}" if record.rule_text else ""
            table.add_row(
                f"[{STATUS_COLORS.get(status, 'white')}]{status}[/]",
                fmt_user(record.scheduled_at),
                Text(f"{artifact.path}{flag}"),
            )
    console.print(table)


@cli.command()
@click.argument("path")
@click.option("--scheduled", "-s", type=_TIMESTAMP, help="Scheduled date or datetime.")
@click.option("--rule", "-r", help="Recurrence rule or preset (daily, weekdays, weekly, monthly).")
@click.option("--estimate", "-e", type=click.IntRange(min=0), help="Time estimate in minutes.")
@click.pass_context
def new(ctx, path, scheduled, rule, estimate):
    """Create a task note at PATH."""
    record = TaskRecord(status=ctx.obj["CONFIG"].defaults.status)
    if rule:
        record = record.with_recurrence(_expand_rule(rule))
    record = record.with_time_estimate(estimate).with_scheduled(scheduled)
    with _user_errors():
        artifact = ctx.obj["VAULT"].create(path, record)
    print(f"[green]✓[/green] created {artifact.path}")


@cli.command()
@click.argument("path")
@click.pass_context
def show(ctx, path):
    """Show the metadata of the note at PATH."""
    artifact = _artifact(ctx, path)
    controller = _controller(ctx)
    with _user_errors():
        record = controller.metadata.read(artifact)
        upcoming = controller.preview_next(artifact)
    print_record(record, artifact.path, ctx.obj["CONFIG"], upcoming)


@cli.command()
@click.argument("path")
@click.argument("value", type=click.Choice(STATUSES))
@click.pass_context
def status(ctx, path, value):
    """Set the status of the note at PATH."""
    artifact = _artifact(ctx, path)
    with _user_errors():
        successor = _controller(ctx).set_status(artifact, value)
    print(f"[green]✓[/green] {artifact.path}: {value}")
    if successor:
        print(f"[green]✓[/green] next occurrence: {successor.path}")


@cli.command()
@click.argument("path")
@click.argument("rule", default="")
@click.pass_context
def recur(ctx, path, rule):
    """
    Set the recurrence RULE of the note at PATH, e.g. 'FREQ=WEEKLY;BYDAY=MO'
    or one of the presets daily, weekdays, weekly and monthly. Without RULE
    the recurrence is cleared.
    """
    artifact = _artifact(ctx, path)
    with _user_errors():
        stored = _controller(ctx).set_recurrence_rule(artifact, _expand_rule(rule))
    if not stored:
        print(f"[green]✓[/green] {artifact.path}: recurrence cleared")
        return
    parsed = parse_rule(stored)
    print(f"[green]✓[/green] {artifact.path}: {stored} ({parsed.describe()})")
    if parsed.is_inert or not parsed.is_known or not has_valid_weekdays(parsed):
        print("[yellow]⚠️ [/yellow]this rule will never produce an occurrence")


@cli.command("next")
@click.argument("rule")
@click.option(
    "--from", "anchor", type=_TIMESTAMP, required=True, help="Anchor date or datetime."
)
@click.pass_context
def next_cmd(ctx, rule, anchor):
    """Print the next occurrence of RULE after the anchor."""
    config = ctx.obj["CONFIG"]
    upcoming = next_occurrence(
        parse_rule(_expand_rule(rule)),
        anchor,
        max_iterations=config.recurrence.max_iterations,
        month_rollover=config.recurrence.month_rollover,
    )
    if upcoming is None:
        raise click.ClickException("no occurrence found")
    click.echo(fmt_iso(upcoming))


@cli.command()
@click.argument("path")
@click.argument("when", type=_TIMESTAMP, required=False)
@click.pass_context
def schedule(ctx, path, when):
    """Set (or without WHEN clear) the scheduled time of the note at PATH."""
    artifact = _artifact(ctx, path)
    with _user_errors():
        record = _controller(ctx).set_scheduled(artifact, when)
    print(f"[green]✓[/green] {artifact.path}: scheduled {fmt_user(record.scheduled_at)}")


@cli.command()
@click.argument("path")
@click.argument("minutes", type=click.IntRange(min=0), required=False)
@click.pass_context
def estimate(ctx, path, minutes):
    """Set (or without MINUTES clear) the time estimate of the note at PATH."""
    artifact = _artifact(ctx, path)
    with _user_errors():
        record = _controller(ctx).set_time_estimate(artifact, minutes)
    ends = fmt_user(record.scheduled_end_at) if record.scheduled_end_at else "-"
    print(f"[green]✓[/green] {artifact.path}: estimate {record.minutes or 0}m, ends {ends}")


@cli.command()
@click.argument("path")
@click.argument("when", type=_TIMESTAMP)
@click.pass_context
def end(ctx, path, when):
    """Set the end time of the note at PATH (stored as a time estimate)."""
    artifact = _artifact(ctx, path)
    with _user_errors():
        record = _controller(ctx).set_end(artifact, when)
    print(f"[green]✓[/green] {artifact.path}: estimate {record.minutes}m")


@cli.command()
@click.argument("path")
@click.argument("value", type=click.Choice(PRIORITIES))
@click.pass_context
def priority(ctx, path, value):
    """Set the priority of the note at PATH."""
    artifact = _artifact(ctx, path)
    with _user_errors():
        _controller(ctx).set_priority(artifact, value)
    print(f"[green]✓[/green] {artifact.path}: priority {value}")


@cli.command()
@click.argument("path")
@click.argument("text", nargs=-1, required=True)
@click.pass_context
def title(ctx, path, text):
    """Set the title of the note at PATH and rename the note after it."""
    artifact = _artifact(ctx, path)
    with _user_errors():
        renamed = _controller(ctx).set_title(artifact, " ".join(text))
    if renamed.path != artifact.path:
        print(f"[green]✓[/green] renamed to {renamed.path}")
    else:
        print(f"[green]✓[/green] {artifact.path}: title updated")


@cli.group()
def tag():
    """Add or remove tags."""


@tag.command("add")
@click.argument("path")
@click.argument("name")
@click.pass_context
def tag_add(ctx, path, name):
    artifact = _artifact(ctx, path)
    with _user_errors():
        record = _controller(ctx).add_tag(artifact, name)
    print(f"[green]✓[/green] {artifact.path}: {', '.join(record.tags)}")


@tag.command("remove")
@click.argument("path")
@click.argument("name")
@click.pass_context
def tag_remove(ctx, path, name):
    artifact = _artifact(ctx, path)
    with _user_errors():
        record = _controller(ctx).remove_tag(artifact, name)
    print(f"[green]✓[/green] {artifact.path}: {', '.join(record.tags) or 'no tags'}")


@cli.command()
@click.argument("path")
@click.argument("folder")
@click.pass_context
def move(ctx, path, folder):
    """Move the note at PATH into FOLDER."""
    artifact = _artifact(ctx, path)
    with _user_errors():
        moved = _controller(ctx).move_to_folder(artifact, folder)
    print(f"[green]✓[/green] {moved.path}")


if __name__ == "__main__":
    cli()
