import inspect
import textwrap
import shutil
import re
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from dateutil.parser import parse as dateutil_parse
from dateutil.parser import ParserError

from taskrecur.taskrecur_env import TaskrecurEnvironment

env = TaskrecurEnvironment()

STATUSES = ("open", "working", "blocked", "wont-do", "complete")
PRIORITIES = ("high", "medium", "normal", "low")

# statuses whose arrival spawns the next occurrence of a recurring task
FINISHED_STATUSES = ("complete", "wont-do")

# indexed like date.isoweekday() % 7, i.e. Sunday first
WEEKDAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

REPEATING = "↻"  # Flag for notes carrying a recurrence rule

STATUS_COLORS = {
    "open": "lightskyblue",
    "working": "gold",
    "blocked": "darkorange",
    "wont-do": "gray",
    "complete": "limegreen",
}

TAG_PREFIX_REGEX = re.compile(r"^[#\-\s]+")

# dateutil fills missing fields from today; require a full date
DATE_PREFIX_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def weekday_code(dt: date) -> str:
    """Return the two letter weekday code (SU, MO, ...) for ``dt``."""
    return WEEKDAY_CODES[dt.isoweekday() % 7]


def parse_timestamp(value) -> datetime | None:
    """
    Coerce a front matter value into a datetime.

    YAML may hand back a ``datetime``, a ``date`` or a string depending on
    how the value was written. Dates become midnight datetimes; strings
    are parsed with dateutil and must start with a full YYYY-MM-DD date.
    Aware values keep their tzinfo. Returns None for empty or unparseable
    input rather than raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not DATE_PREFIX_REGEX.match(value):
        return None
    try:
        return dateutil_parse(value)
    except (ParserError, ValueError, OverflowError):
        return None


def fmt_iso(dt: datetime) -> str:
    """'YYYY-MM-DDTHH:MM:SS' for naive values, with 'Z' or an offset otherwise."""
    text = dt.isoformat(timespec="seconds")
    if dt.tzinfo is not None and dt.utcoffset() == timedelta(0):
        text = text[: -len("+00:00")] + "Z"
    return text


def fmt_user(dt: datetime | None) -> str:
    if dt is None:
        return "unscheduled"
    if dt.hour == dt.minute == 0:
        return dt.strftime("%Y-%m-%d")
    return dt.strftime("%Y-%m-%d %H:%M")


def normalize_tag(tag) -> str:
    """'#work' / '- work' / ' work ' → 'work'. Non-strings give ''."""
    if not tag or not isinstance(tag, str):
        return ""
    return TAG_PREFIX_REGEX.sub("", tag).strip()


def normalize_tags(value) -> list[str]:
    """
    Accept the list or single string forms front matter uses for tags and
    return the normalized, de-duplicated list (first occurrence wins).
    """
    if isinstance(value, str):
        raw = [value]
    elif isinstance(value, (list, tuple)):
        raw = value
    else:
        raw = []
    tags = []
    for item in raw:
        tag = normalize_tag(item)
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _get_runtime_home() -> Path:
    override = os.environ.get("TASKRECUR_HOME")
    if override:
        return Path(override).expanduser()
    return env.home


def _resolve_log_file_path(file_path: str | Path) -> Path:
    path = Path(file_path)
    if path.is_absolute():
        return path
    return _get_runtime_home() / path


def _default_log_relative_path(kind: str) -> Path:
    """Return logs/log_<YYMMDD>.md style paths under the runtime home."""
    suffix = datetime.now().strftime("%y%m%d")
    return Path("logs") / f"{kind}_{suffix}.md"


def _caller_name(frame) -> str:
    func_name = frame.f_code.co_name
    if "self" in frame.f_locals:  # instance method
        return f"{frame.f_locals['self'].__class__.__name__}.{func_name}"
    if "cls" in frame.f_locals:  # classmethod
        return f"{frame.f_locals['cls'].__name__}.{func_name}"
    return func_name


def _write_msg(
    kind: str,
    caller_name: str,
    msg: str,
    file_path: str | Path | None,
    print_output: bool,
):
    # Format the line header
    lines = [
        f"- {datetime.now().strftime('%H:%M:%S')} {kind}_msg ({caller_name}):  ",
    ]
    # Wrap the message text
    lines.extend(
        [
            f"\n{x}"
            for x in textwrap.wrap(
                msg.strip(),
                width=max(shutil.get_terminal_size()[0] - 6, 40),
                initial_indent="   ",
                subsequent_indent="   ",
            )
        ]
    )
    lines.append("\n\n")

    if file_path is None:
        file_path = _default_log_relative_path(kind)
    log_path = _resolve_log_file_path(file_path)

    # Best-effort file logging; fall back to console when the file is unwritable.
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.writelines(lines)
    except OSError:
        print_output = True

    if print_output:
        print("".join(lines))


def log_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Log a message and save it directly to a file.

    Args:
        msg (str): The message to log.
        file_path (str | Path | None, optional): Overrides the default path when
            provided. Defaults to ``None`` which writes to ``logs/log_<YYMMDD>.md``.
        print_output (bool, optional): If True, also print to console.
    """
    caller_name = _caller_name(inspect.stack()[1].frame)
    _write_msg("log", caller_name, msg, file_path, print_output)


def bug_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Companion to log_msg for temporary debugging.

    Writes to ``logs/bug_<YYMMDD>.md`` unless ``file_path`` is given.
    """
    caller_name = _caller_name(inspect.stack()[1].frame)
    _write_msg("bug", caller_name, msg, file_path, print_output)
