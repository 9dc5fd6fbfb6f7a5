import re
from datetime import date, datetime

EXTENSION_REGEX = re.compile(r"(\.[^./\\]+)$")
TRAILING_DATE_REGEX = re.compile(r"\d{4}-\d{2}-\d{2}$")
UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def split_name(name: str) -> tuple[str, str]:
    """'Weekly Report.md' → ('Weekly Report', '.md'); no suffix gives ''."""
    match = EXTENSION_REGEX.search(name)
    if not match:
        return name, ""
    ext = match.group(1)
    return name[: -len(ext)], ext


def next_name(source_name: str, target: date | datetime) -> str:
    """
    Name for the note holding the occurrence on ``target``.

    A trailing YYYY-MM-DD in the base name is replaced by the target's
    date, otherwise the date is appended, so that repeated renaming never
    piles up dates:

        >>> next_name("Weekly Report 2024-01-01.md", date(2024, 1, 8))
        'Weekly Report 2024-01-08.md'
        >>> next_name("Water plants.md", date(2024, 1, 8))
        'Water plants 2024-01-08.md'
    """
    stamp = target.date().isoformat() if isinstance(target, datetime) else target.isoformat()
    base, ext = split_name(source_name)
    base = base.strip()

    match = TRAILING_DATE_REGEX.search(base)
    if match:
        prefix = base[: match.start()].strip()
        return f"{prefix} {stamp}".strip() + ext

    separator = " " if base else ""
    return f"{base}{separator}{stamp}{ext}"


def sanitize_file_name(value, fallback: str) -> str:
    """Turn a free text title into a usable file stem."""
    text = str(value or "").strip()
    if not text:
        return fallback
    text = UNSAFE_FILENAME_CHARS.sub(" ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text or fallback
