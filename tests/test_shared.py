from datetime import date, datetime, timedelta, timezone

import pytest

from taskrecur.shared import (
    bug_msg,
    fmt_iso,
    fmt_user,
    log_msg,
    normalize_tag,
    normalize_tags,
    parse_timestamp,
    weekday_code,
)


@pytest.mark.unit
class TestTimestamps:
    def test_parse_timestamp(self):
        assert parse_timestamp("2024-01-01T09:00") == datetime(2024, 1, 1, 9, 0)
        assert parse_timestamp("2024-01-01") == datetime(2024, 1, 1)
        assert parse_timestamp(date(2024, 1, 1)) == datetime(2024, 1, 1)
        moment = datetime(2024, 1, 1, 9, 0)
        assert parse_timestamp(moment) is moment

    @pytest.mark.parametrize(
        "value", [None, "", "tomorrow-ish", 42, ["2024-01-01"], "5", "Jan 5", "2024", "09:00"]
    )
    def test_unparseable_is_none(self, value):
        assert parse_timestamp(value) is None

    def test_parse_keeps_offset(self):
        parsed = parse_timestamp("2024-01-01T09:00:00Z")
        assert parsed.utcoffset() == timedelta(0)

    def test_fmt_iso(self):
        assert fmt_iso(datetime(2024, 1, 8, 9, 0)) == "2024-01-08T09:00:00"
        assert fmt_iso(datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)) == "2024-01-08T09:00:00Z"
        offset = timezone(timedelta(hours=-5))
        assert fmt_iso(datetime(2024, 1, 8, 9, 0, tzinfo=offset)) == "2024-01-08T09:00:00-05:00"

    def test_fmt_user(self):
        assert fmt_user(None) == "unscheduled"
        assert fmt_user(datetime(2024, 1, 8)) == "2024-01-08"
        assert fmt_user(datetime(2024, 1, 8, 9, 5)) == "2024-01-08 09:05"

    def test_weekday_code(self):
        assert weekday_code(date(2024, 1, 7)) == "SU"
        assert weekday_code(date(2024, 1, 8)) == "MO"
        assert weekday_code(date(2024, 1, 13)) == "SA"


@pytest.mark.unit
class TestTags:
    @pytest.mark.parametrize(
        "raw, expected",
        [("#work", "work"), ("- work", "work"), ("  #-# work ", "work"), ("#", ""), (None, "")],
    )
    def test_normalize_tag(self, raw, expected):
        assert normalize_tag(raw) == expected

    def test_normalize_tags(self):
        assert normalize_tags(["#a", "b", "a", "#"]) == ["a", "b"]
        assert normalize_tags("#a") == ["a"]
        assert normalize_tags(None) == []
        assert normalize_tags({"a": 1}) == []


@pytest.mark.unit
class TestLogging:
    def test_log_msg_writes_daily_file(self, isolated_home, frozen_time):
        log_msg("first message")
        log_msg("second message")

        log_file = isolated_home / "logs" / "log_250101.md"
        content = log_file.read_text(encoding="utf-8")
        assert content.startswith(
            "- 12:00:00 log_msg (TestLogging.test_log_msg_writes_daily_file):"
        )
        assert "   first message" in content
        assert content.index("first message") < content.index("second message")

    def test_bug_msg_has_its_own_file(self, isolated_home, frozen_time):
        bug_msg("odd value")
        assert (isolated_home / "logs" / "bug_250101.md").exists()
        assert not (isolated_home / "logs" / "log_250101.md").exists()

    def test_method_callers_are_named_by_class(self, isolated_home, frozen_time):
        class Worker:
            def run(self):
                log_msg("working")

        Worker().run()
        content = (isolated_home / "logs" / "log_250101.md").read_text(encoding="utf-8")
        assert "(Worker.run)" in content

    def test_explicit_path_and_print(self, tmp_path, capsys):
        target = tmp_path / "custom.md"
        log_msg("to a file", file_path=target, print_output=True)
        assert "to a file" in target.read_text(encoding="utf-8")
        assert "to a file" in capsys.readouterr().out
