from pathlib import Path

import pytest

from snaproll.diff_events import (
    DiffEvent,
    DiffTime,
    DiffType,
    latest_events,
    parse_diff_line,
    parse_diff_stream,
)
from snaproll.errors import RollForwardError


def test_parse_created_line():
    event = parse_diff_line("1700000000.123\t+\t/mnt/data/file")
    assert event.path == Path("/mnt/data/file")
    assert event.diff_type is DiffType.CREATED
    assert event.time == DiffTime.parse("1700000000.123")
    assert event.new_path is None


@pytest.mark.parametrize(
    "symbol, kind",
    [("-", DiffType.REMOVED), ("+", DiffType.CREATED), ("M", DiffType.MODIFIED)],
)
def test_parse_simple_types(symbol, kind):
    event = parse_diff_line(f"5.6\t{symbol}\t/x")
    assert event.diff_type is kind


def test_parse_rename_line():
    event = parse_diff_line("10.20\tR\t/mnt/old\t/mnt/new")
    assert event.diff_type is DiffType.RENAMED
    assert event.path == Path("/mnt/old")
    assert event.new_path == Path("/mnt/new")


def test_rename_without_new_name_fails():
    with pytest.raises(RollForwardError, match="new file name"):
        parse_diff_line("10.20\tR\t/mnt/old")


def test_missing_path_fails():
    with pytest.raises(RollForwardError, match="path"):
        parse_diff_line("10.20\t+")


def test_unknown_type_fails():
    with pytest.raises(RollForwardError, match="Could not parse diff event"):
        parse_diff_line("10.20\tX\t/a")


@pytest.mark.parametrize("text", ["12345", "a.1", "1.b", "-1.0", ".5", "1."])
def test_bad_time_strings(text):
    with pytest.raises(RollForwardError):
        DiffTime.parse(text)


def test_time_without_dot_message():
    with pytest.raises(RollForwardError, match="Could not split time string."):
        DiffTime.parse("42")


def test_time_ordering():
    assert DiffTime.parse("1.5") < DiffTime.parse("2.0")
    assert DiffTime.parse("3.1") < DiffTime.parse("3.2")
    assert DiffTime.parse("3.2") == DiffTime.parse("3.2")
    assert max(DiffTime.parse("9.1"), DiffTime.parse("8.9")) == DiffTime.parse("9.1")


def test_create_rejects_rename_without_target():
    with pytest.raises(RollForwardError):
        DiffEvent.create("/a", DiffType.RENAMED, "1.1", None)


def test_parse_stream_strips_line_endings():
    events = parse_diff_stream(["1.1\t+\t/a\n", "2.2\tM\t/b\r\n"])
    assert [e.path for e in events] == [Path("/a"), Path("/b")]


def test_parse_stream_collects_errors():
    with pytest.raises(RollForwardError) as info:
        parse_diff_stream(["1.1\t+\t/a", "bad", "2.2\tQ\t/c"])
    assert "Could not obtain a path for diff event." in str(info.value)
    assert "Could not parse diff event" in str(info.value)


def test_latest_events_keeps_latest_per_path():
    events = parse_diff_stream(
        ["3.0\tM\t/a", "5.0\t-\t/a", "4.0\t+\t/a", "1.0\t+\t/b"]
    )
    latest = latest_events(events)
    assert set(latest) == {Path("/a"), Path("/b")}
    assert latest[Path("/a")].diff_type is DiffType.REMOVED
    assert latest[Path("/b")].time == DiffTime.parse("1.0")


def test_latest_events_tie_prefers_last():
    events = parse_diff_stream(["7.7\tM\t/a", "7.7\t-\t/a"])
    assert latest_events(events)[Path("/a")].diff_type is DiffType.REMOVED