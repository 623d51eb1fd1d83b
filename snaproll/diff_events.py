"""Parsing of tab-separated ``zfs diff -H -t -h`` output into diff events."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from snaproll.errors import RollForwardError

_UNSIGNED = re.compile(r"\+?[0-9]+")
_U64_MAX = 2**64 - 1


def _parse_u64(text: str) -> int:
    if not text:
        raise RollForwardError("cannot parse integer from empty string")
    if not _UNSIGNED.fullmatch(text):
        raise RollForwardError(f"invalid digit found in string: {text!r}")
    value = int(text)
    if value > _U64_MAX:
        raise RollForwardError(f"number too large to fit in target type: {text!r}")
    return value


class DiffType(enum.Enum):
    """Kind of change reported for a path."""

    REMOVED = "-"
    CREATED = "+"
    MODIFIED = "M"
    RENAMED = "R"


@dataclass(frozen=True, order=True)
class DiffTime:
    """Event timestamp, ordered by seconds and then by the fractional field."""

    secs: int
    nanos: int

    @classmethod
    def parse(cls, time_str: str) -> DiffTime:
        """Parse a ``secs.nanos`` timestamp."""
        secs, sep, nanos = time_str.partition(".")
        if not sep:
            raise RollForwardError("Could not split time string.")
        return cls(_parse_u64(secs), _parse_u64(nanos))


@dataclass(frozen=True)
class DiffEvent:
    """One change to one path; ``new_path`` is the target of a rename."""

    path: Path
    diff_type: DiffType
    time: DiffTime
    new_path: Path | None = None

    @classmethod
    def create(
        cls,
        path_string: str,
        diff_type: DiffType,
        time_str: str,
        new_path: str | Path | None = None,
    ) -> DiffEvent:
        """Build an event from its textual parts."""
        if diff_type is DiffType.RENAMED and new_path is None:
            raise RollForwardError("Could not obtain a new file name for diff event.")
        if diff_type is not DiffType.RENAMED and new_path is not None:
            raise RollForwardError("Only a rename event carries a new file name.")
        return cls(
            path=Path(path_string),
            diff_type=diff_type,
            time=DiffTime.parse(time_str),
            new_path=Path(new_path) if new_path is not None else None,
        )


def parse_diff_line(line: str) -> DiffEvent:
    """Parse a single line of ``zfs diff`` output."""
    fields = line.split("\t")
    time_str = fields[0]

    if len(fields) < 3:
        raise RollForwardError("Could not obtain a path for diff event.")
    path = fields[2]

    try:
        diff_type = DiffType(fields[1])
    except ValueError:
        raise RollForwardError("Could not parse diff event") from None

    if diff_type is DiffType.RENAMED:
        if len(fields) < 4:
            raise RollForwardError("Could not obtain a new file name for diff event.")
        return DiffEvent.create(path, diff_type, time_str, fields[3])

    return DiffEvent.create(path, diff_type, time_str)


def _strip_line_ending(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


def parse_diff_stream(lines: Iterable[str]) -> list[DiffEvent]:
    """Parse every line; if any line fails, raise one error naming all failures."""
    events: list[DiffEvent] = []
    errors: list[str] = []
    for raw in lines:
        try:
            events.append(parse_diff_line(_strip_line_ending(raw)))
        except RollForwardError as err:
            errors.append(str(err))
    if errors:
        raise RollForwardError("".join(errors))
    return events


def _group_by_path(events: Iterable[DiffEvent]) -> Iterator[tuple[Path, list[DiffEvent]]]:
    groups: dict[Path, list[DiffEvent]] = {}
    for event in events:
        groups.setdefault(event.path, []).append(event)
    yield from groups.items()


def latest_events(events: Iterable[DiffEvent]) -> dict[Path, DiffEvent]:
    """Keep, for each path, the event with the latest time (the last one on ties)."""
    result: dict[Path, DiffEvent] = {}
    for path, group in _group_by_path(events):
        latest = group[0]
        for event in group[1:]:
            if event.time >= latest.time:
                latest = event
        result[path] = latest
    return result