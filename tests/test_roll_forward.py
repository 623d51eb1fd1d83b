import os
from pathlib import Path

import pytest

from snaproll import fileops
from snaproll.diff_events import DiffEvent, DiffType
from snaproll.errors import RollForwardError
from snaproll.layout import SnapshotLayout
from snaproll.roll_forward import RollForward, main


@pytest.fixture
def setup(tmp_path):
    live = tmp_path / "live"
    snap = live / ".zfs" / "snapshot" / "snap1"
    snap.mkdir(parents=True)
    layout = SnapshotLayout("pool/data", "snap1", live)
    return live, snap, RollForward(layout)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def test_exec_with_no_lines_raises(setup):
    _live, _snap, roll = setup
    with pytest.raises(RollForwardError, match="reported no changes"):
        roll.exec([])


def test_exec_with_bad_line_raises(setup):
    live, _snap, roll = setup
    with pytest.raises(RollForwardError, match="Could not parse diff event"):
        roll.exec([f"1.0\tX\t{live}/a.txt\n"])


def test_exec_restores_snapshot_state(setup):
    live, snap, roll = setup
    _write(snap / "a.txt", "old")
    _write(snap / "dir" / "b.txt", "bee")
    _write(live / "a.txt", "new contents")
    (live / "dir").mkdir()
    _write(live / "c.txt", "created")

    lines = [
        f"1.0\tM\t{live}/a.txt\n",
        f"2.0\t-\t{live}/dir/b.txt\n",
        f"3.0\t+\t{live}/c.txt\n",
    ]
    roll.exec(lines)

    assert (live / "a.txt").read_text() == "old"
    assert (live / "dir" / "b.txt").read_text() == "bee"
    assert not (live / "c.txt").exists()
    assert fileops.metadata_matches(snap / "a.txt", live / "a.txt")
    assert fileops.metadata_matches(snap / "dir", live / "dir")
    # the snapshot itself is untouched
    assert (snap / "a.txt").read_text() == "old"


def test_diff_action_created_without_snapshot_removes(setup):
    live, _snap, roll = setup
    _write(live / "fresh.txt", "x")
    roll.diff_action(DiffEvent.create(str(live / "fresh.txt"), DiffType.CREATED, "1.0"))
    assert not (live / "fresh.txt").exists()


def test_diff_action_modified_copies_snapshot(setup):
    live, snap, roll = setup
    _write(snap / "m.txt", "original")
    _write(live / "m.txt", "changed!")
    roll.diff_action(DiffEvent.create(str(live / "m.txt"), DiffType.MODIFIED, "1.0"))
    assert (live / "m.txt").read_text() == "original"


def test_diff_action_rename_is_reversed(setup):
    live, snap, roll = setup
    _write(snap / "old.txt", "payload")
    _write(live / "new.txt", "payload")
    event = DiffEvent.create(
        str(live / "old.txt"), DiffType.RENAMED, "1.0", str(live / "new.txt")
    )
    roll.diff_action(event)
    assert (live / "old.txt").read_text() == "payload"
    assert not (live / "new.txt").exists()


def test_diff_action_outside_mount_raises(setup, tmp_path):
    _live, _snap, roll = setup
    event = DiffEvent.create(str(tmp_path / "elsewhere"), DiffType.MODIFIED, "1.0")
    with pytest.raises(RollForwardError, match="snap file path"):
        roll.diff_action(event)


def test_verify_detects_mismatch(setup):
    live, snap, roll = setup
    _write(snap / "a.txt", "x")
    _write(live / "a.txt", "longer text")
    with pytest.raises(RollForwardError, match="does not match"):
        roll.verify()


def test_main_rejects_name_without_at(tmp_path, capsys):
    code = main(["pooldata", "--mount", str(tmp_path)])
    assert code == 1
    assert "not a valid data set name" in capsys.readouterr().err


def test_main_rolls_forward_from_diff_file(tmp_path, capsys):
    live = tmp_path / "live"
    snap = live / ".zfs" / "snapshot" / "snap1"
    _write(snap / "a.txt", "old")
    _write(live / "a.txt", "modified")
    diff_file = tmp_path / "diff.txt"
    diff_file.write_text(f"5.10\tM\t{live}/a.txt\n")

    code = main(["pool/data @ snap1".replace(" ", ""), "--mount", str(live), "--diff", str(diff_file)])

    assert code == 0
    assert (live / "a.txt").read_text() == "old"
    assert "completed successfully" in capsys.readouterr().out


def test_main_reports_failure(tmp_path, capsys):
    live = tmp_path / "live"
    (live / ".zfs" / "snapshot" / "snap1").mkdir(parents=True)
    diff_file = tmp_path / "diff.txt"
    diff_file.write_text("")

    code = main(["pool/data@snap1", "--mount", str(live), "--diff", str(diff_file)])

    assert code == 1
    assert "reported no changes" in capsys.readouterr().err