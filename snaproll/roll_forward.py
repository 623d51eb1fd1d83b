"""Roll a live dataset forward to the state recorded in one of its snapshots."""

from __future__ import annotations

import argparse
import itertools
import os
import sys
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from snaproll import fileops
from snaproll.diff_events import DiffEvent, DiffType, latest_events, parse_diff_stream
from snaproll.errors import RollForwardError
from snaproll.hard_links import HardLinkMap, PreserveHardLinks
from snaproll.layout import ZFS_SNAPSHOT_DIRECTORY, SnapshotLayout, split_snapshot_name

_NO_CHANGES = "'zfs diff' reported no changes to dataset"


def _report(message: str, end: str = "\n") -> None:
    print(message, end=end, file=sys.stderr, flush=True)


@dataclass
class RollForward:
    """Undoes the changes a diff reports, restoring the snapshot's contents."""

    layout: SnapshotLayout

    def exec(self, diff_lines: Iterable[str]) -> None:
        """Reverse every event in ``zfs diff -H -t -h`` output, then verify the result."""
        lines = iter(diff_lines)
        first = next(lines, None)
        if first is None:
            raise RollForwardError(_NO_CHANGES)

        # a single inode may be reported several times; keep only its latest event
        _report("Building a map of ZFS filesystem events since the specified snapshot.")
        events = latest_events(parse_diff_stream(itertools.chain([first], lines)))

        snap_map = HardLinkMap.build(self.layout.snap_dataset())
        live_map = self._live_link_map()
        exclusions = PreserveHardLinks(live_map, snap_map, self.layout).exec()

        _report("Reversing 'zfs diff' actions.")
        for path, event in events.items():
            if path in exclusions:
                continue
            if event.diff_type is DiffType.RENAMED and event.new_path in exclusions:
                continue
            with suppress(RollForwardError):
                self.diff_action(event)

        self.verify()

    def _live_link_map(self) -> HardLinkMap:
        """Hard-link map of the live dataset, leaving out the snapshot directory."""
        live = HardLinkMap.build(self.layout.proximate_dataset_mount)
        hidden = self.layout.proximate_dataset_mount / ZFS_SNAPSHOT_DIRECTORY

        def keep(path: Path) -> bool:
            return not path.is_relative_to(hidden)

        link_map: dict[int, list[Path]] = {}
        remainder = {path for path in live.remainder if keep(path)}
        for inode, paths in live.link_map.items():
            kept = [path for path in paths if keep(path)]
            if len(kept) > 1:
                link_map[inode] = kept
            else:
                remainder.update(kept)
        return HardLinkMap(link_map=link_map, remainder=remainder)

    def _require_snap_path(self, path: Path) -> Path:
        snap = self.layout.snap_path(path)
        if snap is None:
            raise RollForwardError("Could not obtain snap file path for live version.")
        return snap

    def _require_live_path(self, snap_path: Path) -> Path:
        live = self.layout.live_path(snap_path)
        if live is None:
            raise RollForwardError("Could not generate live path")
        return live

    def diff_action(self, event: DiffEvent) -> None:
        """Undo one event using the snapshot version of its path."""
        snap_file_path = self._require_snap_path(event.path)

        # a rename or create may be the latest of several actions on an inode,
        # so the file must receive the snapshot's data, not merely be renamed back
        if event.diff_type in (DiffType.REMOVED, DiffType.MODIFIED):
            fileops.copy(snap_file_path, event.path)
        elif event.diff_type is DiffType.CREATED:
            fileops.overwrite_or_remove(snap_file_path, event.path)
        else:
            new_path = event.new_path
            if new_path is None:
                raise RollForwardError("Could not obtain a new file name for diff event.")
            snap_new_path = self._require_snap_path(new_path)
            fileops.overwrite_or_remove(snap_new_path, new_path)
            if snap_file_path.exists():
                fileops.copy(snap_file_path, event.path)

    def _check(self, snap_path: Path, live_path: Path) -> None:
        if not fileops.metadata_matches(snap_path, live_path):
            raise RollForwardError(
                f'Metadata of "{live_path}" does not match snapshot version "{snap_path}"'
            )

    def _preserve_upwards(self, snap_dir: Path) -> None:
        """Copy attributes from ``snap_dir`` and its parents, stopping below the root."""
        root = self.layout.snap_dataset()
        current = snap_dir
        while current != root and current.is_relative_to(root):
            live = self.layout.live_path(current)
            if live is None:
                break
            fileops.preserve_attributes(current, live)
            current = current.parent

    def verify(self) -> None:
        """Check that every snapshot entry matches its live counterpart."""
        snap_dataset = self.layout.snap_dataset()
        first_pass: list[Path] = [snap_dataset]
        second_pass: list[Path] = []

        _report("Verifying files and symlinks: ", end="")
        while first_pass:
            item = first_pass.pop()
            try:
                with os.scandir(item) as entries:
                    children = [Path(entry.path) for entry in entries]
            except OSError as err:
                raise RollForwardError(f'Could not read directory "{item}": {err}') from err

            dirs = [path for path in children if path.is_dir()]
            files = [path for path in children if not path.is_dir()]

            if not dirs:
                # at the bottom of a tree, so later writes cannot disturb these attributes
                self._require_live_path(item)
                with suppress(RollForwardError):
                    self._preserve_upwards(item)

            first_pass.extend(dirs)
            second_pass.extend(dirs)

            for snap_path in files:
                live_path = self.layout.live_path(snap_path)
                if live_path is not None:
                    self._check(snap_path, live_path)
        _report("OK")

        _report("Verifying directories: ", end="")
        live_dataset = self._require_live_path(snap_dataset)
        with suppress(RollForwardError):
            fileops.preserve_attributes(snap_dataset, live_dataset)

        # directories are checked last, since restoring data changes their size and mtime
        for snap_path in second_pass:
            live_path = self.layout.live_path(snap_path)
            if live_path is not None:
                self._check(snap_path, live_path)
        _report("OK")


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        prog="snaproll",
        description="Roll a dataset forward to a snapshot using 'zfs diff -H -t -h' output.",
    )
    parser.add_argument("snapshot", help="snapshot name of the form dataset@snapshot")
    parser.add_argument("--mount", required=True, type=Path, help="mount point of the dataset")
    parser.add_argument(
        "--diff",
        default="-",
        help="file holding 'zfs diff -H -t -h' output, or '-' for standard input",
    )
    args = parser.parse_args(argv)

    try:
        dataset, _snap = split_snapshot_name(args.snapshot)
        layout = SnapshotLayout.from_snapshot_name(args.snapshot, {args.mount: dataset})
    except RollForwardError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    roll_forward = RollForward(layout)
    try:
        if args.diff == "-":
            roll_forward.exec(sys.stdin)
        else:
            with open(args.diff, encoding="utf-8") as handle:
                roll_forward.exec(handle)
    except (RollForwardError, OSError) as err:
        print(f"roll forward failed for the following reason: {err}.", file=sys.stderr)
        return 1

    print("roll forward completed successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())