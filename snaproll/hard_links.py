"""Detection and preservation of hard links while rolling a dataset forward."""

from __future__ import annotations

import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from snaproll import fileops
from snaproll.errors import RollForwardError
from snaproll.layout import SnapshotLayout

_GREEN = "32"
_YELLOW = "33"


def _paint(code: str, text: str) -> str:
    return f"\x1b[{code}m{text}\x1b[0m"


def _report(message: str) -> None:
    print(message, file=sys.stderr)


def _remove_recursive(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


@dataclass
class HardLinkMap:
    """Regular files under a tree, split into hard-link groups and the rest.

    ``link_map`` maps an inode to every path sharing it (two or more);
    ``remainder`` holds the paths whose inode appears only once.
    """

    link_map: dict[int, list[Path]] = field(default_factory=dict)
    remainder: set[Path] = field(default_factory=set)

    @classmethod
    def build(cls, requested_path: str | Path) -> HardLinkMap:
        """Walk ``requested_path`` and group its regular files by inode."""
        queue: list[Path] = [Path(requested_path)]
        by_inode: dict[int, list[Path]] = {}

        while queue:
            item = queue.pop()
            try:
                with os.scandir(item) as entries:
                    listed = list(entries)
            except OSError as err:
                raise RollForwardError(f'Could not read directory "{item}": {err}') from err

            dirs = [entry for entry in listed if Path(entry.path).is_dir()]
            files = [entry for entry in listed if not Path(entry.path).is_dir()]
            queue.extend(Path(entry.path) for entry in dirs)

            for entry in files + dirs:
                try:
                    if not entry.is_file(follow_symlinks=False):
                        continue
                    inode = os.stat(entry.path).st_ino
                except OSError:
                    continue
                by_inode.setdefault(inode, []).append(Path(entry.path))

        link_map = {ino: paths for ino, paths in by_inode.items() if len(paths) > 1}
        remainder = {
            path for paths in by_inode.values() if len(paths) == 1 for path in paths
        }
        return cls(link_map=link_map, remainder=remainder)

    def linked_paths(self) -> Iterator[Path]:
        """Every path that belongs to a hard-link group."""
        for paths in self.link_map.values():
            yield from paths


class PreserveHardLinks:
    """Reconciles hard links on the live dataset with those in the snapshot."""

    def __init__(
        self, live_map: HardLinkMap, snap_map: HardLinkMap, layout: SnapshotLayout
    ) -> None:
        self.live_map = live_map
        self.snap_map = snap_map
        self.layout = layout

    def exec(self) -> set[Path]:
        """Fix up links and orphans; return the paths later steps must leave alone."""
        _report("Removing and preserving the difference between live and snap orphans.")
        exclusions = self._diff_orphans()

        _report(
            "Removing the intersection of the live and snap hard link maps "
            "to generate snap orphans."
        )
        exclusions |= self._remove_map_intersection()

        _report("Removing additional unnecessary links on the live dataset.")
        self._remove_live_links()
        exclusions.update(self.live_map.linked_paths())

        _report("Preserving necessary links from the snapshot dataset.")
        self._preserve_snap_links()
        exclusions.update(self.snap_map.linked_paths())

        return exclusions

    def _live_path(self, snap_path: Path) -> Path:
        live = self.layout.live_path(snap_path)
        if live is None:
            raise RollForwardError("Could obtain live path for snap path")
        return live

    def _snap_path(self, live_path: Path) -> Path:
        snap = self.layout.snap_path(live_path)
        if snap is None:
            raise RollForwardError("Could obtain live path for snap path")
        return snap

    def _as_live(self, snap_paths: Iterable[Path]) -> set[Path]:
        return {self._live_path(path) for path in snap_paths}

    def _diff_orphans(self) -> set[Path]:
        snaps_to_live = self._as_live(self.snap_map.remainder)
        live_diff = self.live_map.remainder - snaps_to_live
        snap_diff = snaps_to_live - self.live_map.remainder

        # only on the live dataset: delete
        for path in live_diff:
            fileops.remove(path)

        # only in the snapshot: copy back
        for live_path in snap_diff:
            fileops.copy(self._snap_path(live_path), live_path)

        return live_diff | snap_diff

    def _remove_map_intersection(self) -> set[Path]:
        snaps_to_live = self._as_live(self.snap_map.linked_paths())
        live_linked = set(self.live_map.linked_paths())
        intersection = live_linked & snaps_to_live

        # removed here and recreated when snapshot links are preserved
        for live_path in intersection:
            self.rm_hard_link(live_path)

        return intersection

    def _remove_live_links(self) -> None:
        none_removed = True
        for live_path in self.live_map.linked_paths():
            if not self._snap_path(live_path).exists():
                none_removed = False
                self.rm_hard_link(live_path)

        if none_removed:
            _report("No hard links found which require removal.")

    def _preserve_snap_links(self) -> None:
        none_preserved = True
        for snap_paths in self.snap_map.link_map.values():
            pairs = [(self._live_path(snap), snap) for snap in snap_paths]
            original = next((live for live, _ in pairs if live.exists()), None)

            for live_path, snap_path in pairs:
                if not snap_path.exists():
                    continue
                none_preserved = False
                if original is None:
                    original = live_path
                    fileops.copy(snap_path, live_path)
                elif original == live_path:
                    fileops.copy(snap_path, live_path)
                else:
                    self.hard_link(original, live_path)

        if none_preserved:
            print("No hard links found which require preservation.")

    def hard_link(self, original: str | Path, link: str | Path) -> None:
        """Make ``link`` a hard link to ``original`` with the snapshot's attributes."""
        original, link = Path(original), Path(link)

        if not original.exists():
            raise RollForwardError(
                f'Cannot link because original path does not exists: "{original}"'
            )

        if link.exists():
            try:
                if os.lstat(original).st_ino == os.lstat(link).st_ino:
                    return
            except OSError:
                pass
            try:
                _remove_recursive(link)
            except OSError as err:
                raise RollForwardError(f'Could not remove "{link}": {err}') from err

        try:
            link.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise RollForwardError(
                f'Could not create parent directory for "{link}": {err}'
            ) from err

        try:
            os.link(original, link)
        except OSError as err:
            if not link.exists():
                _report(f"Error: {err}")
                raise RollForwardError(
                    f'Could not link file "{original}" to "{link}"'
                ) from err

        snap_path = self.layout.snap_path(link)
        if snap_path is None:
            raise RollForwardError("Could not obtain snap path")
        fileops.preserve_attributes(snap_path, link)

        _report(f'{_paint(_YELLOW, "Linked  ")}: "{original}" -> "{link}"')

    @staticmethod
    def rm_hard_link(link: str | Path) -> None:
        """Remove ``link``; a link that is already gone counts as removed."""
        link = Path(link)
        try:
            _remove_recursive(link)
        except OSError as err:
            if link.exists():
                _report(f"Error: {err}")
                raise RollForwardError(f'Could not remove link "{link}"') from err
        else:
            if link.exists():
                raise RollForwardError(
                    f'Target link should not exist after removal "{link}"'
                )

        _report(f'{_paint(_GREEN, "Unlinked  ")}: "{link}" -> 🗑️')