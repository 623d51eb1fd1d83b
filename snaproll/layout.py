"""Mapping between live dataset paths and their snapshot counterparts."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Mapping

from snaproll.errors import RollForwardError

ZFS_SNAPSHOT_DIRECTORY = ".zfs/snapshot"


def split_snapshot_name(full_snap_name: str) -> tuple[str, str]:
    """Split ``dataset@snapshot`` at the first ``@``."""
    dataset, sep, snap = full_snap_name.partition("@")
    if not sep:
        raise RollForwardError(
            f'"{full_snap_name}" is not a valid data set name.  A valid ZFS snapshot '
            "name requires a '@' separating dataset name and snapshot name."
        )
    return dataset, snap


@dataclass(frozen=True)
class SnapshotLayout:
    """A snapshot of a dataset together with the dataset's mount point."""

    dataset: str
    snap: str
    proximate_dataset_mount: Path

    @classmethod
    def from_snapshot_name(
        cls, full_snap_name: str, dataset_mounts: Mapping[str | Path, str]
    ) -> SnapshotLayout:
        """Resolve the mount of the snapshot's dataset from a mount -> source map."""
        dataset, snap = split_snapshot_name(full_snap_name)
        wanted = PurePosixPath(dataset)
        for mount, source in dataset_mounts.items():
            if PurePosixPath(source) == wanted:
                return cls(dataset, snap, Path(mount))
        raise RollForwardError("Could not determine proximate dataset mount")

    def full_name(self) -> str:
        return f"{self.dataset}@{self.snap}"

    def snap_dataset(self) -> Path:
        """Root directory of the snapshot inside the dataset mount."""
        return self.proximate_dataset_mount / ZFS_SNAPSHOT_DIRECTORY / self.snap

    def live_path(self, snap_path: str | Path) -> Path | None:
        """Live path for a path inside the snapshot, or None if it is not inside."""
        try:
            relative = Path(snap_path).relative_to(self.snap_dataset())
        except ValueError:
            return None
        return self.proximate_dataset_mount / relative

    def snap_path(self, path: str | Path) -> Path | None:
        """Snapshot path for a live path, or None if it is outside the mount."""
        try:
            relative = Path(path).relative_to(self.proximate_dataset_mount)
        except ValueError:
            return None
        return self.snap_dataset() / relative