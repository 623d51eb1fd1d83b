# snaproll

`snaproll` rolls a live ZFS dataset forward to the contents of one of its
snapshots. Rather than rolling back, it takes the list of changes made since
the snapshot, undoes each one in place on the live filesystem, and then checks
that the live tree matches the snapshot.

What it does:

- reads change records in the tab-separated `zfs diff -H -t -h` format:
  a `<seconds>.<fraction>` timestamp, a change type (`-`, `+`, `M` or `R`),
  the path, and for renames the new path;
- keeps only the latest change for each path;
- restores removed and modified files from the snapshot, deletes created
  files that the snapshot does not hold, and reverses renames;
- rebuilds hard links so that files linked together in the snapshot are
  linked together again on the live dataset, and removes links that no longer
  belong;
- copies permissions and timestamps (and, when running as root, ownership)
  back from the snapshot, then verifies every file, symlink and directory.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

Give the full snapshot name (`dataset@snapshot`), the mount point of the
dataset, and the diff records, either on standard input or from a file:

```
snaproll pool/data@before-upgrade --mount /pool/data < changes.tsv
snaproll pool/data@before-upgrade --mount /pool/data --diff changes.tsv
```

The snapshot is looked for under `<mount>/.zfs/snapshot/<snapshot>`.

Options:

- `snapshot` – snapshot name of the form `dataset@snapshot`;
- `--mount` (required) – mount point of the dataset;
- `--diff` – file holding the diff records, or `-` (the default) for
  standard input.

Each restored, removed, linked or unlinked path is reported on standard error.
On success the command prints `roll forward completed successfully.` and exits
with status 0. A snapshot name without an `@`, an empty diff, unparsable diff
lines or a failed verification are reported on standard error and the command
exits with status 1.

Failures while undoing an individual change are not fatal; the verification
pass that follows catches any file left out of step with the snapshot.

Rolling forward writes to the live dataset and normally needs root.

## Library use

The building blocks can be used on their own:

- `snaproll.diff_events` parses diff records: `parse_diff_line`,
  `parse_diff_stream` (which raises one error naming every bad line), and
  `latest_events`, which picks the newest event per path. Events are
  `DiffEvent` values carrying a `DiffType` and a `DiffTime`.
- `snaproll.layout.SnapshotLayout` maps paths between the live dataset and its
  `.zfs/snapshot/<name>` directory with `live_path` and `snap_path`;
  `SnapshotLayout.from_snapshot_name` finds the mount from a mount-to-dataset
  mapping, and `split_snapshot_name` splits `dataset@snapshot`.
- `snaproll.fileops` holds `copy`, `remove`, `overwrite_or_remove`,
  `preserve_attributes` and `metadata_matches`.
- `snaproll.hard_links` provides `HardLinkMap`, an inode-to-paths index of a
  tree, and `PreserveHardLinks`, which reconciles links between the snapshot
  and the live dataset.
- `snaproll.roll_forward.RollForward` ties these together; its `exec` method
  takes an iterable of diff lines.

Failures are raised as `snaproll.errors.RollForwardError`.

## What it does not do

- It does not run `zfs diff` itself; the change records must be produced
  beforehand and passed in.
- It does not look up dataset mount points; the mount is given on the command
  line.
- It does not take safety snapshots before or after rolling forward, and does
  not roll back if the operation fails part way.
- It does not check that it is running with root privileges.