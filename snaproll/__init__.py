"""Roll a live ZFS dataset forward to a snapshot by undoing 'zfs diff' changes."""

__version__ = "0.1.0"