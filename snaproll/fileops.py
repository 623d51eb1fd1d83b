"""File operations used to restore live files from snapshot versions."""

from __future__ import annotations

import os
import shutil
import stat
import sys
from pathlib import Path

from snaproll.errors import RollForwardError

_BLUE = "34"
_RED = "31"


def _paint(code: str, text: str) -> str:
    return f"\x1b[{code}m{text}\x1b[0m"


def _report(message: str) -> None:
    print(message, file=sys.stderr)


def _remove_entry(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _preserve(src: Path, dst: Path) -> None:
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        st = os.lstat(src)
        os.chown(dst, st.st_uid, st.st_gid, follow_symlinks=False)
    shutil.copystat(src, dst, follow_symlinks=False)


def _copy_entry(src: Path, dst: Path) -> None:
    mode = os.lstat(src).st_mode
    if stat.S_ISDIR(mode):
        if dst.is_symlink() or (dst.exists() and not dst.is_dir()):
            _remove_entry(dst)
        dst.mkdir(parents=True, exist_ok=True)
    else:
        dst.parent.mkdir(parents=True, exist_ok=True)
        if dst.is_symlink() or dst.exists():
            _remove_entry(dst)
        if stat.S_ISLNK(mode):
            os.symlink(os.readlink(src), dst)
        elif stat.S_ISREG(mode):
            shutil.copyfile(src, dst, follow_symlinks=False)
        else:
            raise OSError(f"Unsupported file type for copy: {src}")
    _preserve(src, dst)


def copy(src: str | Path, dst: str | Path) -> None:
    """Replace ``dst`` with a copy of ``src``, keeping its attributes."""
    src, dst = Path(src), Path(dst)
    try:
        _copy_entry(src, dst)
    except OSError as err:
        _report(f"Error: {err}")
        raise RollForwardError(
            f'Could not overwrite "{dst}" with snapshot file version "{src}"'
        ) from err
    _report(f'{_paint(_BLUE, "Restored ")}: "{src}" -> "{dst}"')


def remove(dst: str | Path) -> None:
    """Remove ``dst`` recursively; a path that does not exist is left alone."""
    dst = Path(dst)
    if not dst.exists():
        return
    try:
        _remove_entry(dst)
    except OSError as err:
        _report(f"Error: {err}")
        raise RollForwardError(f'Could not delete file "{dst}"') from err
    if dst.exists():
        raise RollForwardError(f'File should not exist after deletion "{dst}"')
    _report(f'{_paint(_RED, "Removed  ")}: "{dst}" -> 🗑️')


def overwrite_or_remove(src: str | Path, dst: str | Path) -> None:
    """Copy ``src`` over ``dst`` if ``src`` exists, otherwise remove ``dst``."""
    if Path(src).exists():
        copy(src, dst)
    else:
        remove(dst)


def preserve_attributes(src: str | Path, dst: str | Path) -> None:
    """Copy permissions, timestamps and (as root) ownership from ``src`` to ``dst``."""
    try:
        _preserve(Path(src), Path(dst))
    except OSError as err:
        raise RollForwardError(
            f'Could not preserve attributes of "{src}" on "{dst}": {err}'
        ) from err


def metadata_matches(src: str | Path, dst: str | Path) -> bool:
    """Whether two paths agree in type, permissions, size and modification time."""
    try:
        a = os.lstat(src)
        b = os.lstat(dst)
    except OSError:
        return False
    if stat.S_IFMT(a.st_mode) != stat.S_IFMT(b.st_mode):
        return False
    if stat.S_ISLNK(a.st_mode):
        return os.readlink(src) == os.readlink(dst)
    if stat.S_IMODE(a.st_mode) != stat.S_IMODE(b.st_mode):
        return False
    if not stat.S_ISDIR(a.st_mode) and a.st_size != b.st_size:
        return False
    return a.st_mtime_ns == b.st_mtime_ns