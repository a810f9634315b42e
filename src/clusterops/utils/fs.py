"""Filesystem primitives used while importing a cluster.

All failures surface as ``OSError`` (``FileNotFoundError``,
``FileExistsError``, ``PermissionError``...) and are left to the caller.
"""

from __future__ import annotations

import errno
import os
import shutil
from pathlib import Path


def is_exist(path: str | Path) -> bool:
    return Path(path).exists()


def create_dir(path: str | Path) -> Path:
    """Create *path* and its parents. An existing directory is not an error."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def copy_file(src: str | Path, dst: str | Path) -> Path:
    """Copy file contents and permission bits from *src* to *dst*."""
    dst = Path(dst)
    shutil.copyfile(src, dst)
    shutil.copymode(src, dst)
    return dst


def move(src: str | Path, dst: str | Path) -> Path:
    """Move *src* (file or directory) to *dst*.

    Refuses to overwrite an existing *dst*. Uses a rename when both paths
    are on the same filesystem and falls back to copy-and-delete otherwise.
    """
    src, dst = Path(src), Path(dst)
    if not src.exists():
        raise FileNotFoundError(errno.ENOENT, "Source does not exist", str(src))
    if dst.exists():
        raise FileExistsError(errno.EEXIST, "Destination already exists", str(dst))

    dst.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(src, dst)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.move(str(src), str(dst))
    return dst
