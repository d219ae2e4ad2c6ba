"""Locating the package produced by a build."""

from __future__ import annotations

import stat
from pathlib import Path


def find_latest_package(directory: Path, extension: str = ".deb") -> Path | None:
    """Return the most recently modified ``*<extension>`` file in *directory*.

    Selection is by modification time, not by name.  Ties go to whichever
    entry the directory listing yields first.  A missing or unreadable
    directory, or one with no matching files, yields ``None``.
    """
    try:
        entries = list(directory.iterdir())
    except OSError:
        return None

    latest: tuple[int, Path] | None = None
    for entry in entries:
        if not entry.name.endswith(extension):
            continue
        try:
            info = entry.stat()
        except OSError:
            continue
        if not stat.S_ISREG(info.st_mode):
            continue
        if latest is None or info.st_mtime_ns > latest[0]:
            latest = (info.st_mtime_ns, entry)

    return latest[1] if latest else None
