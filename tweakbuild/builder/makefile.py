"""Repair of build descriptors copied from another developer's machine.

Makefiles written on a desktop often pin ``THEOS`` to something like
``/Users/<name>/theos``.  On device the toolchain root comes from the
environment, so those definitions are commented out and any other reference
to the desktop path is rewritten to ``$(THEOS)``.

The rewrite only ever touches non-comment lines, so running it on an
already-repaired file changes nothing.
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

COMMENT_MARKER = "# Auto-commented: THEOS set via environment"

# ``THEOS = ...``, ``THEOS=...``, ``export THEOS := ...`` and friends, but not
# ``THEOS_DEVICE_IP = ...``.
_THEOS_ASSIGNMENT = re.compile(r"^\s*(?:export\s+)?THEOS\s*(?:::|[:?+!])?=")
_HOME_THEOS_PATH = re.compile(r"/Users/[^/\s]+/theos")


@dataclass
class RepairReport:
    """What :func:`repair_makefile` found and changed."""

    path: Path
    detected: bool = False
    commented_lines: list[int] = field(default_factory=list)
    rewritten_lines: list[int] = field(default_factory=list)
    error: str | None = None

    @property
    def changed(self) -> bool:
        return self.error is None and bool(self.commented_lines or self.rewritten_lines)

    @property
    def ok(self) -> bool:
        return self.error is None


def has_hardcoded_theos(text: str) -> bool:
    """True if *text* mentions a ``/Users/.../theos`` style location."""
    return "/Users/" in text and "/theos" in text


def repair_makefile_text(text: str) -> tuple[str, list[int], list[int]]:
    """Return ``(new_text, commented_line_numbers, rewritten_line_numbers)``.

    Line numbers are 1-based.  Text without hardcoded paths is returned
    unchanged with empty lists.
    """
    if not has_hardcoded_theos(text):
        return text, [], []

    commented: list[int] = []
    rewritten: list[int] = []
    lines = text.split("\n")
    for index, line in enumerate(lines):
        if line.lstrip().startswith("#"):
            continue
        if _THEOS_ASSIGNMENT.match(line):
            lines[index] = f"# {line} {COMMENT_MARKER}"
            commented.append(index + 1)
        elif _HOME_THEOS_PATH.search(line):
            lines[index] = _HOME_THEOS_PATH.sub("$(THEOS)", line)
            rewritten.append(index + 1)

    return "\n".join(lines), commented, rewritten


def _write_atomically(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def repair_makefile(path: Path) -> RepairReport:
    """Patch the Makefile at *path* in place.

    Read and write failures are reported in ``RepairReport.error`` rather than
    raised; the file is then left exactly as it was.
    """
    report = RepairReport(path=path)
    try:
        original = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        report.error = f"could not read {path}: {exc}"
        return report

    report.detected = has_hardcoded_theos(original)
    fixed, commented, rewritten = repair_makefile_text(original)
    if fixed == original:
        return report

    try:
        _write_atomically(path, fixed)
    except OSError as exc:
        report.error = f"could not write {path}: {exc}"
        return report

    report.commented_lines = commented
    report.rewritten_lines = rewritten
    return report
