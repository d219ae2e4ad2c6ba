"""Pydantic v2 models for projects, process results, build logs and outcomes.

These are the value objects exchanged between the runner, the build pipeline,
the installer and whatever host drives them.  Result models are frozen: once
a run has produced one it is never mutated.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

#: Exit code reported when the child could not be launched at all.
LAUNCH_FAILED = -1


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------

class Project(BaseModel):
    """A tweak project rooted at ``path``.

    ``path`` is excluded from ``project.json``; it is always taken from the
    directory the metadata was loaded from.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str = Field(..., min_length=1)
    bundle_id: str = Field(..., alias="bundleId")
    target_app: str = Field(default="com.apple.springboard", alias="targetApp")
    path: Path = Field(..., exclude=True)
    created_date: datetime = Field(default_factory=_now, alias="createdDate")

    @property
    def makefile_path(self) -> Path:
        return self.path / "Makefile"

    @property
    def metadata_path(self) -> Path:
        return self.path / "project.json"

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_directory(cls, directory: Path) -> "Project":
        """Load ``project.json`` from *directory*.

        Raises:
            FileNotFoundError: If the metadata file is missing.
            pydantic.ValidationError: If the metadata is malformed.
        """
        raw = (directory / "project.json").read_text(encoding="utf-8")
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"project.json in {directory} is not an object")
        data["path"] = directory
        return cls.model_validate(data)


# ---------------------------------------------------------------------------
# Process execution
# ---------------------------------------------------------------------------

class ExecutionResult(BaseModel):
    """Outcome of one external process.

    Always produced, even when the process never started: launch failures
    carry ``exit_code == LAUNCH_FAILED`` and a diagnostic in ``stderr``.
    """

    model_config = ConfigDict(frozen=True)

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    cancelled: bool = False
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.cancelled

    @property
    def launch_failed(self) -> bool:
        return self.exit_code == LAUNCH_FAILED and not (self.cancelled or self.timed_out)

    def stdout_lines(self) -> list[str]:
        """Non-empty stdout lines, in order."""
        return [line for line in self.stdout.splitlines() if line.strip()]

    def stderr_lines(self) -> list[str]:
        """Non-empty stderr lines, in order."""
        return [line for line in self.stderr.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Build log
# ---------------------------------------------------------------------------

class LogLevel(str, Enum):
    INFO = "info"
    OUTPUT = "output"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class LogEntry(BaseModel):
    """A single line in a build or install log."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    message: str
    level: LogLevel = LogLevel.INFO
    timestamp: datetime = Field(default_factory=_now)


# ---------------------------------------------------------------------------
# Build / install outcomes
# ---------------------------------------------------------------------------

class BuildState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BuildOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITHOUT_ARTIFACT = "succeeded_without_artifact"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BuildResult(BaseModel):
    """Terminal result of one ``BuildPipeline.compile`` run."""

    model_config = ConfigDict(frozen=True)

    success: bool
    project: Project
    package_path: Optional[Path] = None
    cancelled: bool = False
    timestamp: datetime = Field(default_factory=_now)

    @computed_field  # type: ignore[misc]
    @property
    def outcome(self) -> BuildOutcome:
        if self.cancelled:
            return BuildOutcome.CANCELLED
        if not self.success:
            return BuildOutcome.FAILED
        if self.package_path is None:
            return BuildOutcome.SUCCEEDED_WITHOUT_ARTIFACT
        return BuildOutcome.SUCCEEDED


class InstallResult(BaseModel):
    """Terminal result of one ``InstallRunner.install`` run.

    ``cache_refreshed`` is ``None`` when the refresh was skipped because the
    install itself failed.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    package_path: Path
    exit_code: int
    cache_refreshed: Optional[bool] = None
    timestamp: datetime = Field(default_factory=_now)
