"""tweakbuild -- Theos tweak build and install core.

Public API
----------
.. autoclass:: ProcessRunner
.. autoclass:: BuildPipeline
.. autoclass:: InstallRunner
.. autoclass:: ProjectStore
.. autoclass:: Config
"""

from .builder import BuildLog, BuildPipeline, RepairReport, repair_makefile
from .config import BuildConfig, Config, InstallConfig, RunnerConfig, ToolchainConfig
from .installer import InstallRunner
from .models import (
    LAUNCH_FAILED,
    BuildOutcome,
    BuildResult,
    BuildState,
    ExecutionResult,
    InstallResult,
    LogEntry,
    LogLevel,
    Project,
)
from .projects import ProjectError, ProjectStore
from .runner import ExecutionRequest, Identity, ProcessRunner

__version__ = "0.1.0"

__all__ = [
    # Runner
    "ProcessRunner",
    "ExecutionRequest",
    "Identity",
    # Build
    "BuildPipeline",
    "BuildLog",
    "RepairReport",
    "repair_makefile",
    # Install
    "InstallRunner",
    # Projects
    "ProjectStore",
    "ProjectError",
    # Models
    "Project",
    "ExecutionResult",
    "LogEntry",
    "LogLevel",
    "BuildResult",
    "BuildOutcome",
    "BuildState",
    "InstallResult",
    "LAUNCH_FAILED",
    # Config
    "Config",
    "RunnerConfig",
    "ToolchainConfig",
    "BuildConfig",
    "InstallConfig",
]
