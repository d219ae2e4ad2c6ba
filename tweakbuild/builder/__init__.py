"""tweakbuild builder module.

Compiles tweak projects with the Theos toolchain and reports progress.

Key classes:
    BuildPipeline  - Structure check, clean, package, artifact discovery
    BuildLog       - Ordered, append-only log with listeners
    RepairReport   - Outcome of repairing a Makefile with hardcoded paths
"""

from .artifacts import find_latest_package
from .log import BuildLog, LogListener
from .makefile import RepairReport, has_hardcoded_theos, repair_makefile, repair_makefile_text
from .pipeline import BuildPipeline

__all__ = [
    # Pipeline
    "BuildPipeline",
    # Log
    "BuildLog",
    "LogListener",
    # Makefile repair
    "RepairReport",
    "repair_makefile",
    "repair_makefile_text",
    "has_hardcoded_theos",
    # Artifacts
    "find_latest_package",
]
