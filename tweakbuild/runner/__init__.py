"""tweakbuild runner module.

Spawns external tools under a fixed identity with a fabricated environment.

Key classes:
    ProcessRunner     - Execute a command, capture stdout/stderr, never raise
    ExecutionRequest  - Value object describing one command invocation
    Identity          - User/group (and supplementary groups) a child runs as
"""

from .environment import build_environment, quote_argument, resolve_command, wrap_in_directory
from .identity import Identity
from .process import ExecutionRequest, ProcessRunner

__all__ = [
    "ProcessRunner",
    "ExecutionRequest",
    "Identity",
    "build_environment",
    "resolve_command",
    "quote_argument",
    "wrap_in_directory",
]
