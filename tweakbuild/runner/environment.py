"""Child environment construction and command resolution.

Children never inherit the host environment.  Every variable they see is
fabricated here from the configuration: a restricted ``PATH``, ``HOME`` and
``TMPDIR`` for the target identity, and the full set of Theos toolchain
variables.
"""

from __future__ import annotations

import os
from pathlib import Path

from tweakbuild.config import RunnerConfig, ToolchainConfig

from .identity import Identity


def build_environment(
    runner: RunnerConfig,
    toolchain: ToolchainConfig,
    identity: Identity,
) -> dict[str, str]:
    """Return the complete environment for a child running as *identity*."""
    theos = toolchain.theos_path.rstrip("/") or "/"
    home = runner.home_dir or identity.home_directory() or "/var/mobile"

    path_dirs: list[str] = []
    for directory in [*runner.search_paths, *runner.extra_search_paths]:
        if directory not in path_dirs:
            path_dirs.append(directory)

    return {
        "PATH": ":".join(path_dirs),
        "HOME": home,
        "TMPDIR": runner.temp_dir,
        "THEOS": theos,
        "THEOS_MAKE_PATH": f"{theos}/makefiles",
        "THEOS_BIN_PATH": f"{theos}/bin",
        "THEOS_LIBRARY_PATH": f"{theos}/lib",
        "THEOS_INCLUDE_PATH": f"{theos}/include",
        "THEOS_VENDOR_LIBRARY_PATH": f"{theos}/vendor/lib",
        "THEOS_VENDOR_INCLUDE_PATH": f"{theos}/vendor/include",
        "THEOS_DEVICE_IP": toolchain.device_ip,
        "THEOS_DEVICE_PORT": str(toolchain.device_port),
        "THEOS_PACKAGE_SCHEME": toolchain.package_scheme,
    }


def resolve_command(command: str, search_paths: list[str]) -> str:
    """Resolve a bare command name against *search_paths*, in order.

    Absolute or relative paths (anything containing ``/``) are returned as-is.
    If no candidate directory holds an executable file of that name the
    original name is returned so the launch fails with a descriptive error.
    """
    if "/" in command:
        return command
    for directory in search_paths:
        candidate = Path(directory) / command
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
    return command


def quote_argument(argument: str) -> str:
    """Single-quote *argument* for a POSIX shell.

    Every word is quoted, even ones that would be safe bare, and embedded
    single quotes become ``'\\''``.
    """
    return "'" + argument.replace("'", "'\\''") + "'"


def wrap_in_directory(command: str, arguments: list[str], working_directory: str) -> str:
    """Build the ``cd <dir> && <command> <args>`` line run through the shell."""
    command_line = " ".join(quote_argument(word) for word in [command, *arguments])
    return f"cd {quote_argument(working_directory)} && {command_line}"
