"""Archive extraction through the system ``unzip``."""

from __future__ import annotations

from pathlib import Path

from tweakbuild.config import InstallConfig
from tweakbuild.models import LAUNCH_FAILED, ExecutionResult
from tweakbuild.runner import ProcessRunner


async def extract_archive(
    runner: ProcessRunner,
    archive: str | Path,
    destination: str | Path,
    settings: InstallConfig | None = None,
) -> ExecutionResult:
    """Run ``unzip -q <archive> -d <destination>``; exit code 0 means success.

    The destination directory is created first.  If that fails no process is
    launched and the result carries ``LAUNCH_FAILED``.
    """
    settings = settings or InstallConfig()
    destination = Path(destination)
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return ExecutionResult(exit_code=LAUNCH_FAILED, stderr=f"Could not create {destination}: {exc}")

    return await runner.execute(
        settings.unzip_binary,
        ["-q", str(archive), "-d", str(destination)],
    )
