"""On-device package installation.

Runs ``dpkg -i <package>`` as the configured non-privileged identity and, if
that succeeds, refreshes the icon/app cache with ``uicache``.  A failed cache
refresh never downgrades a successful install, and a failed install is left
exactly as dpkg left it: there is no rollback.
"""

from __future__ import annotations

from pathlib import Path

from tweakbuild.builder.log import BuildLog
from tweakbuild.config import Config
from tweakbuild.models import InstallResult
from tweakbuild.runner import ProcessRunner


class InstallRunner:
    """Installs built packages and reports into a :class:`BuildLog`.

    Like :class:`~tweakbuild.builder.BuildPipeline`, only one install runs at
    a time; a second request while one is in flight returns ``None``.
    """

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        log: BuildLog | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner.from_config(config)
        self.log = log or BuildLog()
        self.is_installing = False
        self.last_result: InstallResult | None = None

    async def install(self, package_path: str | Path) -> InstallResult | None:
        """Install the package at *package_path*."""
        if self.is_installing:
            return None

        self.is_installing = True
        self.log.clear()
        try:
            result = await self._install(Path(package_path))
        finally:
            self.is_installing = False

        self.last_result = result
        return result

    async def _install(self, package: Path) -> InstallResult:
        settings = self.config.install
        self.log.info(f"Installing {package.name}...")
        self.log.info(f"Path: {package}")

        outcome = await self.runner.execute(settings.dpkg_binary, ["-i", str(package)])

        if outcome.exit_code != 0:
            self.log.error(f"Installation failed with exit code {outcome.exit_code}")
            for line in outcome.stdout_lines():
                self.log.output(line)
            for line in outcome.stderr_lines():
                self.log.error(line)
            self.log.info("Cache refresh skipped")
            return InstallResult(
                success=False,
                package_path=package,
                exit_code=outcome.exit_code,
                cache_refreshed=None,
            )

        self.log.success("Installation successful!")
        for line in outcome.stdout_lines():
            self.log.output(line)
        for line in outcome.stderr_lines():
            self.log.warning(line)

        refreshed = await self._refresh_cache()
        return InstallResult(
            success=True,
            package_path=package,
            exit_code=outcome.exit_code,
            cache_refreshed=refreshed,
        )

    async def _refresh_cache(self) -> bool:
        settings = self.config.install
        self.log.info("Refreshing icon cache...")
        refresh = await self.runner.execute(
            settings.cache_refresh_binary, settings.cache_refresh_args
        )
        for line in refresh.stdout_lines():
            self.log.output(line)
        if refresh.exit_code != 0:
            for line in refresh.stderr_lines():
                self.log.warning(line)
            self.log.warning(
                f"Icon cache refresh failed (exit code {refresh.exit_code}); "
                "the package is still installed"
            )
            return False
        self.log.success("Done! Respring may be required.")
        return True
