"""Tweak build pipeline.

Implements the compile sequence for one project:

Step 1: STRUCTURE  -- The project root must contain a Makefile.
Step 2: REPAIR     -- Comment out hardcoded desktop THEOS paths (optional).
Step 3: PREPARE    -- Ensure the ``packages/`` output directory exists.
Step 4: CLEAN      -- ``make clean`` (never gates the build).
Step 5: PACKAGE    -- ``make package``; its exit code decides success.
Step 6: DISCOVER   -- Newest ``.deb`` in ``packages/`` by modification time.

Every step reports into a :class:`~tweakbuild.builder.log.BuildLog` and the run
ends with a single frozen :class:`~tweakbuild.models.BuildResult`.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

from tweakbuild.config import Config
from tweakbuild.models import BuildResult, BuildState, ExecutionResult, Project
from tweakbuild.runner import ProcessRunner
from tweakbuild.utils import format_duration

from .artifacts import find_latest_package
from .log import BuildLog
from .makefile import RepairReport, repair_makefile


class BuildPipeline:
    """Drives ``make clean`` / ``make package`` for tweak projects.

    One build at a time: a ``compile`` issued while another is running is
    dropped (it returns ``None``), it is not queued.

    Attributes:
        config: Global configuration.
        runner: Process runner used for every external command.
        log: Log of the current (or last) run; cleared when a new run starts.
        state: ``idle`` -> ``running`` -> ``succeeded`` | ``failed``.
        progress: Fraction of the run completed, ``0.0`` to ``1.0``.
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
        self.state = BuildState.IDLE
        self.progress = 0.0
        self.last_result: BuildResult | None = None
        self.last_package_path: Path | None = None
        self._cancel_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self.state is BuildState.RUNNING

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def compile(self, project: Project) -> BuildResult | None:
        """Build *project* and return the terminal result.

        Returns ``None`` without doing anything if a build is already running.
        """
        if self.is_running:
            return None

        self.state = BuildState.RUNNING
        self.progress = 0.0
        self.last_package_path = None
        self.log.clear()
        self._cancel_event = asyncio.Event()

        started = time.monotonic()
        try:
            result = await self._run_steps(project, self._cancel_event)
        except BaseException:
            self.state = BuildState.FAILED
            self.progress = 1.0
            raise
        finally:
            self._cancel_event = None

        self._finish(result, time.monotonic() - started)
        return result

    def stop(self) -> bool:
        """Terminate the running build's current process.

        Returns ``False`` if nothing is running.
        """
        if not self.is_running or self._cancel_event is None:
            return False
        self._cancel_event.set()
        self.log.warning("Compilation stopped by user; terminating the build process")
        return True

    def repair(self, project: Project) -> RepairReport:
        """Explicitly repair the project's Makefile, logging what changed."""
        return self._apply_repair(project.path / self.config.build.makefile_name)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _run_steps(self, project: Project, cancel_event: asyncio.Event) -> BuildResult:
        build = self.config.build
        self.log.info(f"Starting compilation for {project.name}...")
        self.log.info(f"Project path: {project.path}")

        # 1. Structure check
        self.log.output("Checking project structure...")
        self.progress = 0.1
        makefile = project.path / build.makefile_name
        if not makefile.is_file():
            self.log.error(f"Error: {build.makefile_name} not found at {makefile}")
            return BuildResult(success=False, project=project)

        # 2. Descriptor repair
        if build.repair_makefile:
            self._apply_repair(makefile)

        # 3. Output directory
        packages_dir = project.path / build.packages_dir
        if not packages_dir.is_dir():
            try:
                packages_dir.mkdir(parents=True, exist_ok=True)
                self.log.output(f"Created {build.packages_dir} directory")
            except OSError as exc:
                self.log.warning(
                    f"Warning: Could not create {build.packages_dir} directory: {exc}"
                )

        # 4. Clean
        if build.clean_before_build:
            self.log.output("Cleaning previous build...")
            self.progress = 0.2
            clean = await self.runner.execute(
                build.make_binary,
                ["clean"],
                working_directory=project.path,
                cancel_event=cancel_event,
            )
            self._log_clean(clean)
            if clean.cancelled:
                return BuildResult(success=False, project=project, cancelled=True)

        # 5. Package
        self.log.output("Building tweak...")
        self.progress = 0.4
        make = await self.runner.execute(
            build.make_binary,
            ["package"],
            working_directory=project.path,
            cancel_event=cancel_event,
        )
        if make.cancelled:
            self._log_streams(make, succeeded=False)
            return BuildResult(success=False, project=project, cancelled=True)

        succeeded = make.exit_code == 0
        self._log_streams(make, succeeded=succeeded)
        self.progress = 0.8

        # 6. Artifact discovery
        package_path: Path | None = None
        if succeeded:
            self.log.output("Looking for generated package...")
            package_path = find_latest_package(packages_dir, build.package_extension)

        return BuildResult(success=succeeded, project=project, package_path=package_path)

    def _apply_repair(self, makefile: Path) -> RepairReport:
        report = repair_makefile(makefile)
        if report.detected:
            self.log.warning("Detected hardcoded Theos paths, fixing...")
        if report.error:
            self.log.warning(f"Could not fix Makefile: {report.error}")
        elif report.changed:
            self.log.success(
                f"Fixed Makefile paths ({len(report.commented_lines)} commented, "
                f"{len(report.rewritten_lines)} rewritten)"
            )
        return report

    def _log_clean(self, clean: ExecutionResult) -> None:
        for line in clean.stdout_lines():
            self.log.output(line)
        for line in clean.stderr_lines():
            self.log.warning(line)
        if clean.cancelled:
            return
        if clean.launch_failed:
            self.log.warning("Clean step could not be started; continuing")
        elif clean.exit_code != 0:
            self.log.output(f"Clean exited with code {clean.exit_code}; continuing")

    def _log_streams(self, result: ExecutionResult, succeeded: bool) -> None:
        """Log stdout as output, then stderr as warnings (success) or errors (failure)."""
        for line in result.stdout_lines():
            self.log.output(line)
        for line in result.stderr_lines():
            if succeeded:
                self.log.warning(line)
            else:
                self.log.error(line)

    def _finish(self, result: BuildResult, elapsed: float) -> None:
        self.progress = 1.0
        self.last_result = result
        self.last_package_path = result.package_path
        self.state = BuildState.SUCCEEDED if result.success else BuildState.FAILED

        if result.cancelled:
            self.log.warning(f"Compilation cancelled after {format_duration(elapsed)}")
        elif result.success:
            self.log.success(f"Compilation successful! ({format_duration(elapsed)})")
            if result.package_path is not None:
                self.log.success(f"Package created: {result.package_path.name}")
                self.log.info(f"Location: {result.package_path}")
            else:
                self.log.warning("Package may have been created but could not be located")
        else:
            self.log.error("Compilation failed")
            self.log.error("Check the log above for errors")
