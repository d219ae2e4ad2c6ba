"""External process execution under a controlled identity and environment.

:class:`ProcessRunner` is the single place where tweakbuild spawns children.
It is a total function over its inputs: pipe or spawn failures, timeouts and
cancellations all come back as an :class:`~tweakbuild.models.ExecutionResult`
instead of an exception, so callers only ever branch on the exit code and
the captured text.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from tweakbuild.config import Config, RunnerConfig, ToolchainConfig
from tweakbuild.models import LAUNCH_FAILED, ExecutionResult

from .environment import build_environment, resolve_command, wrap_in_directory
from .identity import Identity


@dataclass(frozen=True)
class ExecutionRequest:
    """One command to run: what, with which arguments, where and as whom."""

    command: str
    arguments: tuple[str, ...] = field(default_factory=tuple)
    working_directory: str | Path | None = None
    identity: Identity | None = None


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _describe(exc: BaseException) -> str:
    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc) or exc.__class__.__name__


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    """Deliver *sig* to the child's whole process group."""
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, sig)


class ProcessRunner:
    """Runs external commands and captures their output in full.

    Each child gets a freshly built environment, runs in its own session (so
    the whole process group can be signalled), and executes as the configured
    non-privileged identity unless a call overrides it.
    """

    def __init__(
        self,
        runner_config: RunnerConfig | None = None,
        toolchain_config: ToolchainConfig | None = None,
        identity: Identity | None = None,
    ) -> None:
        self.config = runner_config or RunnerConfig()
        self.toolchain = toolchain_config or ToolchainConfig()
        self.identity = identity or Identity.from_config(self.config)

    @classmethod
    def from_config(cls, config: Config, identity: Identity | None = None) -> "ProcessRunner":
        return cls(config.runner, config.toolchain, identity=identity)

    def environment_for(self, identity: Identity) -> dict[str, str]:
        return build_environment(self.config, self.toolchain, identity)

    async def run(
        self,
        request: ExecutionRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """Execute an :class:`ExecutionRequest`."""
        return await self.execute(
            request.command,
            request.arguments,
            working_directory=request.working_directory,
            identity=request.identity,
            cancel_event=cancel_event,
        )

    async def execute(
        self,
        command: str,
        arguments: Sequence[str] = (),
        working_directory: str | Path | None = None,
        identity: Identity | None = None,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        """Run *command* to completion and return its exit code and output.

        With a *working_directory* the command is wrapped in
        ``<shell> -c "cd '<dir>' && '<command>' '<arg>' ..."``; otherwise it is
        launched directly.  Bare names are resolved against the configured
        search paths.

        Args:
            command: Executable name or path.
            arguments: Ordered argument list.
            working_directory: Directory to run in; must exist.
            identity: Identity to run as (defaults to the runner's).
            cancel_event: When set, the child's process group is terminated
                and the result is marked ``cancelled``.
            timeout: Seconds before the child is killed (defaults to the
                configured timeout; ``None`` waits forever).

        Returns:
            An :class:`ExecutionResult`; ``exit_code == -1`` means the
            process could not be launched.
        """
        identity = identity or self.identity
        timeout = timeout if timeout is not None else self.config.timeout
        arguments = list(arguments)

        if cancel_event is not None and cancel_event.is_set():
            return ExecutionResult(
                exit_code=LAUNCH_FAILED, stderr="Cancelled before launch", cancelled=True
            )

        if working_directory is not None:
            workdir = Path(working_directory)
            if not workdir.is_dir():
                return ExecutionResult(
                    exit_code=LAUNCH_FAILED,
                    stderr=f"Working directory not found: {workdir}",
                )
            program = self.config.shell
            argv = ["-c", wrap_in_directory(command, arguments, str(workdir))]
        else:
            program = command
            argv = arguments

        executable = resolve_command(program, self.config.search_paths)

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.environment_for(identity),
                start_new_session=True,
                **identity.spawn_options(),
            )
        except (OSError, ValueError, subprocess.SubprocessError) as exc:
            return ExecutionResult(
                exit_code=LAUNCH_FAILED,
                stderr=f"Failed to spawn process: {_describe(exc)}",
            )

        try:
            stdout_bytes, stderr_bytes, cancelled, timed_out = await self._collect(
                process, cancel_event, timeout
            )
        finally:
            if process.returncode is None:
                _signal_group(process, signal.SIGKILL)
                await process.wait()

        stdout = _decode(stdout_bytes)
        stderr = _decode(stderr_bytes)

        if timed_out:
            shown = " ".join([command, *arguments])
            message = f"Command timed out after {timeout}s: {shown}"
            return ExecutionResult(
                exit_code=LAUNCH_FAILED,
                stdout=stdout,
                stderr=f"{stderr}\n{message}" if stderr else message,
                timed_out=True,
            )

        exit_code = process.returncode if process.returncode is not None else LAUNCH_FAILED
        return ExecutionResult(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            cancelled=cancelled,
        )

    async def shell(
        self,
        command_line: str,
        working_directory: str | Path | None = None,
        identity: Identity | None = None,
    ) -> int:
        """Run *command_line* through the shell and return only its exit code."""
        result = await self.execute(
            self.config.shell,
            ["-c", command_line],
            working_directory=working_directory,
            identity=identity,
        )
        return result.exit_code

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _collect(
        self,
        process: asyncio.subprocess.Process,
        cancel_event: asyncio.Event | None,
        timeout: float | None,
    ) -> tuple[bytes, bytes, bool, bool]:
        """Drain stdout and stderr concurrently until EOF, honouring cancel/timeout.

        Returns ``(stdout, stderr, cancelled, timed_out)``.
        """
        communicate = asyncio.ensure_future(process.communicate())
        waiters: set[asyncio.Future] = {communicate}
        cancel_wait: asyncio.Future | None = None
        if cancel_event is not None:
            cancel_wait = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if communicate in done:
                stdout, stderr = communicate.result()
                return stdout, stderr, False, False

            cancelled = cancel_wait is not None and cancel_wait in done
            await self._terminate(process)
            stdout, stderr = await communicate
            return stdout, stderr, cancelled, not cancelled
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()
            if not communicate.done():
                communicate.cancel()

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM the process group, escalating to SIGKILL after the grace period."""
        _signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.config.kill_grace_seconds)
        except asyncio.TimeoutError:
            _signal_group(process, signal.SIGKILL)
            await process.wait()
