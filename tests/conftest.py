"""Shared pytest fixtures for the tweakbuild test suite.

Provides reusable fixtures for:
- A stub toolchain directory holding fake ``make``/``dpkg``/``uicache`` scripts
- Configuration wired to the stub toolchain and the current user
- A process runner that spawns real children as the current user
- A minimal tweak project on disk
- Mock runners for tests that must not spawn anything
"""

from __future__ import annotations

import os
import stat
import textwrap
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from tweakbuild.config import Config, RunnerConfig, ToolchainConfig
from tweakbuild.models import ExecutionResult, Project
from tweakbuild.runner import Identity, ProcessRunner


def write_stub(directory: Path, name: str, body: str) -> Path:
    """Write an executable ``/bin/sh`` script called *name* into *directory*."""
    script = directory / name
    script.write_text("#!/bin/sh\n" + textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


# ---------------------------------------------------------------------------
# Stub toolchain
# ---------------------------------------------------------------------------

@pytest.fixture
def stub_bin(tmp_path: Path) -> Path:
    """Empty directory searched before the system binaries."""
    directory = tmp_path / "stub-bin"
    directory.mkdir()
    return directory


@pytest.fixture
def make_stub(stub_bin: Path) -> Callable[[str, str], Path]:
    """Factory writing a stub executable into :func:`stub_bin`.

    Usage:
        def test_build(make_stub):
            make_stub("make", 'echo "make $1"')
    """
    def factory(name: str, body: str) -> Path:
        return write_stub(stub_bin, name, body)

    return factory


@pytest.fixture
def successful_make(make_stub) -> Path:
    """``make`` that cleans quietly and drops ``packages/pkg_v1.deb`` on package."""
    return make_stub(
        "make",
        """
        case "$1" in
          clean) echo "==> Cleaning..." ;;
          package)
            mkdir -p packages
            echo "deb" > packages/pkg_v1.deb
            echo "==> Building package pkg_v1.deb"
            ;;
        esac
        """,
    )


# ---------------------------------------------------------------------------
# Configuration & runner
# ---------------------------------------------------------------------------

@pytest.fixture
def runner_config(tmp_path: Path, stub_bin: Path) -> RunnerConfig:
    """Runner settings for the current user with the stub toolchain first on PATH."""
    home = tmp_path / "home"
    home.mkdir(exist_ok=True)
    return RunnerConfig(
        search_paths=[str(stub_bin), "/usr/bin", "/bin"],
        extra_search_paths=[],
        shell="sh",
        uid=os.geteuid(),
        gid=os.getegid(),
        home_dir=str(home),
        temp_dir=str(tmp_path),
        kill_grace_seconds=1.0,
    )


@pytest.fixture
def config(tmp_path: Path, runner_config: RunnerConfig) -> Config:
    """Full configuration rooted in ``tmp_path``."""
    return Config(
        projects_dir=tmp_path / "projects",
        runner=runner_config,
        toolchain=ToolchainConfig(theos_path=str(tmp_path / "theos")),
    )


@pytest.fixture
def runner(config: Config) -> ProcessRunner:
    """Process runner that spawns children as the current user."""
    return ProcessRunner.from_config(config, identity=Identity.current())


@pytest.fixture
def mock_runner() -> MagicMock:
    """Runner double whose ``execute`` returns a successful empty result.

    Set ``mock_runner.execute.side_effect`` to script a sequence of results.
    """
    fake = MagicMock(spec=ProcessRunner)
    fake.execute = AsyncMock(return_value=ExecutionResult(exit_code=0))
    return fake


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@pytest.fixture
def project(config: Config) -> Project:
    """A project directory containing only a Makefile."""
    project_dir = config.projects_dir / "SAMPLE-PROJECT"
    project_dir.mkdir(parents=True)
    (project_dir / "Makefile").write_text(
        textwrap.dedent(
            """\
            include $(THEOS)/makefiles/common.mk

            TWEAK_NAME = Sample
            Sample_FILES = Tweak.x

            include $(THEOS_MAKE_PATH)/tweak.mk
            """
        ),
        encoding="utf-8",
    )
    return Project(name="Sample", bundle_id="com.example.sample", path=project_dir)
