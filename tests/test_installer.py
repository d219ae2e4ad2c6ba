"""Tests for InstallRunner (tweakbuild.installer).

Tests cover:
- Successful install followed by an icon cache refresh
- Failed install (non-existent package) skipping the cache refresh
- Cache refresh failure not downgrading a successful install
- Single-flight guard
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tweakbuild.installer import InstallRunner
from tweakbuild.models import ExecutionResult, LogLevel


@pytest.fixture
def cache_marker(tmp_path: Path) -> Path:
    return tmp_path / "uicache-called"


@pytest.fixture
def stub_dpkg(make_stub) -> Path:
    """``dpkg -i`` that fails like the real one when the archive is missing."""
    return make_stub(
        "dpkg",
        """
        if [ ! -f "$2" ]; then
          echo "dpkg: error: cannot access archive '$2': No such file or directory" >&2
          exit 2
        fi
        echo "Selecting previously unselected package."
        echo "Unpacking $2 ..."
        """,
    )


@pytest.fixture
def stub_uicache(make_stub, cache_marker: Path) -> Path:
    return make_stub("uicache", f"echo \"$@\" > '{cache_marker}'")


class TestInstallWithStubs:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_package_fails_and_skips_refresh(
        self, config, runner, stub_dpkg, stub_uicache, cache_marker: Path, tmp_path: Path
    ):
        installer = InstallRunner(config, runner=runner)
        result = await installer.install(tmp_path / "nope.deb")

        assert result is not None
        assert not result.success
        assert result.exit_code != 0
        assert result.cache_refreshed is None
        assert not cache_marker.exists()
        errors = installer.log.messages(LogLevel.ERROR)
        assert "Installation failed with exit code 2" in errors
        assert any("cannot access archive" in m for m in errors)
        assert "Cache refresh skipped" in installer.log.messages()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_successful_install_refreshes_cache(
        self, config, runner, stub_dpkg, stub_uicache, cache_marker: Path, tmp_path: Path
    ):
        package = tmp_path / "com.example.sample_1.0.0_iphoneos-arm.deb"
        package.write_bytes(b"!<arch>\n")
        installer = InstallRunner(config, runner=runner)
        result = await installer.install(package)

        assert result.success
        assert result.exit_code == 0
        assert result.cache_refreshed is True
        assert cache_marker.read_text().strip() == "-a"
        assert installer.last_result is result
        assert "Installation successful!" in installer.log.messages(LogLevel.SUCCESS)
        assert "Done! Respring may be required." in installer.log.messages(LogLevel.SUCCESS)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_dpkg_is_a_launch_failure(self, config, runner, tmp_path: Path):
        config.install.dpkg_binary = "no-such-dpkg-for-tweakbuild"
        installer = InstallRunner(config, runner=runner)
        result = await installer.install(tmp_path / "pkg.deb")
        assert not result.success
        assert result.exit_code == -1
        assert result.cache_refreshed is None


class TestInstallWithMockRunner:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_install_successful(self, config, mock_runner):
        mock_runner.execute.side_effect = [
            ExecutionResult(exit_code=0, stdout="Setting up com.example.sample"),
            ExecutionResult(exit_code=1, stderr="uicache: permission denied"),
        ]
        installer = InstallRunner(config, runner=mock_runner)
        result = await installer.install("/tmp/pkg.deb")

        assert result.success
        assert result.cache_refreshed is False
        assert "uicache: permission denied" in installer.log.messages(LogLevel.WARNING)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_commands_and_arguments(self, config, mock_runner):
        installer = InstallRunner(config, runner=mock_runner)
        await installer.install("/tmp/pkg.deb")

        calls = [c.args for c in mock_runner.execute.call_args_list]
        assert calls == [("dpkg", ["-i", "/tmp/pkg.deb"]), ("uicache", ["-a"])]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_install_while_running_is_ignored(self, config, mock_runner):
        gate = asyncio.Event()

        async def slow_execute(*args, **kwargs):
            await gate.wait()
            return ExecutionResult(exit_code=0)

        mock_runner.execute.side_effect = slow_execute
        installer = InstallRunner(config, runner=mock_runner)

        first = asyncio.create_task(installer.install("/tmp/a.deb"))
        await asyncio.sleep(0)
        assert installer.is_installing
        assert await installer.install("/tmp/b.deb") is None

        gate.set()
        result = await first
        assert result.package_path == Path("/tmp/a.deb")
        assert not installer.is_installing
