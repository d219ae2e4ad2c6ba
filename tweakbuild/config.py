"""tweakbuild configuration.

Centralised, typed configuration for the runner, build pipeline and installer.
All settings use Pydantic v2 models so they can be validated at construction
time and serialised to/from JSON or environment variables without
boiler-plate.  A ``Config`` is resolved once at startup and passed explicitly
into every component.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class RunnerConfig(BaseModel):
    """How child processes are located, launched and who they run as."""

    search_paths: list[str] = Field(
        default=["/var/jb/usr/bin", "/var/jb/bin", "/usr/bin", "/bin"],
        description="Ordered candidate directories for bare command names; also the child PATH",
    )
    extra_search_paths: list[str] = Field(
        default=["/usr/sbin", "/sbin"],
        description="Appended to the child PATH but never probed for resolution",
    )
    shell: str = Field(default="bash", description="Shell used for working-directory wrapping")
    uid: int = Field(default=501, ge=0, description="User id the child runs as")
    gid: int | None = Field(default=None, ge=0, description="Group id (defaults to uid)")
    home_dir: str | None = Field(
        default=None, description="HOME for the child (defaults to the target user's home)"
    )
    temp_dir: str = Field(default_factory=tempfile.gettempdir)
    timeout: float | None = Field(
        default=None, gt=0, description="Per-process timeout in seconds (None = unlimited)"
    )
    kill_grace_seconds: float = Field(
        default=5.0, gt=0, description="Wait between SIGTERM and SIGKILL on cancel/timeout"
    )


class ToolchainConfig(BaseModel):
    """Theos toolchain locations and device defaults."""

    theos_path: str = Field(default="/var/theos")
    device_ip: str = Field(default="localhost")
    device_port: int = Field(default=22, ge=1, le=65535)
    package_scheme: str = Field(default="rootless")


class BuildConfig(BaseModel):
    """Tuning knobs for the build pipeline."""

    make_binary: str = Field(default="make")
    makefile_name: str = Field(default="Makefile")
    packages_dir: str = Field(default="packages")
    package_extension: str = Field(default=".deb")
    clean_before_build: bool = Field(
        default=True, description="Run 'make clean' before 'make package'"
    )
    repair_makefile: bool = Field(
        default=True,
        description="Comment out hardcoded THEOS definitions before each build",
    )


class InstallConfig(BaseModel):
    """Package installer and post-install cache refresh."""

    dpkg_binary: str = Field(default="dpkg")
    cache_refresh_binary: str = Field(default="uicache")
    cache_refresh_args: list[str] = Field(default=["-a"])
    unzip_binary: str = Field(default="unzip")


class Config(BaseModel):
    """Global tweakbuild configuration.

    Holds every tuneable parameter used by the core.  Instances are typically
    created once by the CLI entry point (or a UI host) and then passed through
    the rest of the system.
    """

    projects_dir: Path = Field(default=Path("./TweakProjects"))
    bundle_id: str = Field(default="com.tweakcompiler.TweakCompiler")
    containers_root: Path | None = Field(
        default=None,
        description="App-data containers root scanned for this bundle's container",
    )
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    install: InstallConfig = Field(default_factory=InstallConfig)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            TWEAK_PROJECTS_DIR, TWEAK_CONTAINERS_ROOT, TWEAK_UID, TWEAK_GID,
            TWEAK_SEARCH_PATHS (colon-separated), TWEAK_SHELL, TWEAK_TIMEOUT,
            TWEAK_THEOS, TWEAK_PACKAGE_SCHEME,
            TWEAK_CLEAN_BEFORE_BUILD, TWEAK_REPAIR_MAKEFILE.
        """
        runner_kwargs: dict[str, Any] = {}
        if os.environ.get("TWEAK_UID"):
            runner_kwargs["uid"] = int(os.environ["TWEAK_UID"])
        if os.environ.get("TWEAK_GID"):
            runner_kwargs["gid"] = int(os.environ["TWEAK_GID"])
        if os.environ.get("TWEAK_SEARCH_PATHS"):
            runner_kwargs["search_paths"] = [
                p for p in os.environ["TWEAK_SEARCH_PATHS"].split(":") if p
            ]
        if os.environ.get("TWEAK_SHELL"):
            runner_kwargs["shell"] = os.environ["TWEAK_SHELL"]
        if os.environ.get("TWEAK_TIMEOUT"):
            runner_kwargs["timeout"] = float(os.environ["TWEAK_TIMEOUT"])

        toolchain_kwargs: dict[str, Any] = {}
        if os.environ.get("TWEAK_THEOS"):
            toolchain_kwargs["theos_path"] = os.environ["TWEAK_THEOS"]
        if os.environ.get("TWEAK_PACKAGE_SCHEME"):
            toolchain_kwargs["package_scheme"] = os.environ["TWEAK_PACKAGE_SCHEME"]

        build_kwargs: dict[str, Any] = {}
        if os.environ.get("TWEAK_CLEAN_BEFORE_BUILD"):
            build_kwargs["clean_before_build"] = _env_flag("TWEAK_CLEAN_BEFORE_BUILD")
        if os.environ.get("TWEAK_REPAIR_MAKEFILE"):
            build_kwargs["repair_makefile"] = _env_flag("TWEAK_REPAIR_MAKEFILE")

        containers_root = os.environ.get("TWEAK_CONTAINERS_ROOT")

        return cls(
            projects_dir=Path(os.environ.get("TWEAK_PROJECTS_DIR", "./TweakProjects")),
            containers_root=Path(containers_root) if containers_root else None,
            runner=RunnerConfig(**runner_kwargs),
            toolchain=ToolchainConfig(**toolchain_kwargs),
            build=BuildConfig(**build_kwargs),
        )


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")
