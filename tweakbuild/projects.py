"""Tweak project scaffolding and metadata.

Every project lives in its own directory under the projects root::

    <root>/<uuid>/
        Makefile
        Tweak.x
        control
        <name>.plist
        packages/
        project.json

The build core only needs ``Makefile`` and ``packages/``; the rest is what a
fresh Theos tweak template contains, rendered from ``templates/tweak``.
"""

from __future__ import annotations

import re
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any

from jinja2 import TemplateError
from pydantic import ValidationError

from tweakbuild.archive import extract_archive
from tweakbuild.config import Config
from tweakbuild.models import Project
from tweakbuild.runner import ProcessRunner
from tweakbuild.templates import TemplateRenderer

_VALID_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.+-]*$")

TWEAK_TEMPLATE = "tweak"

TWEAK_DEFAULTS: dict[str, Any] = {
    "archs": "arm64",
    "target": "iphone:clang:14.5:latest",
    "frameworks": ["UIKit", "Foundation"],
    "version": "1.0.0",
    "author": "Unknown",
}


class ProjectError(Exception):
    """Raised when a project cannot be created, loaded, imported or deleted."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def read_control(path: Path) -> dict[str, str]:
    """Parse a Debian control file into ``{field: value}``.

    Continuation lines are appended to the previous field.  A missing file
    yields an empty dict.
    """
    if not path.is_file():
        return {}
    fields: dict[str, str] = {}
    last_key: str | None = None
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        if line[:1] in (" ", "\t") and last_key:
            fields[last_key] += "\n" + line.strip()
            continue
        key, sep, value = line.partition(":")
        if sep and key.strip():
            last_key = key.strip()
            fields[last_key] = value.strip()
    return fields


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ProjectStore:
    """Creates, lists, imports and deletes projects under a root directory."""

    def __init__(self, root: str | Path, renderer: TemplateRenderer | None = None):
        self.root = Path(root)
        self.renderer = renderer or TemplateRenderer()

    @classmethod
    def from_config(cls, config: Config) -> "ProjectStore":
        return cls(config.projects_dir)

    def create(self, name: str, bundle_id: str, target_app: str) -> Project:
        """Scaffold a new project and persist its ``project.json``.

        Raises:
            ProjectError: If the name is unusable or the files cannot be written.
        """
        if not _VALID_NAME.match(name):
            raise ProjectError(f"Invalid project name: {name!r}")
        if not bundle_id.strip():
            raise ProjectError("Bundle identifier must not be empty")

        project_id = uuid.uuid4()
        project = Project(
            id=project_id,
            name=name,
            bundle_id=bundle_id,
            target_app=target_app,
            path=self.root / str(project_id).upper(),
        )
        project_dir = project.path
        context = {**TWEAK_DEFAULTS, "name": name, "bundle_id": bundle_id, "target_app": target_app}
        try:
            (project_dir / "packages").mkdir(parents=True)
            self.renderer.render_tree(TWEAK_TEMPLATE, project_dir, context)
            self.save(project)
        except (OSError, TemplateError) as exc:
            shutil.rmtree(project_dir, ignore_errors=True)
            raise ProjectError(f"Could not create project {name}: {exc}", path=project_dir) from exc

        return project

    def save(self, project: Project) -> Path:
        project.metadata_path.write_text(project.to_json(), encoding="utf-8")
        return project.metadata_path

    def load(self, directory: Path) -> Project:
        """Load the project stored in *directory*.

        Raises:
            ProjectError: If the metadata is missing or malformed.
        """
        try:
            return Project.from_directory(directory)
        except (OSError, ValueError, ValidationError) as exc:
            raise ProjectError(f"Not a project directory: {directory} ({exc})", path=directory) from exc

    def load_all(self) -> list[Project]:
        """All valid projects under the root, sorted by name.

        Directories without readable metadata are skipped.
        """
        if not self.root.is_dir():
            return []
        projects: list[Project] = []
        for child in self.root.iterdir():
            if not child.is_dir():
                continue
            try:
                projects.append(self.load(child))
            except ProjectError:
                continue
        return sorted(projects, key=lambda p: p.name)

    def get(self, project_id: str | uuid.UUID) -> Project:
        """Find a project by id (full UUID or unique prefix) or by exact name."""
        needle = str(project_id).lower()
        matches = [
            p
            for p in self.load_all()
            if str(p.id).lower().startswith(needle) or p.name.lower() == needle
        ]
        if not matches:
            raise ProjectError(f"No project matches {project_id!r}")
        if len(matches) > 1:
            raise ProjectError(f"Ambiguous project reference {project_id!r}")
        return matches[0]

    def delete(self, project: Project) -> None:
        try:
            shutil.rmtree(project.path)
        except OSError as exc:
            raise ProjectError(f"Could not delete {project.name}: {exc}", path=project.path) from exc

    async def import_archive(self, archive: str | Path, runner: ProcessRunner) -> Project:
        """Extract a zipped tweak project and register it.

        The archive may hold the project files at its top level or inside a
        single folder.  Metadata is taken from an existing ``project.json`` or,
        failing that, from the ``control`` file.

        Raises:
            ProjectError: If extraction fails or no Makefile is found.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".import-", dir=str(self.root)))
        try:
            result = await extract_archive(runner, archive, staging)
            if result.exit_code != 0:
                raise ProjectError(
                    f"Could not extract {archive} (exit {result.exit_code}): {result.stderr.strip()}"
                )

            source = _locate_project_root(staging)
            if source is None:
                raise ProjectError(f"No Makefile found in {archive}")

            project_id = uuid.uuid4()
            project_dir = self.root / str(project_id).upper()
            shutil.move(str(source), str(project_dir))
            (project_dir / "packages").mkdir(exist_ok=True)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        try:
            project = self.load(project_dir)
        except ProjectError:
            control = read_control(project_dir / "control")
            raw_name = control.get("Name") or Path(archive).stem
            name = re.sub(r"[^A-Za-z0-9_.+-]", "", raw_name) or "Imported"
            project = Project(
                id=project_id,
                name=name,
                bundle_id=control.get("Package", f"com.example.{name.lower()}"),
                path=project_dir,
            )
        self.save(project)
        return project


def _locate_project_root(staging: Path) -> Path | None:
    if (staging / "Makefile").is_file():
        return staging
    children = [c for c in staging.iterdir() if not c.name.startswith((".", "__MACOSX"))]
    dirs = [c for c in children if c.is_dir()]
    if len(dirs) == 1 and (dirs[0] / "Makefile").is_file():
        return dirs[0]
    return None
