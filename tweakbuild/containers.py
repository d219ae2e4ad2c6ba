"""Resolution of the writable directory that holds tweak projects.

On device, an app's data lives in a container directory under
``/var/mobile/Containers/Data/Application/<UUID>``.  Each container carries a
metadata plist naming the bundle it belongs to.  :class:`AppContainerResolver`
finds the container for a bundle id by reading those plists.  Hosts without
such a layout get :class:`NullContainerResolver`.  The choice is made once, at
startup, by :func:`select_container_resolver`.
"""

from __future__ import annotations

import plistlib
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from tweakbuild.config import Config
from tweakbuild.utils import is_writable_dir

METADATA_FILENAME = ".com.apple.mobile_container_manager.metadata.plist"
METADATA_IDENTIFIER_KEY = "MCMMetadataIdentifier"
PROJECTS_FOLDER = "TweakProjects"


@runtime_checkable
class ContainerResolver(Protocol):
    """Finds the data container directory for a bundle id."""

    def resolve(self, bundle_id: str) -> Path | None:
        ...


class NullContainerResolver:
    """Resolver for hosts without app-data containers; never resolves."""

    def resolve(self, bundle_id: str) -> Path | None:
        return None


class AppContainerResolver:
    """Scans a containers root for the container whose metadata names the bundle."""

    def __init__(self, containers_root: Path) -> None:
        self.containers_root = Path(containers_root)

    @staticmethod
    def is_supported(containers_root: Path) -> bool:
        return Path(containers_root).is_dir()

    def resolve(self, bundle_id: str) -> Path | None:
        try:
            children = sorted(self.containers_root.iterdir())
        except OSError:
            return None

        for child in children:
            metadata = child / METADATA_FILENAME
            try:
                with metadata.open("rb") as handle:
                    data = plistlib.load(handle)
            except (OSError, plistlib.InvalidFileException, ValueError):
                continue
            if isinstance(data, dict) and data.get(METADATA_IDENTIFIER_KEY) == bundle_id:
                return child
        return None


def select_container_resolver(config: Config) -> ContainerResolver:
    """Pick the platform resolver if its containers root exists, else the null one."""
    root = config.containers_root
    if root is not None and AppContainerResolver.is_supported(root):
        return AppContainerResolver(root)
    return NullContainerResolver()


def default_fallback_bases() -> list[Path]:
    """Caches, temp and application-support style locations, in that order."""
    home = Path.home()
    return [
        home / ".cache",
        Path(tempfile.gettempdir()),
        home / "Library" / "Application Support",
    ]


def resolve_writable_root(
    resolver: ContainerResolver,
    bundle_id: str,
    fallbacks: list[Path] | None = None,
) -> Path:
    """Return the first ``TweakProjects`` directory that can be created and written.

    The bundle's container ``Documents`` folder is tried first, then each
    fallback base.  If nothing is writable the temp-dir location is returned
    anyway, so callers surface the write error themselves.
    """
    candidates: list[Path] = []
    container = resolver.resolve(bundle_id)
    if container is not None:
        candidates.append(container / "Documents" / PROJECTS_FOLDER)
    bases = fallbacks if fallbacks is not None else default_fallback_bases()
    candidates.extend(base / PROJECTS_FOLDER for base in bases)

    for candidate in candidates:
        if is_writable_dir(candidate):
            return candidate
    return Path(tempfile.gettempdir()) / PROJECTS_FOLDER
