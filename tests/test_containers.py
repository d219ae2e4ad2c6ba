"""Unit tests for projects-root resolution (tweakbuild.containers)."""

from __future__ import annotations

import os
import plistlib
from pathlib import Path

import pytest

from tweakbuild.config import Config
from tweakbuild.containers import (
    METADATA_FILENAME,
    PROJECTS_FOLDER,
    AppContainerResolver,
    ContainerResolver,
    NullContainerResolver,
    resolve_writable_root,
    select_container_resolver,
)

BUNDLE_ID = "com.tweakcompiler.TweakCompiler"


@pytest.fixture
def containers_root(tmp_path: Path) -> Path:
    """Three app containers; only ``C2`` belongs to the compiler app."""
    root = tmp_path / "Application"
    for name, identifier in (("C1", "com.other.app"), ("C2", BUNDLE_ID), ("C3", None)):
        container = root / name
        container.mkdir(parents=True)
        if identifier is not None:
            with (container / METADATA_FILENAME).open("wb") as handle:
                plistlib.dump({"MCMMetadataIdentifier": identifier}, handle)
    (root / "C3" / METADATA_FILENAME).write_bytes(b"not a plist")
    return root


class TestAppContainerResolver:
    @pytest.mark.unit
    def test_finds_container_by_identifier(self, containers_root: Path):
        resolver = AppContainerResolver(containers_root)
        assert resolver.resolve(BUNDLE_ID) == containers_root / "C2"

    @pytest.mark.unit
    def test_unknown_bundle(self, containers_root: Path):
        assert AppContainerResolver(containers_root).resolve("com.nobody.app") is None

    @pytest.mark.unit
    def test_missing_root(self, tmp_path: Path):
        assert AppContainerResolver(tmp_path / "missing").resolve(BUNDLE_ID) is None

    @pytest.mark.unit
    def test_satisfies_protocol(self, containers_root: Path):
        assert isinstance(AppContainerResolver(containers_root), ContainerResolver)
        assert isinstance(NullContainerResolver(), ContainerResolver)


class TestSelectResolver:
    @pytest.mark.unit
    def test_existing_root_selects_app_resolver(self, containers_root: Path):
        resolver = select_container_resolver(Config(containers_root=containers_root))
        assert isinstance(resolver, AppContainerResolver)

    @pytest.mark.unit
    def test_missing_root_selects_null_resolver(self, tmp_path: Path):
        resolver = select_container_resolver(Config(containers_root=tmp_path / "missing"))
        assert isinstance(resolver, NullContainerResolver)

    @pytest.mark.unit
    def test_unset_root_selects_null_resolver(self):
        assert isinstance(select_container_resolver(Config()), NullContainerResolver)


class TestResolveWritableRoot:
    @pytest.mark.unit
    def test_prefers_container_documents(self, containers_root: Path, tmp_path: Path):
        root = resolve_writable_root(
            AppContainerResolver(containers_root), BUNDLE_ID, fallbacks=[tmp_path / "cache"]
        )
        assert root == containers_root / "C2" / "Documents" / PROJECTS_FOLDER
        assert root.is_dir()
        assert not (root / ".permcheck").exists()

    @pytest.mark.unit
    def test_falls_back_in_order(self, tmp_path: Path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        root = resolve_writable_root(NullContainerResolver(), BUNDLE_ID, fallbacks=[first, second])
        assert root == first / PROJECTS_FOLDER

    @pytest.mark.unit
    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_skips_unwritable_candidates(self, tmp_path: Path):
        locked = tmp_path / "locked"
        locked.mkdir()
        locked.chmod(0o555)
        open_dir = tmp_path / "open"
        try:
            root = resolve_writable_root(
                NullContainerResolver(), BUNDLE_ID, fallbacks=[locked, open_dir]
            )
        finally:
            locked.chmod(0o755)
        assert root == open_dir / PROJECTS_FOLDER
