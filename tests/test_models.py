"""Unit tests for the value objects in tweakbuild.models."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from tweakbuild.models import (
    LAUNCH_FAILED,
    BuildOutcome,
    BuildResult,
    ExecutionResult,
    InstallResult,
    Project,
)


@pytest.fixture
def sample_project(tmp_path: Path) -> Project:
    return Project(name="Sample", bundle_id="com.example.sample", path=tmp_path)


class TestProject:
    @pytest.mark.unit
    def test_defaults(self, sample_project: Project, tmp_path: Path):
        assert sample_project.target_app == "com.apple.springboard"
        assert sample_project.makefile_path == tmp_path / "Makefile"
        assert sample_project.metadata_path == tmp_path / "project.json"

    @pytest.mark.unit
    def test_accepts_aliases(self, tmp_path: Path):
        project = Project.model_validate(
            {"name": "A", "bundleId": "com.example.a", "targetApp": "com.apple.mobilesafari", "path": tmp_path}
        )
        assert project.bundle_id == "com.example.a"
        assert project.target_app == "com.apple.mobilesafari"

    @pytest.mark.unit
    def test_empty_name_rejected(self, tmp_path: Path):
        with pytest.raises(ValidationError):
            Project(name="", bundle_id="com.example.a", path=tmp_path)

    @pytest.mark.unit
    def test_json_excludes_path(self, sample_project: Project):
        data = json.loads(sample_project.to_json())
        assert set(data) == {"id", "name", "bundleId", "targetApp", "createdDate"}

    @pytest.mark.unit
    def test_from_directory(self, sample_project: Project, tmp_path: Path):
        sample_project.metadata_path.write_text(sample_project.to_json())
        loaded = Project.from_directory(tmp_path)
        assert loaded == sample_project

    @pytest.mark.unit
    def test_from_directory_missing_metadata(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            Project.from_directory(tmp_path)


class TestExecutionResult:
    @pytest.mark.unit
    def test_lines_skip_blank(self):
        result = ExecutionResult(exit_code=0, stdout="a\n\n  \nb\n", stderr="\nwarn\n")
        assert result.stdout_lines() == ["a", "b"]
        assert result.stderr_lines() == ["warn"]

    @pytest.mark.unit
    def test_flags(self):
        assert ExecutionResult(exit_code=0).ok
        assert not ExecutionResult(exit_code=0, cancelled=True).ok
        assert ExecutionResult(exit_code=LAUNCH_FAILED).launch_failed
        assert not ExecutionResult(exit_code=LAUNCH_FAILED, timed_out=True).launch_failed

    @pytest.mark.unit
    def test_frozen(self):
        result = ExecutionResult(exit_code=0)
        with pytest.raises(ValidationError):
            result.exit_code = 1


class TestBuildResult:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("success", "package", "cancelled", "expected"),
        [
            (True, Path("/p/pkg.deb"), False, BuildOutcome.SUCCEEDED),
            (True, None, False, BuildOutcome.SUCCEEDED_WITHOUT_ARTIFACT),
            (False, None, False, BuildOutcome.FAILED),
            (False, None, True, BuildOutcome.CANCELLED),
        ],
    )
    def test_outcome(self, sample_project, success, package, cancelled, expected):
        result = BuildResult(
            success=success, project=sample_project, package_path=package, cancelled=cancelled
        )
        assert result.outcome is expected

    @pytest.mark.unit
    def test_outcome_is_serialised(self, sample_project):
        dumped = BuildResult(success=False, project=sample_project).model_dump(mode="json")
        assert dumped["outcome"] == "failed"


class TestInstallResult:
    @pytest.mark.unit
    def test_refresh_defaults_to_skipped(self):
        result = InstallResult(success=False, package_path=Path("/tmp/x.deb"), exit_code=2)
        assert result.cache_refreshed is None
