"""Tests for builds/fingerprint.py module.

Tests file listing, tool version probing and deterministic fingerprints.
"""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from appbuild.builds.fingerprint import (
    BuildInputs,
    FingerprintError,
    compute_fingerprint,
    create_build_inputs,
    create_file_listing,
    detect_tool_version,
    parse_tool_version,
)
from appbuild.builds.runner import BuildExecutionError, Execution
from appbuild.types import FileEntry


def version_executor(output: str) -> MagicMock:
    """Create an executor that prints ``output``."""

    def execute(execution: Execution) -> None:
        for line in output.splitlines():
            execution.output(line)

    executor = MagicMock()
    executor.execute.side_effect = execute
    return executor


class TestCreateFileListing:
    """Tests for create_file_listing function."""

    def test_lists_files_sorted(self, tmp_path: Path):
        """Files are listed recursively, sorted, without directories."""
        (tmp_path / "src" / "main").mkdir(parents=True)
        (tmp_path / "src" / "main" / "App.java").write_text("class App {}")
        (tmp_path / "pom.xml").write_text("<project/>")

        listing = create_file_listing(tmp_path)

        assert [e.path for e in listing] == [
            str(tmp_path / "pom.xml"),
            str(tmp_path / "src" / "main" / "App.java"),
        ]
        assert listing[0].size == len("<project/>")
        assert listing[0].mtime == (tmp_path / "pom.xml").stat().st_mtime

    def test_symlinks_are_listed_not_followed(self, tmp_path: Path):
        (tmp_path / "real").mkdir()
        (tmp_path / "real" / "file.txt").write_text("x")
        os.symlink(tmp_path / "real", tmp_path / "link")

        paths = [e.path for e in create_file_listing(tmp_path)]

        assert str(tmp_path / "link") in paths
        assert str(tmp_path / "link" / "file.txt") not in paths

    def test_empty_directory(self, tmp_path: Path):
        assert create_file_listing(tmp_path) == []

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(FingerprintError) as exc_info:
            create_file_listing(tmp_path / "missing")
        assert exc_info.value.code == "fingerprint_error"

    def test_mtime_changes_listing(self, tmp_path: Path):
        path = tmp_path / "pom.xml"
        path.write_text("<project/>")
        before = create_file_listing(tmp_path)
        os.utime(path, (0, 12345))
        assert create_file_listing(tmp_path) != before


class TestParseToolVersion:
    """Tests for parse_tool_version function."""

    @pytest.mark.parametrize(
        ("output", "expected"),
        [
            ("javac 17.0.2\n", "17.0.2"),
            ("17.0.2", "17.0.2"),
            ("openjdk version 17", "unknown"),
        ],
    )
    def test_fields(self, output: str, expected: str):
        assert parse_tool_version(output) == expected


class TestProbeToolVersion:
    """Tests for detect_tool_version function."""

    def test_no_command(self):
        executor = MagicMock()
        assert detect_tool_version(executor, []) == "unknown"
        executor.execute.assert_not_called()

    def test_parses_output(self):
        executor = version_executor("javac 21.0.1")
        assert detect_tool_version(executor, ["javac", "-version"]) == "21.0.1"

        execution = executor.execute.call_args[0][0]
        assert execution.command == "javac"
        assert execution.args == ["-version"]

    def test_failure(self):
        executor = MagicMock()
        executor.execute.side_effect = BuildExecutionError("exit 1", exit_code=1)

        with pytest.raises(FingerprintError, match="error executing 'javac -version'"):
            detect_tool_version(executor, ["javac", "-version"])


class TestBuildInputs:
    """Tests for BuildInputs and create_build_inputs."""

    def test_to_dict_keys(self):
        inputs = BuildInputs(
            files=[FileEntry(path="/w/a", size=1, mtime=2.0)],
            arguments=["package"],
            artifact_pattern="target/*.jar",
            tool_version="17",
            extra={"cnb-api": "0.7"},
        )
        assert inputs.to_dict() == {
            "files": [{"path": "/w/a", "size": 1, "mtime": 2.0}],
            "arguments": ["package"],
            "artifact-pattern": "target/*.jar",
            "tool-version": "17",
            "cnb-api": "0.7",
        }

    def test_create_build_inputs(self, tmp_path: Path):
        (tmp_path / "pom.xml").write_text("<project/>")
        inputs = create_build_inputs(tmp_path, ["package"], "*", "unknown", {"x": 1})
        assert len(inputs.files) == 1
        assert inputs.extra == {"x": 1}


class TestComputeFingerprint:
    """Tests for compute_fingerprint function."""

    def test_format(self):
        fingerprint = compute_fingerprint({"arguments": []})
        assert fingerprint.startswith("sha256:")
        assert len(fingerprint) == len("sha256:") + 64

    def test_deterministic_regardless_of_key_order(self):
        a = compute_fingerprint({"arguments": ["package"], "artifact-pattern": "*"})
        b = compute_fingerprint({"artifact-pattern": "*", "arguments": ["package"]})
        assert a == b

    def test_changes_with_inputs(self):
        a = compute_fingerprint({"arguments": ["package"]})
        b = compute_fingerprint({"arguments": ["package", "-DskipTests"]})
        assert a != b
