"""Smoke tests for the CLI.

These tests verify basic CLI functionality against temporary workspaces
and a temporary SQLite database, without external build tools.
"""

import json
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from appbuild import __version__
from appbuild.cli import app

runner = CliRunner()

# Keeps log records out of the captured output of JSON commands
QUIET = ["--log-level", "CRITICAL"]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every persistent path at a temporary directory."""
    monkeypatch.setenv("APPBUILD_DB_URL", f"sqlite:///{tmp_path / 'db.sqlite'}")
    monkeypatch.setenv("APPBUILD_CACHE_DIR", str(tmp_path / "layers" / "application"))
    monkeypatch.setenv("APPBUILD_SBOM_DIR", str(tmp_path / "sbom"))
    for key in ("BP_BUILT_ARTIFACT", "BP_BUILT_MODULE", "BP_BUILD_ARGUMENTS"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "cache its output" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self) -> None:
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Paths:" in result.stdout
        assert "Cache directory" in result.stdout
        assert "Database URL" in result.stdout
        assert "$BP_BUILT_ARTIFACT: '*' (default)" in result.stdout

    def test_config_shows_set_keys(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BP_BUILT_ARTIFACT", "target/*.jar")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "$BP_BUILT_ARTIFACT: 'target/*.jar' (set)" in result.stdout

    def test_config_json(self, isolated_settings: Path) -> None:
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0

        data = json.loads(result.stdout)
        assert data["cache_dir"] == str(isolated_settings / "layers" / "application")
        assert data["artifact_key"] == "BP_BUILT_ARTIFACT"
        assert data["provenance_disabled"] is False


class TestCLIResolve:
    """Test CLI resolve command."""

    def test_resolve_single(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "app" / "target").mkdir(parents=True)
        (tmp_path / "app" / "target" / "app.jar").write_bytes(b"jar")
        monkeypatch.setenv("BP_BUILT_ARTIFACT", "target/*.jar")

        result = runner.invoke(app, [*QUIET, "resolve", str(tmp_path / "app"), "--json"])
        assert result.exit_code == 0

        data = json.loads(result.stdout)
        assert data["pattern"] == "target/*.jar"
        assert data["artifacts"] == [str(tmp_path / "app" / "target" / "app.jar")]

    def test_resolve_many(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        root = tmp_path / "app"
        (root / "lib").mkdir(parents=True)
        (root / "app.jar").write_bytes(b"jar")
        monkeypatch.setenv("BP_BUILT_ARTIFACT", "app.jar lib")

        result = runner.invoke(app, [*QUIET, "resolve", str(root), "--many"])
        assert result.exit_code == 0
        assert str(root / "app.jar") in result.stdout
        assert str(root / "lib") in result.stdout

    def test_resolve_ambiguous(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        root = tmp_path / "app"
        root.mkdir()
        (root / "a.jar").write_bytes(b"a")
        (root / "b.jar").write_bytes(b"b")
        monkeypatch.setenv("BP_BUILT_ARTIFACT", "*.jar")

        result = runner.invoke(app, [*QUIET, "resolve", str(root), "--json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["error"] == "resolution_ambiguous"

    def test_unknown_detector(self, tmp_path: Path) -> None:
        result = runner.invoke(app, [*QUIET, "resolve", str(tmp_path), "-d", "magic"])
        assert result.exit_code == 1


class TestCLIBuild:
    """Test CLI build command."""

    def test_failed_build_is_recorded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        workspace = tmp_path / "workspace"
        workspace.mkdir()
        (workspace / "pom.xml").write_text("<project/>")
        monkeypatch.setenv("BP_BUILD_ARGUMENTS", "-c 'import sys; sys.exit(3)'")

        result = runner.invoke(
            app, [*QUIET, "build", sys.executable, "--workspace", str(workspace), "--json"]
        )
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "build_failed"
        assert (workspace / "pom.xml").is_file()

        result = runner.invoke(app, [*QUIET, "runs", "list", "--json"])
        assert result.exit_code == 0

        runs = json.loads(result.stdout)
        assert len(runs) == 1
        assert runs[0]["status"] == "failed"
        assert runs[0]["state"] == "building"
        assert runs[0]["workspace"] == str(workspace)


class TestCLIRuns:
    """Test CLI runs subcommands."""

    def test_runs_list_empty(self) -> None:
        result = runner.invoke(app, ["runs", "list"])
        assert result.exit_code == 0
        assert "No run records found" in result.stdout

    def test_runs_list_empty_json(self) -> None:
        result = runner.invoke(app, [*QUIET, "runs", "list", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_runs_list_invalid_status(self) -> None:
        result = runner.invoke(app, ["runs", "list", "--status", "finished"])
        assert result.exit_code == 1
        assert "Invalid status" in result.stdout

    def test_runs_show_missing(self) -> None:
        result = runner.invoke(app, ["runs", "show", "42"])
        assert result.exit_code == 1
        assert "Run not found: 42" in result.stdout
