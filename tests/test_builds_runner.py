"""Tests for builds/runner.py module.

Tests command execution with real short-lived subprocesses and build
execution with a mocked executor.
"""

import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from appbuild.builds.runner import (
    BuildExecutionError,
    Execution,
    SubprocessExecutor,
    log_output,
    run_build,
)


class TestExecution:
    """Tests for Execution dataclass."""

    def test_command_line_is_quoted(self):
        execution = Execution(command="mvn", args=["-Dname=my app", "package"])
        assert execution.command_line() == "mvn '-Dname=my app' package"


class TestSubprocessExecutor:
    """Tests for SubprocessExecutor."""

    def test_streams_output_lines(self, tmp_path: Path):
        """Combined stdout and stderr are forwarded line by line."""
        lines: list[str] = []
        script = "import sys; print('out'); print('err', file=sys.stderr)"
        SubprocessExecutor().execute(
            Execution(command=sys.executable, args=["-c", script], cwd=tmp_path, output=lines.append)
        )
        assert sorted(lines) == ["err", "out"]

    def test_runs_in_working_directory(self, tmp_path: Path):
        lines: list[str] = []
        SubprocessExecutor().execute(
            Execution(
                command=sys.executable,
                args=["-c", "import os; print(os.getcwd())"],
                cwd=tmp_path,
                output=lines.append,
            )
        )
        assert Path(lines[0]).resolve() == tmp_path.resolve()

    def test_environment_overrides(self, tmp_path: Path):
        lines: list[str] = []
        SubprocessExecutor().execute(
            Execution(
                command=sys.executable,
                args=["-c", "import os; print(os.environ['APPBUILD_TEST_VALUE'])"],
                env={"APPBUILD_TEST_VALUE": "42"},
                output=lines.append,
            )
        )
        assert lines == ["42"]

    def test_non_zero_exit(self):
        with pytest.raises(BuildExecutionError) as exc_info:
            SubprocessExecutor().execute(
                Execution(command=sys.executable, args=["-c", "import sys; sys.exit(3)"])
            )
        assert exc_info.value.exit_code == 3
        assert exc_info.value.code == "build_failed"

    def test_missing_command(self, tmp_path: Path):
        with pytest.raises(BuildExecutionError) as exc_info:
            SubprocessExecutor().execute(Execution(command=str(tmp_path / "no-such-tool")))
        assert exc_info.value.exit_code is None
        assert exc_info.value.code == "execution_error"


class TestLogOutput:
    """Tests for log_output function."""

    def test_indents_lines(self, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.INFO)
        log_output("[INFO] BUILD SUCCESS")
        assert caplog.records[-1].getMessage() == "   [INFO] BUILD SUCCESS"


class TestRunBuild:
    """Tests for run_build function."""

    def test_executes_in_workspace(self, tmp_path: Path):
        executor = MagicMock()
        run_build(executor, "/usr/bin/mvn", ["package"], tmp_path)

        execution = executor.execute.call_args[0][0]
        assert execution.command == "/usr/bin/mvn"
        assert execution.args == ["package"]
        assert execution.cwd == tmp_path
        assert execution.output is log_output

    def test_logs_command(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.INFO)
        run_build(MagicMock(), "/usr/bin/mvn", ["-q", "package"], tmp_path)
        assert "Executing mvn -q package" in caplog.text

    def test_failure_is_wrapped(self, tmp_path: Path):
        executor = MagicMock()
        executor.execute.side_effect = BuildExecutionError("mvn failed with exit code 1", exit_code=1)

        with pytest.raises(BuildExecutionError) as exc_info:
            run_build(executor, "mvn", [], tmp_path)

        assert str(exc_info.value).startswith("error running build: ")
        assert exc_info.value.exit_code == 1
