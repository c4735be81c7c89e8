"""Command runner for executing the build.

This module handles:
- Describing a command execution (command, arguments, working directory)
- Executing commands with subprocess, streaming output line by line
- Forwarding build output to the logger

The runner has no timeout and never retries; cancellation is left to
whoever owns the process.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from appbuild.errors import BUILD_FAILED, EXECUTION_ERROR, AppBuildError

logger = logging.getLogger(__name__)

# Indentation applied to forwarded build output
OUTPUT_INDENT = 3

OutputSink = Callable[[str], None]


class BuildExecutionError(AppBuildError):
    """Raised when a command fails to launch or exits non-zero."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = BUILD_FAILED,
    ) -> None:
        super().__init__(message, code)
        self.exit_code = exit_code


@dataclass
class Execution:
    """A single command execution.

    Attributes:
        command: Executable to run.
        args: Arguments passed to the executable.
        cwd: Working directory (None = current directory).
        env: Environment overrides merged over the process environment.
        output: Receives each line of combined stdout/stderr.
    """

    command: str
    args: list[str] = field(default_factory=list)
    cwd: Path | None = None
    env: dict[str, str] | None = None
    output: OutputSink | None = None

    def command_line(self) -> str:
        """Return the shell-quoted command line."""
        return shlex.join([self.command, *self.args])


class Executor(Protocol):
    """Runs executions, raising BuildExecutionError on failure."""

    def execute(self, execution: Execution) -> None:
        """Run the execution to completion."""
        ...


def log_output(line: str) -> None:
    """Forward one line of command output to the logger."""
    logger.info("%s%s", " " * OUTPUT_INDENT, line)


class SubprocessExecutor:
    """Executor backed by ``subprocess.Popen``."""

    def execute(self, execution: Execution) -> None:
        """Run a command, streaming its combined output.

        Args:
            execution: Execution to run.

        Raises:
            BuildExecutionError: If the command cannot be launched or exits
                with a non-zero code.
        """
        cmd = [execution.command, *execution.args]
        cmd_str = execution.command_line()
        sink = execution.output or log_output

        env: dict[str, str] | None = None
        if execution.env:
            env = dict(os.environ)
            env.update(execution.env)

        logger.debug("Executing: %s (cwd=%s)", cmd_str, execution.cwd)

        try:
            with subprocess.Popen(
                cmd,
                cwd=execution.cwd,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            ) as process:
                if process.stdout is not None:
                    for line in process.stdout:
                        sink(line.rstrip("\n"))
                exit_code = process.wait()
        except OSError as e:
            raise BuildExecutionError(
                f"Failed to execute {cmd_str}: {e}",
                exit_code=None,
                code=EXECUTION_ERROR,
            ) from e

        if exit_code != 0:
            raise BuildExecutionError(
                f"{cmd_str} failed with exit code {exit_code}",
                exit_code=exit_code,
            )


def run_build(
    executor: Executor,
    command: str,
    arguments: list[str],
    application_path: Path,
) -> None:
    """Execute the build command in the application workspace.

    Args:
        executor: Executor to run the command with.
        command: Build command.
        arguments: Build arguments.
        application_path: Workspace the build runs in.

    Raises:
        BuildExecutionError: If the build fails.
    """
    logger.info("Executing %s %s", os.path.basename(command), " ".join(arguments))

    execution = Execution(
        command=command,
        args=list(arguments),
        cwd=application_path,
        output=log_output,
    )
    try:
        executor.execute(execution)
    except BuildExecutionError as e:
        raise BuildExecutionError(
            f"error running build: {e}",
            exit_code=e.exit_code,
            code=e.code,
        ) from e


__all__ = [
    "OUTPUT_INDENT",
    "BuildExecutionError",
    "Execution",
    "Executor",
    "SubprocessExecutor",
    "log_output",
    "run_build",
]
