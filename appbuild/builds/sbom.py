"""Software bill of materials scanning.

This module handles:
- Mapping SBOM formats to syft output names and file extensions
- Scanning the workspace with the ``syft`` CLI through an Executor
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from appbuild.builds.runner import BuildExecutionError, Execution, Executor, SubprocessExecutor
from appbuild.errors import SCAN_FAILED, AppBuildError
from appbuild.types import SBOMFormat

logger = logging.getLogger(__name__)

SYFT_COMMAND = "syft"

# format -> (syft output name, file extension)
SYFT_OUTPUTS: dict[SBOMFormat, tuple[str, str]] = {
    SBOMFormat.CYCLONEDX_JSON: ("cyclonedx-json", "cdx.json"),
    SBOMFormat.SYFT_JSON: ("syft-json", "syft.json"),
}


class ScanError(AppBuildError):
    """Raised when an SBOM scan fails."""

    def __init__(self, message: str, code: str = SCAN_FAILED) -> None:
        super().__init__(message, code)


class SBOMScanner(Protocol):
    """Produces SBOM documents describing a directory."""

    def scan_build(self, path: Path, *formats: SBOMFormat) -> None:
        """Scan ``path`` and write one document per format."""
        ...


def sbom_path(output_dir: Path, sbom_format: SBOMFormat) -> Path:
    """Return the document path for a format, e.g. ``build.sbom.cdx.json``."""
    _, extension = SYFT_OUTPUTS[sbom_format]
    return output_dir / f"build.sbom.{extension}"


@dataclass
class SyftCLIScanner:
    """SBOM scanner running the ``syft`` command line tool.

    Attributes:
        output_dir: Directory the documents are written to.
        executor: Executor used to run syft.
    """

    output_dir: Path
    executor: Executor = field(default_factory=SubprocessExecutor)
    command: str = SYFT_COMMAND

    def scan_build(self, path: Path, *formats: SBOMFormat) -> None:
        """Scan a directory.

        Args:
            path: Directory to scan.
            formats: Formats to produce; at least one is required.

        Raises:
            ScanError: If no format is requested or syft fails.
        """
        if not formats:
            raise ScanError("at least one SBOM format is required")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ScanError(f"unable to create SBOM directory {self.output_dir}: {e}") from e

        args = ["packages", f"dir:{path}", "--quiet"]
        for sbom_format in formats:
            name, _ = SYFT_OUTPUTS[sbom_format]
            args += ["--output", f"{name}={sbom_path(self.output_dir, sbom_format)}"]

        logger.info("Scanning %s for SBOM (%s)", path, ", ".join(f.value for f in formats))
        try:
            self.executor.execute(Execution(command=self.command, args=args))
        except BuildExecutionError as e:
            raise ScanError(f"unable to run `{self.command} {' '.join(args)}`: {e}") from e


__all__ = [
    "SYFT_COMMAND",
    "SYFT_OUTPUTS",
    "SBOMScanner",
    "ScanError",
    "SyftCLIScanner",
    "sbom_path",
]
