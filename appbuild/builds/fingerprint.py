"""Cache fingerprint computation for builds.

This module handles:
- Listing every file in the workspace (path, size, modification time)
- Probing the build tool version
- Assembling the expected cache metadata
- Deterministic hash computation over the metadata

Two runs whose metadata hashes are equal are cache-equivalent.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from appbuild.builds.runner import BuildExecutionError, Execution, Executor
from appbuild.errors import FINGERPRINT_ERROR, AppBuildError
from appbuild.types import FileEntry

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"


class FingerprintError(AppBuildError):
    """Raised when the fingerprint inputs cannot be gathered."""

    def __init__(self, message: str, code: str = FINGERPRINT_ERROR) -> None:
        super().__init__(message, code)


def create_file_listing(root: Path) -> list[FileEntry]:
    """List every file under a directory.

    Regular files and symlinks are listed; directories are not. Symlinks
    are not followed.

    Args:
        root: Directory to list.

    Returns:
        FileEntry list sorted by path.

    Raises:
        FingerprintError: If the directory cannot be walked.
    """
    entries: list[FileEntry] = []

    def _on_error(error: OSError) -> None:
        raise FingerprintError(f"unable to create file listing for {root}: {error}") from error

    try:
        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            # Symlinked directories show up in dirnames but are not walked
            links = [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]
            for name in [*filenames, *links]:
                path = os.path.join(dirpath, name)
                st = os.lstat(path)
                entries.append(FileEntry(path=path, size=st.st_size, mtime=st.st_mtime))
    except OSError as e:
        raise FingerprintError(f"unable to create file listing for {root}: {e}") from e

    entries.sort(key=lambda e: e.path)
    return entries


def parse_tool_version(output: str) -> str:
    """Extract a version from ``<tool> <version>`` style output.

    Args:
        output: Combined output of the version command.

    Returns:
        Second field for two fields, the only field for one, else "unknown".
    """
    fields = output.strip().split(" ")
    if len(fields) == 2:
        return fields[1]
    if len(fields) == 1:
        return fields[0]
    return UNKNOWN_VERSION


def detect_tool_version(executor: Executor, command: list[str] | None) -> str:
    """Run the tool version command and parse its output.

    Args:
        executor: Executor to run the command with.
        command: Version command, e.g. ``["javac", "-version"]``.

    Returns:
        Version string ("unknown" if no command is configured).

    Raises:
        FingerprintError: If the command fails.
    """
    if not command:
        return UNKNOWN_VERSION

    lines: list[str] = []
    execution = Execution(command=command[0], args=command[1:], output=lines.append)
    try:
        executor.execute(execution)
    except BuildExecutionError as e:
        raise FingerprintError(
            f"error executing '{execution.command_line()}': "
            f"combined output: {' '.join(lines)}: {e}"
        ) from e

    version = parse_tool_version("\n".join(lines))
    logger.debug("Probed tool version %s", version)
    return version


@dataclass
class BuildInputs:
    """Canonical representation of everything that affects build output.

    Attributes:
        files: Listing of the workspace before the build.
        arguments: Build arguments.
        artifact_pattern: Resolved artifact pattern.
        tool_version: Build tool version.
        extra: Caller supplied metadata merged at the top level.
    """

    files: list[FileEntry] = field(default_factory=list)
    arguments: list[str] = field(default_factory=list)
    artifact_pattern: str = ""
    tool_version: str = UNKNOWN_VERSION
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted metadata mapping.

        Returns:
            Mapping with ``files``, ``arguments``, ``artifact-pattern``,
            ``tool-version`` and the extra keys.
        """
        metadata: dict[str, Any] = {
            "files": [f.to_dict() for f in self.files],
            "arguments": list(self.arguments),
            "artifact-pattern": self.artifact_pattern,
            "tool-version": self.tool_version,
        }
        metadata.update(self.extra)
        return metadata


def create_build_inputs(
    application_path: Path,
    arguments: list[str],
    artifact_pattern: str,
    tool_version: str,
    additional_metadata: dict[str, Any] | None = None,
) -> BuildInputs:
    """Create canonical build inputs for a workspace.

    Args:
        application_path: Workspace to list.
        arguments: Build arguments.
        artifact_pattern: Resolved artifact pattern.
        tool_version: Build tool version.
        additional_metadata: Extra metadata to merge.

    Returns:
        BuildInputs instance.
    """
    return BuildInputs(
        files=create_file_listing(application_path),
        arguments=list(arguments),
        artifact_pattern=artifact_pattern,
        tool_version=tool_version,
        extra=dict(additional_metadata or {}),
    )


def compute_fingerprint(metadata: dict[str, Any]) -> str:
    """Compute a fingerprint hash from cache metadata.

    The fingerprint is a SHA-256 hash of the canonical JSON representation
    of the metadata.

    Args:
        metadata: Metadata mapping (see BuildInputs.to_dict).

    Returns:
        Fingerprint as hex string (sha256:...).
    """
    canonical_json = json.dumps(
        metadata,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


__all__ = [
    "UNKNOWN_VERSION",
    "BuildInputs",
    "FingerprintError",
    "compute_fingerprint",
    "create_build_inputs",
    "create_file_listing",
    "detect_tool_version",
    "parse_tool_version",
]
