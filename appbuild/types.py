"""Shared type definitions for appbuild.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RunStatus(str, Enum):
    """Status of a persisted orchestration run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunState(str, Enum):
    """State of the build-and-cache state machine within one run."""

    INIT = "init"
    FINGERPRINT_COMPUTED = "fingerprint-computed"
    CACHE_HIT = "cache-hit"
    BUILDING = "building"
    RESOLVING = "resolving"
    CAPTURING = "capturing"
    SBOM_SCANNED = "sbom-scanned"
    PROVENANCE_RECORDED = "provenance-recorded"
    PURGED = "purged"
    RESTORED = "restored"
    DONE = "done"


class SBOMFormat(str, Enum):
    """SBOM output formats, valued by media type."""

    CYCLONEDX_JSON = "application/vnd.cyclonedx+json"
    SYFT_JSON = "application/vnd.syft+json"


@dataclass(frozen=True)
class FileEntry:
    """A single file in a workspace listing."""

    path: str
    size: int
    mtime: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"path": self.path, "size": self.size, "mtime": self.mtime}


@dataclass(frozen=True)
class CachedDependency:
    """A dependency archive found in a build tool's cache."""

    name: str
    version: str
    sha256: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "version": self.version, "sha256": self.sha256}


@dataclass
class ProvenanceEntry:
    """A record appended to an external provenance ledger."""

    name: str
    metadata: dict[str, Any] = field(default_factory=dict)
    build: bool = False
    launch: bool = False


__all__ = [
    "CachedDependency",
    "FileEntry",
    "ProvenanceEntry",
    "RunState",
    "RunStatus",
    "SBOMFormat",
]
