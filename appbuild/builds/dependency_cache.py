"""Persistent build tool dependency cache.

This module handles:
- Linking the build tool's cache directory (e.g. ``~/.m2``) to a
  persistent directory that survives between runs
- Listing the dependency archives found in that cache
- Describing the listing as a provenance entry
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from appbuild.errors import DEPENDENCY_CACHE_ERROR, AppBuildError
from appbuild.types import CachedDependency, ProvenanceEntry

logger = logging.getLogger(__name__)

PROVENANCE_ENTRY_NAME = "build-dependencies"

# <name>-<version>.jar, version starting with a digit
JAR_NAME_PATTERN = re.compile(r"^(?P<name>.+?)-(?P<version>\d[^/]*)\.jar$")


class DependencyCacheError(AppBuildError):
    """Raised when the dependency cache cannot be linked or listed."""

    def __init__(self, message: str, code: str = DEPENDENCY_CACHE_ERROR) -> None:
        super().__init__(message, code)


def parse_jar_name(filename: str) -> tuple[str, str]:
    """Split a JAR file name into name and version.

    Args:
        filename: File name such as ``commons-io-2.11.0.jar``.

    Returns:
        Tuple of (name, version). Names without a version yield
        ``(stem, "unknown")``.
    """
    match = JAR_NAME_PATTERN.match(filename)
    if match:
        return match.group("name"), match.group("version")
    return filename.removesuffix(".jar"), "unknown"


def _sha256(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(64 * 1024):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass
class DependencyCache:
    """Build tool cache backed by a persistent directory.

    Attributes:
        path: Location the build tool expects its cache at.
        layer_path: Persistent directory ``path`` is linked to.
    """

    path: Path
    layer_path: Path
    name: str = "cache"

    def contribute(self) -> None:
        """Link the build tool cache to the persistent directory.

        Raises:
            DependencyCacheError: If a directory cannot be created or the
                link cannot be made.
        """
        try:
            self.layer_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DependencyCacheError(
                f"unable to create layer directory {self.layer_path}: {e}"
            ) from e

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DependencyCacheError(
                f"unable to create directory {self.path.parent}: {e}"
            ) from e

        try:
            os.symlink(self.layer_path, self.path)
        except FileExistsError:
            logger.info("Cache already exists")
            return
        except OSError as e:
            raise DependencyCacheError(
                f"unable to link cache from {self.layer_path} to {self.path}: {e}"
            ) from e

        logger.info("Creating cache directory %s", self.path)

    def list_dependencies(self) -> list[CachedDependency]:
        """List every JAR under the cache.

        Returns:
            Dependencies sorted by name then version. A missing cache yields
            an empty list.

        Raises:
            DependencyCacheError: If a JAR cannot be read.
        """
        dependencies: list[CachedDependency] = []
        if not self.path.exists():
            return dependencies

        try:
            for dirpath, _dirnames, filenames in os.walk(self.path, followlinks=True):
                for filename in filenames:
                    if not filename.endswith(".jar"):
                        continue
                    name, version = parse_jar_name(filename)
                    digest = _sha256(os.path.join(dirpath, filename))
                    dependencies.append(
                        CachedDependency(name=name, version=version, sha256=digest)
                    )
        except OSError as e:
            raise DependencyCacheError(
                f"unable to generate dependencies from {self.path}: {e}"
            ) from e

        dependencies.sort(key=lambda d: (d.name, d.version, d.sha256))
        return dependencies

    def as_provenance_entry(self) -> ProvenanceEntry:
        """Describe the cached dependencies as a build-time provenance entry."""
        return ProvenanceEntry(
            name=PROVENANCE_ENTRY_NAME,
            metadata={
                "dependencies": [d.to_dict() for d in self.list_dependencies()],
                "layer": self.name,
            },
            build=True,
            launch=False,
        )


__all__ = [
    "JAR_NAME_PATTERN",
    "PROVENANCE_ENTRY_NAME",
    "DependencyCache",
    "DependencyCacheError",
    "parse_jar_name",
]
