"""Workspace source removal.

This module handles:
- Parsing colon separated include/exclude glob lists
- Removing the application source from the workspace once build output
  has been captured, optionally preserving selected files

Patterns match workspace-relative POSIX paths with ``fnmatch`` semantics
(``*`` also crosses directory separators).
"""

from __future__ import annotations

import fnmatch
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from appbuild.config import EXCLUDE_FILES_KEY, INCLUDE_FILES_KEY, ConfigurationResolver
from appbuild.errors import PURGE_IO_FAILED, AppBuildError

logger = logging.getLogger(__name__)


class SourceRemovalError(AppBuildError):
    """Raised when the workspace cannot be purged."""

    def __init__(self, message: str, code: str = PURGE_IO_FAILED) -> None:
        super().__init__(message, code)


def split_patterns(value: str) -> list[str]:
    """Split a colon separated pattern list, dropping empty items."""
    return [p.strip() for p in value.split(":") if p.strip()]


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


@dataclass
class SourceRemover:
    """Removes workspace content, keeping included and not excluded paths.

    Attributes:
        include: Patterns of paths to keep.
        exclude: Patterns that override ``include``.
    """

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @classmethod
    def from_configuration(cls, resolver: ConfigurationResolver) -> SourceRemover:
        """Create a remover from ``BP_INCLUDE_FILES``/``BP_EXCLUDE_FILES``."""
        include, _ = resolver.resolve(INCLUDE_FILES_KEY)
        exclude, _ = resolver.resolve(EXCLUDE_FILES_KEY)
        return cls(include=split_patterns(include), exclude=split_patterns(exclude))

    def excluded(self, rel_path: str) -> bool:
        return any(fnmatch.fnmatchcase(rel_path, p) for p in self.exclude)

    def preserved(self, rel_path: str) -> bool:
        """Return whether a workspace-relative path is kept."""
        if not any(fnmatch.fnmatchcase(rel_path, p) for p in self.include):
            return False
        return not self.excluded(rel_path)

    def remove(self, root: Path) -> None:
        """Purge the workspace.

        Args:
            root: Workspace directory; the directory itself is kept.

        Raises:
            SourceRemovalError: If an entry cannot be removed.
        """
        try:
            if not self.include:
                logger.info("Removing source code")
                for child in sorted(root.iterdir()):
                    _remove(child)
                return

            logger.info(
                "Removing source code, keeping %s (excluding %s)",
                ":".join(self.include),
                ":".join(self.exclude) or "<none>",
            )
            for child in sorted(root.iterdir()):
                self._purge(root, child)
        except OSError as e:
            raise SourceRemovalError(f"unable to remove source code from {root}: {e}") from e

    def _purge(self, root: Path, path: Path) -> bool:
        """Remove ``path`` unless preserved; return whether anything was kept."""
        rel_path = path.relative_to(root).as_posix()

        if self.preserved(rel_path):
            logger.debug("Keeping %s", rel_path)
            return True

        if path.is_dir() and not path.is_symlink() and not self.excluded(rel_path):
            kept = False
            for child in sorted(path.iterdir()):
                kept = self._purge(root, child) or kept
            if not kept:
                path.rmdir()
            return kept

        _remove(path)
        return False


__all__ = [
    "SourceRemovalError",
    "SourceRemover",
    "split_patterns",
]
