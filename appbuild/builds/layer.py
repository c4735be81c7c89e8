"""Cache directory holding captured build output.

This module handles:
- Deciding whether the cached content matches the expected fingerprint
- Capturing resolved artifacts into the cache directory
- Verifying captured copies before the workspace may be purged
- Restoring cached content into the workspace

Layout: the cache directory holds either a single ``application.zip`` or
one-or-more entries named after the original artifacts. Fingerprint
metadata lives in a sidecar file next to the directory (``<dir>.json``) so
it is never restored into the workspace.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import stat
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from appbuild.builds.fingerprint import compute_fingerprint
from appbuild.errors import CAPTURE_IO_FAILED, RESTORE_IO_FAILED, AppBuildError

logger = logging.getLogger(__name__)

# Name of the single captured archive
APPLICATION_ARCHIVE = "application.zip"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


class CaptureError(AppBuildError):
    """Raised when build output cannot be captured into the cache."""

    def __init__(self, message: str, code: str = CAPTURE_IO_FAILED) -> None:
        super().__init__(message, code)


class RestoreError(AppBuildError):
    """Raised when cached output cannot be restored into the workspace."""

    def __init__(self, message: str, code: str = RESTORE_IO_FAILED) -> None:
        super().__init__(message, code)


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def tree_listing(directory: Path) -> dict[str, int]:
    """Map every non-directory entry under a tree to its size.

    Sizes come from ``lstat`` so symlinks are described, not followed.

    Args:
        directory: Tree root.

    Returns:
        Mapping of POSIX relative paths to sizes.
    """
    listing: dict[str, int] = {}
    for dirpath, dirnames, filenames in os.walk(directory):
        links = [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]
        for name in [*filenames, *links]:
            path = Path(dirpath) / name
            listing[path.relative_to(directory).as_posix()] = path.lstat().st_size
    return listing


def copy_file(source: Path, dest: Path) -> None:
    """Copy a file (following symlinks) and verify the copy's digest."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, dest)
    if compute_file_hash(source) != compute_file_hash(dest):
        raise CaptureError(f"copy of {source} to {dest} does not match its source")


def copy_tree(source: Path, dest: Path) -> None:
    """Copy a directory tree (preserving symlinks) and verify the copy."""
    shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)

    copied = tree_listing(dest)
    for rel_path, size in tree_listing(source).items():
        if copied.get(rel_path) != size:
            raise CaptureError(
                f"copy of {source} to {dest} is missing or differs at {rel_path}"
            )


def verify_archive(archive_path: Path) -> None:
    """Check that an archive opens and every member's CRC is intact.

    Raises:
        CaptureError: If the archive is invalid or corrupt.
    """
    try:
        with zipfile.ZipFile(archive_path) as archive:
            bad = archive.testzip()
    except (OSError, zipfile.BadZipFile) as e:
        raise CaptureError(f"{archive_path} is not a valid archive: {e}") from e

    if bad is not None:
        raise CaptureError(f"{archive_path} is corrupt at member {bad}")


def extract_archive(archive_path: Path, dest_dir: Path) -> None:
    """Extract a zip archive, restoring POSIX permissions.

    Args:
        archive_path: Archive to extract.
        dest_dir: Destination directory.

    Raises:
        RestoreError: If extraction fails or a member escapes ``dest_dir``.
    """
    logger.debug("Extracting %s to %s", archive_path, dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(archive_path) as archive:
            members = archive.infolist()
            for member in members:
                # Security: prevent path traversal
                member_path = Path(member.filename)
                if member_path.is_absolute() or ".." in member_path.parts:
                    raise RestoreError(
                        f"Refusing to extract {member.filename}: path traversal detected"
                    )

            for member in members:
                target = Path(archive.extract(member, dest_dir))
                mode = stat.S_IMODE(member.external_attr >> 16)
                if mode and not member.is_dir():
                    target.chmod(mode)
    except (OSError, zipfile.BadZipFile) as e:
        raise RestoreError(f"unable to extract {archive_path}: {e}") from e


def check_entry_names(artifacts: list[str]) -> None:
    """Check that artifacts can be stored side by side under their base names.

    ``application.zip`` is reserved for the single-archive layout.

    Raises:
        CaptureError: If a base name is reserved or used twice.
    """
    seen: dict[str, str] = {}
    for artifact in artifacts:
        name = os.path.basename(os.path.normpath(artifact))
        if name == APPLICATION_ARCHIVE:
            raise CaptureError(
                f"unable to capture {artifact}: {APPLICATION_ARCHIVE} is reserved "
                "for a single captured archive"
            )
        if name in seen:
            raise CaptureError(
                f"unable to capture {artifact}: base name {name} is already used by {seen[name]}"
            )
        seen[name] = artifact


@dataclass
class CacheLayer:
    """Persistent cache directory for captured build output.

    Attributes:
        path: Cache directory.
        expected_metadata: Fingerprint metadata of the current run.
        name: Layer name used in log messages.
    """

    path: Path
    expected_metadata: dict[str, Any] = field(default_factory=dict)
    name: str = "application"

    @property
    def metadata_path(self) -> Path:
        """Sidecar file holding the stored fingerprint metadata."""
        return self.path.parent / f"{self.path.name}.json"

    @property
    def archive_path(self) -> Path:
        """Path of the single captured archive."""
        return self.path / APPLICATION_ARCHIVE

    def fingerprint(self) -> str:
        """Return the fingerprint of the expected metadata."""
        return compute_fingerprint(self.expected_metadata)

    def stored(self) -> dict[str, Any] | None:
        """Load the stored sidecar, or None if absent or unreadable."""
        if not self.metadata_path.is_file():
            return None
        try:
            with self.metadata_path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache metadata %s: %s", self.metadata_path, e)
            return None
        return data if isinstance(data, dict) else None

    def is_populated(self) -> bool:
        """Return whether the cache directory has any entries."""
        return self.path.is_dir() and any(self.path.iterdir())

    def matches(self) -> bool:
        """Return whether cached content is valid for the expected metadata."""
        stored = self.stored()
        if stored is None:
            return False
        return stored.get("fingerprint") == self.fingerprint() and self.is_populated()

    def is_archive(self) -> bool:
        """Return whether the cache holds the single archive representation."""
        return self.archive_path.is_file()

    def contents(self) -> list[str]:
        """Return the sorted names of the cached top-level entries."""
        if not self.path.is_dir():
            return []
        return sorted(p.name for p in self.path.iterdir())

    def reset(self) -> None:
        """Remove stored metadata and all cached content.

        Raises:
            CaptureError: If the directory cannot be reset.
        """
        try:
            self.metadata_path.unlink(missing_ok=True)
            if self.path.is_symlink() or self.path.is_file():
                self.path.unlink()
            elif self.path.exists():
                shutil.rmtree(self.path)
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CaptureError(f"unable to reset cache directory {self.path}: {e}") from e

    def capture(self, artifacts: list[str]) -> None:
        """Copy resolved artifacts into the cache directory.

        A single file becomes ``application.zip``; a single directory, or
        each of several artifacts, is stored under its base name. Every copy
        is verified before this returns.

        Args:
            artifacts: Resolved artifact paths.

        Raises:
            CaptureError: If there is nothing to capture, two artifacts share
                a base name, an artifact is named like the archive, or a copy
                fails.
        """
        if not artifacts:
            raise CaptureError("no artifacts to capture")

        if len(artifacts) > 1 or not os.path.isfile(artifacts[0]):
            check_entry_names(artifacts)

        try:
            self.path.mkdir(parents=True, exist_ok=True)

            if len(artifacts) == 1 and os.path.isfile(artifacts[0]):
                source = Path(artifacts[0])
                logger.info("Capturing %s as %s", source, APPLICATION_ARCHIVE)
                copy_file(source, self.archive_path)
                verify_archive(self.archive_path)
                return

            for artifact in artifacts:
                source = Path(artifact)
                dest = self.path / source.name
                logger.info("Capturing %s", source)
                if source.is_dir():
                    copy_tree(source, dest)
                else:
                    copy_file(source, dest)
        except OSError as e:
            raise CaptureError(f"unable to copy artifacts to {self.path}: {e}") from e

    def commit(self) -> None:
        """Write the sidecar metadata, marking captured content as valid.

        Raises:
            CaptureError: If the metadata cannot be written.
        """
        payload = {
            "fingerprint": self.fingerprint(),
            "metadata": self.expected_metadata,
            "captured_at": datetime.now(timezone.utc).isoformat(),
            "contents": self.contents(),
        }
        try:
            self.metadata_path.parent.mkdir(parents=True, exist_ok=True)
            with self.metadata_path.open("w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=True, default=str)
        except OSError as e:
            raise CaptureError(
                f"unable to write cache metadata {self.metadata_path}: {e}"
            ) from e

    def contribute(self, build: Callable[[CacheLayer], None]) -> bool:
        """Reuse the cached content or (re)build it.

        Args:
            build: Called with this layer on a cache miss; must populate it.

        Returns:
            True on a cache hit, False when ``build`` was run.
        """
        if self.matches():
            logger.info("Reusing cached %s layer", self.name)
            return True

        logger.info("Contributing %s layer (fingerprint %s)", self.name, self.fingerprint()[:32])
        self.reset()
        build(self)
        self.commit()
        return False

    def restore(self, destination: Path) -> None:
        """Restore cached content into a directory.

        Args:
            destination: Directory to restore into (normally the emptied workspace).

        Raises:
            RestoreError: If the content cannot be restored.
        """
        if self.is_archive():
            extract_archive(self.archive_path, destination)
            return

        try:
            destination.mkdir(parents=True, exist_ok=True)
            for entry in sorted(self.path.iterdir()):
                target = destination / entry.name
                if entry.is_dir() and not entry.is_symlink():
                    shutil.copytree(entry, target, symlinks=True, dirs_exist_ok=True)
                else:
                    shutil.copy2(entry, target, follow_symlinks=False)
        except OSError as e:
            raise RestoreError(
                f"unable to restore {self.path} into {destination}: {e}"
            ) from e


__all__ = [
    "APPLICATION_ARCHIVE",
    "HASH_CHUNK_SIZE",
    "CacheLayer",
    "CaptureError",
    "RestoreError",
    "check_entry_names",
    "compute_file_hash",
    "copy_file",
    "copy_tree",
    "extract_archive",
    "tree_listing",
    "verify_archive",
]
