"""Interesting file detection.

A detector decides whether a candidate path is the real output of a build
rather than an incidental byproduct. The set of detectors is closed:

- ``AlwaysInteresting``: every candidate is interesting.
- ``ExecutableArchiveInteresting``: a zip archive that is either a web
  application (``WEB-INF/`` directory entry) or carries a ``Main-Class``
  in ``META-INF/MANIFEST.MF``.
"""

from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass
from typing import ClassVar, Protocol

from appbuild.errors import INTEREST_INSPECTION_ERROR, AppBuildError

logger = logging.getLogger(__name__)

WEB_INF_ENTRY = "WEB-INF/"
MANIFEST_ENTRY = "META-INF/MANIFEST.MF"
MAIN_CLASS_KEY = "Main-Class"

# Key, then optional whitespace and an optional ":" or "=" separator
MANIFEST_LINE = re.compile(r"^\s*(?P<key>[^:=\s]+)\s*[:=]?\s*(?P<value>.*)$")


class InterestInspectionError(AppBuildError):
    """Raised when a candidate cannot be inspected."""

    def __init__(self, message: str, code: str = INTEREST_INSPECTION_ERROR) -> None:
        super().__init__(message, code)


class InterestingFileDetector(Protocol):
    """Capability shared by all detectors."""

    kind: ClassVar[str]

    def interesting(self, path: str) -> bool:
        """Return whether ``path`` is an interesting candidate."""
        ...


def parse_manifest(content: bytes) -> dict[str, str]:
    """Parse a JAR manifest into a flat key/value mapping.

    Lines have the form ``Key: value``. As in a properties file, ``=`` or
    whitespace also separate a key from its value and a bare key has an
    empty value. A line starting with a single space continues the value of
    the previous line. Blank lines separate sections and all sections are
    merged, first occurrence winning.

    Args:
        content: Raw manifest bytes.

    Returns:
        Mapping of attribute names to values.

    Raises:
        ValueError: If the manifest is not UTF-8, starts with a continuation
            line or has a line without a key.
    """
    text = content.decode("utf-8")

    attributes: dict[str, str] = {}
    key: str | None = None
    value = ""
    for number, line in enumerate(text.splitlines(), start=1):
        if line.startswith(" "):
            if key is None:
                raise ValueError(f"continuation without attribute on line {number}")
            value += line[1:]
            continue

        if key is not None:
            attributes.setdefault(key, value.strip())
            key = None

        if not line.strip():
            continue

        match = MANIFEST_LINE.match(line)
        if match is None:
            raise ValueError(f"invalid manifest line {number}: {line!r}")
        key, value = match.group("key"), match.group("value")

    if key is not None:
        attributes.setdefault(key, value.strip())

    return attributes


@dataclass(frozen=True)
class AlwaysInteresting:
    """Detector that considers every candidate interesting."""

    kind: ClassVar[str] = "always"

    def interesting(self, path: str) -> bool:
        return True


@dataclass(frozen=True)
class ExecutableArchiveInteresting:
    """Detector for executable JARs and WARs."""

    kind: ClassVar[str] = "executable-archive"

    def interesting(self, path: str) -> bool:
        """Inspect the archive's central directory.

        Args:
            path: Path to a zip-format archive.

        Returns:
            True for archives with a ``WEB-INF/`` directory entry or a
            manifest declaring ``Main-Class``.

        Raises:
            InterestInspectionError: If the archive or its manifest cannot be read.
        """
        try:
            archive = zipfile.ZipFile(path)
        except (OSError, zipfile.BadZipFile) as e:
            raise InterestInspectionError(f"unable to open {path}: {e}") from e

        with archive:
            for info in archive.infolist():
                if self._entry(archive, info, path):
                    logger.debug("%s is interesting (entry %s)", path, info.filename)
                    return True

        return False

    def _entry(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo, path: str) -> bool:
        if info.filename == WEB_INF_ENTRY and info.is_dir():
            return True

        if info.filename != MANIFEST_ENTRY:
            return False

        try:
            content = archive.read(info)
        except (OSError, zipfile.BadZipFile, RuntimeError) as e:
            raise InterestInspectionError(
                f"unable to read {path}/{info.filename}: {e}"
            ) from e

        try:
            attributes = parse_manifest(content)
        except ValueError as e:
            raise InterestInspectionError(
                f"unable to parse properties in {path}/{info.filename}: {e}"
            ) from e

        return MAIN_CLASS_KEY in attributes


DETECTORS: dict[str, type[AlwaysInteresting] | type[ExecutableArchiveInteresting]] = {
    AlwaysInteresting.kind: AlwaysInteresting,
    ExecutableArchiveInteresting.kind: ExecutableArchiveInteresting,
}


def get_detector(kind: str) -> InterestingFileDetector:
    """Create a detector by its kind tag.

    Args:
        kind: One of ``always`` or ``executable-archive``.

    Returns:
        Detector instance.

    Raises:
        ValueError: If the kind is unknown.
    """
    try:
        return DETECTORS[kind]()
    except KeyError:
        raise ValueError(
            f"unknown detector {kind!r}, expected one of {sorted(DETECTORS)}"
        ) from None


__all__ = [
    "DETECTORS",
    "MAIN_CLASS_KEY",
    "MANIFEST_ENTRY",
    "WEB_INF_ENTRY",
    "AlwaysInteresting",
    "ExecutableArchiveInteresting",
    "InterestInspectionError",
    "InterestingFileDetector",
    "get_detector",
    "parse_manifest",
]
