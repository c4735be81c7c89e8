"""Artifact resolution.

This module handles:
- Resolving the effective artifact pattern from configuration
- Single-artifact resolution (one path, disambiguated by interest)
- Multi-artifact resolution (union of several glob tokens)
- Resolving build arguments from configuration

Glob expansion is relative to the application root, matches hidden
entries, is not recursive and returns normalised absolute-style paths
(the root joined with the match, without trailing separators).
"""

from __future__ import annotations

import glob
import logging
import os
import shlex
from dataclasses import dataclass, field

from appbuild.artifacts.interest import (
    AlwaysInteresting,
    InterestInspectionError,
    InterestingFileDetector,
)
from appbuild.config import ConfigurationResolver
from appbuild.errors import (
    ARGUMENT_PARSE_ERROR,
    PATTERN_MALFORMED,
    RESOLUTION_AMBIGUOUS,
    RESOLUTION_EMPTY,
    AppBuildError,
)

logger = logging.getLogger(__name__)


class ArtifactResolutionError(AppBuildError):
    """Base error for artifact resolution failures."""


class PatternMalformedError(ArtifactResolutionError):
    """Raised when one or more glob patterns cannot be parsed."""

    def __init__(
        self,
        message: str,
        patterns: list[str] | None = None,
        code: str = PATTERN_MALFORMED,
    ) -> None:
        super().__init__(message, code)
        self.patterns = patterns or []


class AmbiguousArtifactError(ArtifactResolutionError):
    """Raised when single resolution finds zero or several artifacts."""

    def __init__(
        self,
        pattern: str,
        candidates: list[str],
        help_message: str = "",
        code: str = RESOLUTION_AMBIGUOUS,
    ) -> None:
        self.pattern = pattern
        self.candidates = sorted(candidates)
        message = (
            f"unable to find single built artifact in {pattern}, "
            f"candidates: [{' '.join(self.candidates)}]"
        )
        if help_message:
            message = f"{message}. {help_message}"
        super().__init__(message, code)


class NoArtifactsError(ArtifactResolutionError):
    """Raised when multi resolution matches nothing."""

    def __init__(
        self,
        pattern: str,
        listing: list[str],
        help_message: str = "",
        code: str = RESOLUTION_EMPTY,
    ) -> None:
        self.pattern = pattern
        self.listing = listing
        message = (
            f"unable to find any built artifacts in {pattern}, "
            f"directory contains: [{' '.join(listing)}]"
        )
        if help_message:
            message = f"{message}. {help_message}"
        super().__init__(message, code)


class ArgumentParseError(AppBuildError):
    """Raised when configured build arguments cannot be split."""

    def __init__(self, message: str, code: str = ARGUMENT_PARSE_ERROR) -> None:
        super().__init__(message, code)


def validate_glob(pattern: str) -> None:
    """Check glob syntax.

    A pattern is malformed when it has an unterminated ``[`` class, an
    empty class ``[]`` or a trailing escape character.

    Args:
        pattern: Glob pattern.

    Raises:
        PatternMalformedError: If the pattern is malformed.
    """
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            if i + 1 >= n:
                raise PatternMalformedError(
                    f"syntax error in pattern {pattern}: trailing escape",
                    patterns=[pattern],
                )
            i += 2
            continue

        if c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                raise PatternMalformedError(
                    f"syntax error in pattern {pattern}: empty character class",
                    patterns=[pattern],
                )
            while j < n and pattern[j] != "]":
                j += 2 if pattern[j] == "\\" else 1
            if j >= n:
                raise PatternMalformedError(
                    f"syntax error in pattern {pattern}: unterminated character class",
                    patterns=[pattern],
                )
            i = j + 1
            continue

        i += 1


def translate_negation(pattern: str) -> str:
    """Rewrite ``[^...]`` character classes as ``[!...]``.

    ``glob`` only negates a class with ``!``; a leading ``^`` negates too.
    The pattern must already be valid (see :func:`validate_glob`).

    Args:
        pattern: Glob pattern.

    Returns:
        The pattern with every negated class spelled ``[!...]``.
    """
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            out.append(pattern[i : i + 2])
            i += 2
            continue

        if c == "[":
            j = i + 1
            if j < n and pattern[j] == "^":
                out.append("[!")
                j += 1
            else:
                out.append("[")
            start = j
            while j < n and pattern[j] != "]":
                j += 2 if pattern[j] == "\\" else 1
            out.append(pattern[start : j + 1])
            i = j + 1
            continue

        out.append(c)
        i += 1
    return "".join(out)


def expand_glob(root: str | os.PathLike[str], pattern: str) -> list[str]:
    """Expand a glob pattern relative to a root directory.

    Args:
        root: Directory the pattern is relative to.
        pattern: Glob pattern; leading separators are ignored.

    Returns:
        Sorted list of matching paths joined onto ``root``.

    Raises:
        PatternMalformedError: If the pattern is malformed.
    """
    validate_glob(pattern)

    root_str = os.fspath(root)
    relative = translate_negation(pattern).lstrip("/")
    relative = os.path.normpath(relative) if relative else os.curdir

    matches = glob.glob(relative, root_dir=root_str, include_hidden=True)
    return sorted(os.path.normpath(os.path.join(root_str, m)) for m in matches)


def list_directory(root: str | os.PathLike[str]) -> list[str]:
    """List everything under a directory for diagnostics.

    Args:
        root: Directory to list.

    Returns:
        Sorted relative paths; directories carry a trailing ``/``.
    """
    root_str = os.fspath(root)
    entries: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root_str):
        rel_dir = os.path.relpath(dirpath, root_str)
        for name in dirnames:
            entries.append(os.path.normpath(os.path.join(rel_dir, name)) + "/")
        for name in filenames:
            entries.append(os.path.normpath(os.path.join(rel_dir, name)))
    return sorted(entries)


def _join_module(module: str, pattern: str) -> str:
    """Join a module directory onto a pattern, dropping empty parts."""
    parts = [p for p in (module, pattern) if p]
    if not parts:
        return ""
    return os.path.normpath(os.path.join(*parts))


@dataclass
class ArtifactResolver:
    """Resolves the artifact(s) produced by a build.

    Attributes:
        artifact_configuration_key: Key of the user-configured artifact pattern.
        configuration_resolver: Resolver the keys are looked up with.
        module_configuration_key: Key of the user-configured module directory.
        interesting_file_detector: Used to choose among several candidates.
        additional_help_message: Appended to resolution failure messages.
    """

    artifact_configuration_key: str = ""
    configuration_resolver: ConfigurationResolver = field(
        default_factory=ConfigurationResolver
    )
    module_configuration_key: str = ""
    interesting_file_detector: InterestingFileDetector = field(
        default_factory=AlwaysInteresting
    )
    additional_help_message: str = ""

    def pattern(self) -> str:
        """Return the effective, space separated artifact pattern.

        A configured artifact pattern wins; otherwise a configured module is
        prefixed onto the default pattern; otherwise the default is used.
        """
        pattern, ok = self.configuration_resolver.resolve(
            self.artifact_configuration_key
        )
        if ok:
            return pattern

        module, ok = self.configuration_resolver.resolve(self.module_configuration_key)
        if ok:
            return _join_module(module, pattern)

        return pattern

    def resolve(self, application_path: str | os.PathLike[str]) -> str:
        """Resolve the single artifact created by the build.

        Args:
            application_path: Root of the application workspace.

        Returns:
            Path to the artifact.

        Raises:
            PatternMalformedError: If the pattern is malformed.
            InterestInspectionError: If a candidate cannot be inspected.
            AmbiguousArtifactError: If zero or several candidates qualify.
        """
        pattern = self.pattern()
        candidates = expand_glob(application_path, pattern)
        logger.debug("Pattern %s matched %d candidate(s)", pattern, len(candidates))

        if len(candidates) == 1:
            return candidates[0]

        artifacts: list[str] = []
        for candidate in candidates:
            try:
                if self.interesting_file_detector.interesting(candidate):
                    artifacts.append(candidate)
            except InterestInspectionError as e:
                raise InterestInspectionError(
                    f"unable to investigate {candidate}: {e}", code=e.code
                ) from e

        if len(artifacts) == 1:
            return artifacts[0]

        raise AmbiguousArtifactError(pattern, candidates, self.additional_help_message)

    def resolve_many(self, application_path: str | os.PathLike[str]) -> list[str]:
        """Resolve every artifact named by the (multi-token) pattern.

        Each whitespace separated token is an independent glob. Matches may
        be files or directories and are not filtered for interest.

        Args:
            application_path: Root of the application workspace.

        Returns:
            Duplicate-free list of matched paths in first-seen order.

        Raises:
            PatternMalformedError: If the pattern cannot be split or any token
                is malformed.
            NoArtifactsError: If no token matched anything.
        """
        pattern = self.pattern()

        try:
            patterns = shlex.split(pattern)
        except ValueError as e:
            raise PatternMalformedError(
                f"unable to parse shellwords patterns from {pattern}: {e}",
                patterns=[pattern],
            ) from e

        candidates: list[str] = []
        seen: set[str] = set()
        bad_patterns: list[str] = []
        for token in patterns:
            try:
                matches = expand_glob(application_path, token)
            except PatternMalformedError:
                bad_patterns.append(token)
                continue

            for match in matches:
                if match not in seen:
                    seen.add(match)
                    candidates.append(match)

        if bad_patterns:
            raise PatternMalformedError(
                "unable to proceed due to bad pattern(s):\n" + "\n".join(bad_patterns),
                patterns=bad_patterns,
            )

        if candidates:
            logger.debug("Resolved %d artifact(s) for %s", len(candidates), pattern)
            return candidates

        raise NoArtifactsError(
            pattern,
            list_directory(application_path),
            self.additional_help_message,
        )


def new_artifact_resolver(
    configuration_resolver: ConfigurationResolver,
    artifact_configuration_key: str,
    module_configuration_key: str,
    interesting_file_detector: InterestingFileDetector | None = None,
    additional_help_message: str = "",
) -> ArtifactResolver:
    """Create an ArtifactResolver, logging the keys users can set.

    Args:
        configuration_resolver: Resolver the keys are looked up with.
        artifact_configuration_key: Key of the artifact pattern.
        module_configuration_key: Key of the module directory.
        interesting_file_detector: Detector; defaults to AlwaysInteresting.
        additional_help_message: Appended to resolution failure messages.

    Returns:
        ArtifactResolver instance.
    """
    default, _ = configuration_resolver.resolve(artifact_configuration_key)
    logger.info(
        "Set $%s to configure the module to find application artifact in. Default <ROOT>.",
        module_configuration_key,
    )
    logger.info(
        "Set $%s to configure the built application artifact. Default %s.",
        artifact_configuration_key,
        default or "<none>",
    )

    return ArtifactResolver(
        artifact_configuration_key=artifact_configuration_key,
        configuration_resolver=configuration_resolver,
        module_configuration_key=module_configuration_key,
        interesting_file_detector=interesting_file_detector or AlwaysInteresting(),
        additional_help_message=additional_help_message,
    )


def resolve_arguments(
    configuration_key: str,
    configuration_resolver: ConfigurationResolver,
) -> list[str]:
    """Resolve the arguments passed to the build system.

    Args:
        configuration_key: Key of the configured arguments.
        configuration_resolver: Resolver the key is looked up with.

    Returns:
        Shell-split argument list.

    Raises:
        ArgumentParseError: If the configured value cannot be split.
    """
    value, _ = configuration_resolver.resolve(configuration_key)
    try:
        return shlex.split(value)
    except ValueError as e:
        raise ArgumentParseError(f"unable to parse arguments from {value}: {e}") from e


__all__ = [
    "AmbiguousArtifactError",
    "ArgumentParseError",
    "ArtifactResolutionError",
    "ArtifactResolver",
    "NoArtifactsError",
    "PatternMalformedError",
    "expand_glob",
    "list_directory",
    "new_artifact_resolver",
    "resolve_arguments",
    "translate_negation",
    "validate_glob",
]
