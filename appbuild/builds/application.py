"""Build-and-cache orchestration.

This module provides the high-level build API:
- ApplicationFactory.new_application(): computes the cache fingerprint
  before anything in the workspace is touched
- Application.contribute(): builds (or reuses cached output), captures the
  artifacts, records SBOM and provenance, purges the source and restores
  the captured output into the workspace
- create_application(): wires everything from Settings

The pipeline is strictly sequential. The workspace is only purged after the
captured output has been verified; a failed restore is terminal and leaves
the workspace without source or output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from appbuild.artifacts.interest import InterestingFileDetector
from appbuild.artifacts.resolver import (
    ArtifactResolver,
    new_artifact_resolver,
    resolve_arguments,
)
from appbuild.builds.dependency_cache import DependencyCache, DependencyCacheError
from appbuild.builds.fingerprint import (
    FingerprintError,
    create_build_inputs,
    detect_tool_version,
)
from appbuild.builds.layer import CacheLayer
from appbuild.builds.ledger import InMemoryLedger, LedgerError, ProvenanceLedger
from appbuild.builds.runner import Executor, SubprocessExecutor, run_build
from appbuild.builds.sbom import SBOMScanner, SyftCLIScanner
from appbuild.builds.source import SourceRemover
from appbuild.config import ConfigurationResolver, Settings
from appbuild.types import RunState, SBOMFormat

logger = logging.getLogger(__name__)

# Formats of the build SBOM
BUILD_SBOM_FORMATS = (SBOMFormat.CYCLONEDX_JSON, SBOMFormat.SYFT_JSON)


@dataclass
class ContributionResult:
    """Outcome of a successful contribution.

    Attributes:
        cache_hit: Whether cached output was reused.
        artifacts: Resolved artifact paths (empty on a cache hit).
        fingerprint: Fingerprint of the run's inputs.
        cache_dir: Cache directory holding the output.
    """

    cache_hit: bool
    artifacts: list[str]
    fingerprint: str
    cache_dir: Path

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "cache_hit": self.cache_hit,
            "artifacts": list(self.artifacts),
            "fingerprint": self.fingerprint,
            "cache_dir": str(self.cache_dir),
        }


@dataclass
class Application:
    """A single build-and-cache run over an application workspace.

    Attributes:
        application_path: Workspace the build runs in and is restored into.
        command: Build command.
        arguments: Build arguments.
        artifact_resolver: Resolves the build output.
        layer: Cache directory with the expected fingerprint metadata.
        executor: Runs the build command.
        sbom_scanner: Scans the workspace after the build.
        ledger: Receives the provenance entry.
        dependency_cache: Build tool cache described in the provenance entry.
        source_remover: Purges the workspace.
        provenance_disabled: Skip recording the provenance entry.
        state: Last state reached.
    """

    application_path: Path
    command: str
    arguments: list[str]
    artifact_resolver: ArtifactResolver
    layer: CacheLayer
    executor: Executor = field(default_factory=SubprocessExecutor)
    sbom_scanner: SBOMScanner | None = None
    ledger: ProvenanceLedger = field(default_factory=InMemoryLedger)
    dependency_cache: DependencyCache | None = None
    source_remover: SourceRemover = field(default_factory=SourceRemover)
    provenance_disabled: bool = False
    state: RunState = RunState.INIT

    name = "application"

    def fingerprint(self) -> str:
        return self.layer.fingerprint()

    def _transition(self, state: RunState) -> None:
        logger.debug("Application state %s -> %s", self.state.value, state.value)
        self.state = state

    def contribute(self) -> ContributionResult:
        """Run the pipeline.

        Returns:
            ContributionResult describing the run.

        Raises:
            BuildExecutionError: If the build fails.
            ArtifactResolutionError: If the build output cannot be resolved.
            CaptureError: If the output cannot be captured and verified.
            ScanError: If the SBOM scan fails.
            LedgerError: If the provenance entry cannot be recorded.
            SourceRemovalError: If the workspace cannot be purged.
            RestoreError: If the output cannot be restored.
        """
        artifacts: list[str] = []

        def build(layer: CacheLayer) -> None:
            self._transition(RunState.BUILDING)
            run_build(self.executor, self.command, self.arguments, self.application_path)

            self._transition(RunState.RESOLVING)
            artifacts.extend(self.artifact_resolver.resolve_many(self.application_path))

            self._transition(RunState.CAPTURING)
            layer.capture(artifacts)

        cache_hit = self.layer.contribute(build)
        if cache_hit:
            self._transition(RunState.CACHE_HIT)

        if self.sbom_scanner is not None:
            self.sbom_scanner.scan_build(self.application_path, *BUILD_SBOM_FORMATS)
            self._transition(RunState.SBOM_SCANNED)

        if not self.provenance_disabled and self.dependency_cache is not None:
            try:
                entry = self.dependency_cache.as_provenance_entry()
            except DependencyCacheError as e:
                raise LedgerError(f"unable to generate build dependencies: {e}") from e
            self.ledger.append(entry)
            self._transition(RunState.PROVENANCE_RECORDED)

        self.source_remover.remove(self.application_path)
        self._transition(RunState.PURGED)

        self.layer.restore(self.application_path)
        self._transition(RunState.RESTORED)

        self._transition(RunState.DONE)
        return ContributionResult(
            cache_hit=cache_hit,
            artifacts=artifacts,
            fingerprint=self.fingerprint(),
            cache_dir=self.layer.path,
        )


@dataclass
class ApplicationFactory:
    """Creates Applications with their expected cache metadata.

    Attributes:
        executor: Executor shared by the version check and the build.
        tool_version_command: Command printing the build tool version.
    """

    executor: Executor = field(default_factory=SubprocessExecutor)
    tool_version_command: list[str] = field(default_factory=list)

    def expected_metadata(
        self,
        additional_metadata: dict[str, Any] | None,
        arguments: list[str],
        artifact_resolver: ArtifactResolver,
        application_path: Path,
    ) -> dict[str, Any]:
        """Gather the fingerprint metadata of a workspace.

        Raises:
            FingerprintError: If the listing or version check fails.
        """
        tool_version = detect_tool_version(self.executor, self.tool_version_command)
        inputs = create_build_inputs(
            application_path=application_path,
            arguments=arguments,
            artifact_pattern=artifact_resolver.pattern(),
            tool_version=tool_version,
            additional_metadata=additional_metadata,
        )
        return inputs.to_dict()

    def new_application(
        self,
        additional_metadata: dict[str, Any] | None,
        arguments: list[str],
        artifact_resolver: ArtifactResolver,
        cache_dir: Path,
        command: str,
        application_path: Path,
        *,
        dependency_cache: DependencyCache | None = None,
        sbom_scanner: SBOMScanner | None = None,
        ledger: ProvenanceLedger | None = None,
        source_remover: SourceRemover | None = None,
        provenance_disabled: bool = False,
    ) -> Application:
        """Create an Application, computing its fingerprint.

        Returns:
            Application in the ``fingerprint-computed`` state.

        Raises:
            FingerprintError: If the expected metadata cannot be generated.
        """
        try:
            expected = self.expected_metadata(
                additional_metadata, arguments, artifact_resolver, application_path
            )
        except FingerprintError as e:
            raise FingerprintError(f"failed to generate expected metadata: {e}", e.code) from e

        layer = CacheLayer(path=cache_dir, expected_metadata=expected)
        logger.info("Computed fingerprint: %s", layer.fingerprint()[:32])

        return Application(
            application_path=application_path,
            command=command,
            arguments=list(arguments),
            artifact_resolver=artifact_resolver,
            layer=layer,
            executor=self.executor,
            sbom_scanner=sbom_scanner,
            ledger=ledger if ledger is not None else InMemoryLedger(),
            dependency_cache=dependency_cache,
            source_remover=source_remover or SourceRemover(),
            provenance_disabled=provenance_disabled,
            state=RunState.FINGERPRINT_COMPUTED,
        )


def create_application(
    settings: Settings,
    command: str,
    configuration_resolver: ConfigurationResolver,
    ledger: ProvenanceLedger | None = None,
    executor: Executor | None = None,
    interesting_file_detector: InterestingFileDetector | None = None,
    additional_metadata: dict[str, Any] | None = None,
) -> Application:
    """Create an Application from settings and build configuration.

    Args:
        settings: Paths, keys and operational modes.
        command: Build command.
        configuration_resolver: Resolver for the build configuration keys.
        ledger: Provenance ledger; defaults to an InMemoryLedger.
        executor: Executor; defaults to a SubprocessExecutor.
        interesting_file_detector: Detector for single-artifact resolution.
        additional_metadata: Extra fingerprint metadata.

    Returns:
        Application in the ``fingerprint-computed`` state.
    """
    executor = executor or SubprocessExecutor()
    configuration_resolver.log_configurations()

    artifact_resolver = new_artifact_resolver(
        configuration_resolver,
        settings.artifact_key,
        settings.module_key,
        interesting_file_detector,
    )
    arguments = resolve_arguments(settings.arguments_key, configuration_resolver)

    dependency_cache: DependencyCache | None = None
    if settings.dependency_cache_dir is not None:
        dependency_cache = DependencyCache(
            path=settings.dependency_cache_dir,
            layer_path=settings.dependency_cache_layer,
        )
        dependency_cache.contribute()

    factory = ApplicationFactory(
        executor=executor,
        tool_version_command=list(settings.tool_version_command),
    )
    return factory.new_application(
        additional_metadata,
        arguments,
        artifact_resolver,
        settings.cache_dir,
        command,
        settings.workspace_dir,
        dependency_cache=dependency_cache,
        sbom_scanner=SyftCLIScanner(output_dir=settings.sbom_dir, executor=executor),
        ledger=ledger,
        source_remover=SourceRemover.from_configuration(configuration_resolver),
        provenance_disabled=settings.provenance_disabled,
    )


__all__ = [
    "BUILD_SBOM_FORMATS",
    "Application",
    "ApplicationFactory",
    "ContributionResult",
    "create_application",
]
