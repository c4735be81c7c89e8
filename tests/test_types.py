"""Tests for shared types module."""

from appbuild.types import (
    CachedDependency,
    FileEntry,
    ProvenanceEntry,
    RunState,
    RunStatus,
    SBOMFormat,
)


class TestEnums:
    """Test enum definitions."""

    def test_run_status_values(self) -> None:
        """RunStatus should have expected values."""
        assert RunStatus.PENDING.value == "pending"
        assert RunStatus.RUNNING.value == "running"
        assert RunStatus.SUCCEEDED.value == "succeeded"
        assert RunStatus.FAILED.value == "failed"

    def test_run_state_order(self) -> None:
        """RunState should start at init and end at done."""
        states = list(RunState)
        assert states[0] is RunState.INIT
        assert states[-1] is RunState.DONE
        assert RunState.CACHE_HIT.value == "cache-hit"

    def test_sbom_format_media_types(self) -> None:
        assert SBOMFormat.CYCLONEDX_JSON.value == "application/vnd.cyclonedx+json"
        assert SBOMFormat.SYFT_JSON.value == "application/vnd.syft+json"


class TestDataclasses:
    """Test dataclass definitions."""

    def test_file_entry_to_dict(self) -> None:
        entry = FileEntry(path="/workspace/pom.xml", size=10, mtime=1.5)
        assert entry.to_dict() == {"path": "/workspace/pom.xml", "size": 10, "mtime": 1.5}

    def test_cached_dependency_to_dict(self) -> None:
        dependency = CachedDependency(name="guava", version="32.1.2-jre", sha256="ab")
        assert dependency.to_dict() == {
            "name": "guava",
            "version": "32.1.2-jre",
            "sha256": "ab",
        }

    def test_provenance_entry_defaults(self) -> None:
        entry = ProvenanceEntry(name="build-dependencies")
        assert entry.metadata == {}
        assert entry.build is False
        assert entry.launch is False
