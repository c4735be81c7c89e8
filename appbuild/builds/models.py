"""Run history ORM models.

This module defines the RunRecord and ProvenanceRecord models for storing
orchestration runs and the provenance entries they produced.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appbuild.db import Base
from appbuild.types import RunStatus


class RunRecord(Base):
    """ORM model for orchestration runs.

    Attributes:
        id: Primary key.
        workspace: Application workspace the run operated on.
        cache_dir: Cache directory used by the run.
        fingerprint: Cache fingerprint of the run's inputs.
        status: Run status (pending, running, succeeded, failed).
        state: Last state reached by the orchestrator.
        requested_at: Timestamp when the run was requested.
        started_at: Timestamp when the run started executing.
        finished_at: Timestamp when the run finished.
        is_cache_hit: Whether the run reused cached output.
        artifacts: Resolved artifact paths (empty on a cache hit).
        error_type: Error code if the run failed.
        error_message: Error message if the run failed.
    """

    __tablename__ = "run_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    workspace: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    cache_dir: Mapped[str] = mapped_column(String(500), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Status and timing
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RunStatus.PENDING.value, index=True
    )
    state: Mapped[str | None] = mapped_column(String(40), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    is_cache_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    artifacts: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    # Error tracking
    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    provenance: Mapped[list["ProvenanceRecord"]] = relationship(
        "ProvenanceRecord", back_populates="run", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_run_records_workspace_status", "workspace", "status"),)

    def __repr__(self) -> str:
        return (
            f"<RunRecord(id={self.id}, status='{self.status}', "
            f"fingerprint='{self.fingerprint[:16]}...')>"
        )

    def mark_running(self) -> None:
        """Mark this run as running."""
        self.status = RunStatus.RUNNING.value
        self.started_at = datetime.now()

    def mark_succeeded(self) -> None:
        """Mark this run as succeeded."""
        self.status = RunStatus.SUCCEEDED.value
        self.finished_at = datetime.now()

    def mark_failed(
        self, error_type: str | None = None, message: str | None = None
    ) -> None:
        """Mark this run as failed.

        Args:
            error_type: Error code.
            message: Error message details.
        """
        self.status = RunStatus.FAILED.value
        self.finished_at = datetime.now()
        if error_type:
            self.error_type = error_type
        if message:
            self.error_message = message

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "workspace": self.workspace,
            "cache_dir": self.cache_dir,
            "fingerprint": self.fingerprint,
            "status": self.status,
            "state": self.state,
            "is_cache_hit": self.is_cache_hit,
            "artifacts": list(self.artifacts or []),
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


class ProvenanceRecord(Base):
    """ORM model for a provenance ledger entry.

    Attributes:
        id: Primary key.
        run_id: Optional foreign key to the RunRecord that produced it.
        name: Entry name, e.g. ``build-dependencies``.
        entry_metadata: Entry metadata.
        build: Whether the entry describes build-time content.
        launch: Whether the entry describes launch-time content.
        created_at: Timestamp when the entry was recorded.
    """

    __tablename__ = "provenance_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("run_records.id"), nullable=True, index=True
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    entry_metadata: Mapped[dict[str, object] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )
    build: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    launch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    run: Mapped[RunRecord | None] = relationship("RunRecord", back_populates="provenance")

    def __repr__(self) -> str:
        return f"<ProvenanceRecord(id={self.id}, name='{self.name}')>"


__all__ = [
    "ProvenanceRecord",
    "RunRecord",
]
