"""Provenance ledger.

This module handles:
- The ledger capability the orchestrator appends provenance entries to
- An in-memory ledger (collects entries for the caller)
- A database ledger persisting entries as ProvenanceRecord rows
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from appbuild.builds.models import ProvenanceRecord, RunRecord
from appbuild.errors import LEDGER_FAILED, AppBuildError
from appbuild.types import ProvenanceEntry

logger = logging.getLogger(__name__)


class LedgerError(AppBuildError):
    """Raised when a provenance entry cannot be recorded."""

    def __init__(self, message: str, code: str = LEDGER_FAILED) -> None:
        super().__init__(message, code)


class ProvenanceLedger(Protocol):
    """Append-only sink for provenance entries."""

    def append(self, entry: ProvenanceEntry) -> None:
        """Record an entry."""
        ...


@dataclass
class InMemoryLedger:
    """Ledger keeping entries in a list."""

    entries: list[ProvenanceEntry] = field(default_factory=list)

    def append(self, entry: ProvenanceEntry) -> None:
        self.entries.append(entry)


@dataclass
class DatabaseLedger:
    """Ledger persisting entries through a SQLAlchemy session.

    Attributes:
        session: Session entries are added to; the caller commits.
        run: Run the entries belong to, if any.
    """

    session: Session
    run: RunRecord | None = None

    def append(self, entry: ProvenanceEntry) -> None:
        """Persist an entry.

        Raises:
            LedgerError: If the entry cannot be flushed.
        """
        record = ProvenanceRecord(
            name=entry.name,
            entry_metadata=entry.metadata,
            build=entry.build,
            launch=entry.launch,
            run=self.run,
        )
        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as e:
            raise LedgerError(f"unable to record provenance entry {entry.name}: {e}") from e

        logger.debug("Recorded provenance entry %s (id=%s)", entry.name, record.id)


__all__ = [
    "DatabaseLedger",
    "InMemoryLedger",
    "LedgerError",
    "ProvenanceLedger",
]
