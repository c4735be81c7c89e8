"""Shared fixtures: archive builders and an in-memory database."""

import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from appbuild.db import Base

ArchiveFactory = Callable[..., Path]


def write_archive(path: Path, entries: dict[str, bytes | None]) -> Path:
    """Write a zip archive; a None value creates a directory entry."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, content in entries.items():
            if content is None:
                archive.writestr(name.rstrip("/") + "/", b"")
            else:
                archive.writestr(name, content)
    return path


@pytest.fixture
def make_archive() -> ArchiveFactory:
    """Return a builder for arbitrary zip archives."""
    return write_archive


@pytest.fixture
def make_jar() -> ArchiveFactory:
    """Return a builder for JARs with an optional Main-Class."""

    def _make(path: Path, main_class: str | None = None, extra: dict | None = None) -> Path:
        manifest = "Manifest-Version: 1.0\n"
        if main_class:
            manifest += f"Main-Class: {main_class}\n"
        entries: dict[str, bytes | None] = {
            "META-INF/MANIFEST.MF": manifest.encode("utf-8"),
            "com/example/App.class": b"\xca\xfe\xba\xbe",
        }
        entries.update(extra or {})
        return write_archive(path, entries)

    return _make


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    # Register models before creating tables
    from appbuild.builds import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(engine):
    """Create a session factory for testing."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """Create a session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
