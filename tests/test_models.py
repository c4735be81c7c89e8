"""Tests for ORM models and database helpers.

These tests verify the run history models, their relationships, and the
engine/session helpers using SQLite databases.
"""

from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker

from appbuild.builds.models import ProvenanceRecord, RunRecord
from appbuild.db import Base, create_all_tables, get_engine, get_session
from appbuild.types import RunStatus


def make_run(**overrides) -> RunRecord:
    values = {
        "workspace": "/workspace",
        "cache_dir": "/cache/application",
        "fingerprint": "sha256:" + "ab" * 32,
    }
    values.update(overrides)
    return RunRecord(**values)


class TestDatabaseSetup:
    """Test database setup and helpers."""

    def test_get_engine_creates_parent_directory(self, tmp_path):
        """A file-backed SQLite URL gets its directory created."""
        db_path = tmp_path / "nested" / "db.sqlite"
        engine = get_engine(f"sqlite:///{db_path}")
        create_all_tables(engine)
        assert db_path.parent.is_dir()

    def test_create_all_tables(self, tmp_path):
        engine = get_engine(f"sqlite:///{tmp_path / 'test.db'}")
        create_all_tables(engine)

        tables = inspect(engine).get_table_names()
        assert "run_records" in tables
        assert "provenance_records" in tables
        assert "run_records" in Base.metadata.tables

    def test_get_session_commits(self, tmp_path):
        engine = get_engine(f"sqlite:///{tmp_path / 'test.db'}")
        create_all_tables(engine)
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

        with get_session(factory) as session:
            session.add(make_run())

        with get_session(factory) as session:
            assert session.query(RunRecord).count() == 1

    def test_get_session_rolls_back(self, tmp_path):
        engine = get_engine(f"sqlite:///{tmp_path / 'test.db'}")
        create_all_tables(engine)
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

        try:
            with get_session(factory) as session:
                session.add(make_run())
                raise RuntimeError("abort")
        except RuntimeError:
            pass

        with get_session(factory) as session:
            assert session.query(RunRecord).count() == 0


class TestRunRecord:
    """Test RunRecord model."""

    def test_defaults(self, session):
        run = make_run()
        session.add(run)
        session.commit()

        assert run.id is not None
        assert run.status == RunStatus.PENDING.value
        assert run.is_cache_hit is False
        assert run.requested_at is not None

    def test_lifecycle(self, session):
        run = make_run()
        session.add(run)

        run.mark_running()
        assert run.status == RunStatus.RUNNING.value
        assert run.started_at is not None

        run.mark_succeeded()
        assert run.status == RunStatus.SUCCEEDED.value
        assert run.finished_at is not None

    def test_mark_failed(self, session):
        run = make_run()
        run.mark_failed(error_type="build_failed", message="mvn exited 1")

        assert run.status == RunStatus.FAILED.value
        assert run.error_type == "build_failed"
        assert run.error_message == "mvn exited 1"

    def test_to_dict(self, session):
        run = make_run(artifacts=["/workspace/target/app.jar"])
        session.add(run)
        session.commit()

        data = run.to_dict()
        assert data["workspace"] == "/workspace"
        assert data["artifacts"] == ["/workspace/target/app.jar"]
        assert data["status"] == "pending"
        assert data["finished_at"] is None

    def test_repr(self):
        assert "sha256:abababab" in repr(make_run())


class TestProvenanceRecord:
    """Test ProvenanceRecord model."""

    def test_cascade_delete(self, session):
        run = make_run()
        run.provenance.append(ProvenanceRecord(name="build-dependencies", entry_metadata={}))
        session.add(run)
        session.commit()

        session.delete(run)
        session.commit()

        assert session.query(ProvenanceRecord).count() == 0
