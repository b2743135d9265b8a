"""Unit tests for database.py and the db.py maintenance commands."""
import pytest

import database
import db
from database import DatabaseManager
from shared.models.entities import CacheEntry
from shared.services.cache_service import CacheService


@pytest.fixture
def manager(tmp_path):
    manager = DatabaseManager(database_url=f"sqlite:///{tmp_path / 'study.db'}")
    yield manager
    manager.close()


# ---------------------------------------------------------------------------
# DatabaseManager
# ---------------------------------------------------------------------------

class TestDatabaseManager:
    def test_create_all_returns_tables(self, manager):
        assert manager.create_all() == ["cache_entries", "user_states", "workflow_runs", "workflow_steps"]

    def test_health_check(self, manager):
        assert manager.is_sqlite is True
        assert manager.health_check() is True

    def test_health_check_failure(self, tmp_path):
        broken = DatabaseManager(database_url=f"sqlite:///{tmp_path / 'missing' / 'x.db'}")
        assert broken.health_check() is False

    def test_session_scope_commits(self, manager):
        manager.create_all()
        with manager.session_scope() as session:
            session.add(CacheEntry(key="k", value_json="1", expires_at=0))

        session = manager.session_factory()
        try:
            assert session.query(CacheEntry).count() == 1
        finally:
            session.close()

    def test_session_scope_rolls_back_and_reraises(self, manager):
        manager.create_all()
        with pytest.raises(RuntimeError):
            with manager.session_scope() as session:
                session.add(CacheEntry(key="k", value_json="1", expires_at=0))
                session.flush()
                raise RuntimeError("abort")

        session = manager.session_factory()
        try:
            assert session.query(CacheEntry).count() == 0
        finally:
            session.close()

    def test_close_discards_engine(self, manager):
        first = manager.engine
        manager.close()
        assert manager.engine is not first

    @pytest.mark.parametrize("url,expected", [
        ("postgresql://study:s3cret@db:5432/app", "postgresql://study:****@db:5432/app"),
        ("postgresql://db:5432/app", "postgresql://db:5432/app"),
        ("sqlite:///./study_buddy.db", "sqlite:///./study_buddy.db"),
    ])
    def test_masked_url(self, url, expected):
        assert DatabaseManager(database_url=url)._masked_url() == expected


# ---------------------------------------------------------------------------
# Global manager and CLI
# ---------------------------------------------------------------------------

class TestGlobalManager:
    @pytest.fixture(autouse=True)
    def _isolated(self, manager, monkeypatch):
        monkeypatch.setattr(database, "_db_manager", manager)

    def test_get_db_yields_session(self, manager):
        manager.create_all()
        gen = database.get_db()
        session = next(gen)
        assert session.query(CacheEntry).count() == 0
        gen.close()

    def test_migrate(self, manager, capsys):
        db.migrate()
        assert "workflow_runs" in capsys.readouterr().out
        assert manager.health_check() is True

    def test_purge_cache(self, manager, capsys):
        manager.create_all()
        with manager.session_scope() as session:
            CacheService(session, clock=lambda: 1_000).put("old", [1], ttl_seconds=1)
            CacheService(session, clock=lambda: 1_000).put("fresh", [2], ttl_seconds=10**10)

        db.purge_cache()
        assert "Removed 1 expired cache entries" in capsys.readouterr().out

    def test_reset_closes_manager(self, manager):
        engine = manager.engine
        database.reset_db_manager()
        assert database._db_manager is None
        assert manager.engine is not engine
