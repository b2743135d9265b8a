"""Pytest configuration and shared fixtures."""
import pytest
from unittest.mock import Mock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shared.models.entities import Base
from tests.helpers import FakeClock, inline_dispatch
from workflows.registry import build_workflows
from workflows.runner import WorkflowRunner


@pytest.fixture(scope="function")
def session_factory(tmp_path):
    """
    Session factory over a fresh SQLite database file.

    A file (rather than :memory:) gives every session its own connection,
    the same way the workflow runner and request handlers see the database.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
        echo=False,
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(session_factory):
    """A test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_llm():
    """Mock text generator; returns an empty string unless configured."""
    llm = Mock()
    llm.generate.return_value = ""
    return llm


@pytest.fixture
def runner(session_factory, mock_llm, clock):
    """Workflow runner executing runs inline, with no retry delay."""
    return WorkflowRunner(
        session_factory=session_factory,
        workflows=build_workflows(mock_llm, quiz_cache_ttl_seconds=3600),
        clock=clock,
        dispatch=inline_dispatch,
        step_max_attempts=3,
        step_retry_delay=0,
    )
