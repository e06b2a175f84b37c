"""Shared fixtures: in-memory SQLite stores."""

import pytest
from lingotutor.database import init_db, make_engine, make_session_factory
from lingotutor.storage import SqlProfileStore, SqlSessionStore


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def session_store(session_factory):
    return SqlSessionStore(session_factory)


@pytest.fixture
def profile_store(session_factory):
    return SqlProfileStore(session_factory)
