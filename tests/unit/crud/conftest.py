"""Shared fixtures for crud unit tests"""

import pytest
from sqlalchemy import create_engine
from sqlmodel import SQLModel, Session

from wxrbook.crud.models import Term
from wxrbook.crud.sql_repo import SQLContentStore, SQLTermStore


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Fresh session per test; changes are not committed."""
    with Session(engine) as s:
        yield s


@pytest.fixture(name="content")
def content_fixture(session):
    return SQLContentStore(session)


@pytest.fixture(name="terms")
def terms_fixture(session):
    return SQLTermStore(session)


@pytest.fixture(name="chapter_type")
def chapter_type_fixture(session):
    """A chapter-type term persisted to the session."""
    t = Term(name="Standard", taxonomy="chapter-type", slug="standard")
    session.add(t)
    session.flush()
    return t
