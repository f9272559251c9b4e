"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures required for testing multiple layers.
"""

from typing import Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from chesslink.chess.rules import PythonChessRules
from chesslink.db.memory_store import InMemoryDocumentStore
from chesslink.db.schema import Base
from chesslink.game.controller import SessionController

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)

USER_1 = "user-one"
USER_2 = "user-two"


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of the store independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session_other() -> Generator[Session, None, None]:
    """A second connection to the same tables: mocks another process sharing the database."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


def make_client(store: InMemoryDocumentStore, user_id: str) -> SessionController:
    return SessionController(store, PythonChessRules(), user_id)


@pytest.fixture
def white(store: InMemoryDocumentStore) -> SessionController:
    """Client of USER_1, who will be the first to move (and so claims white)."""
    return make_client(store, USER_1)


@pytest.fixture
def black(store: InMemoryDocumentStore) -> SessionController:
    """Client of USER_2."""
    return make_client(store, USER_2)


@pytest.fixture
def game(white: SessionController, black: SessionController) -> str:
    """A fresh session that both clients follow."""
    session_id = white.new_game()
    black.connect(session_id)
    return session_id
