"""
Client boot: identity, rule engine, remote store and controller wired together.

A client that is opened on a deep link ('/<session id>') joins that session right away.
"""

import logging
from typing import Optional

from chesslink.api.deep_link import session_id_from_path
from chesslink.chess.rules import PythonChessRules
from chesslink.config import Settings
from chesslink.core.exceptions import SessionNotFoundError
from chesslink.db.database import make_engine, make_session_factory
from chesslink.db.memory_store import InMemoryDocumentStore
from chesslink.db.repository import DocumentStore
from chesslink.db.sql_store import SQLDocumentStore
from chesslink.game.controller import AddressCallback, SessionController
from chesslink.game.identity import JsonFileStorage, KeyValueStorage, get_or_create_local_identity

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def make_store(settings: Settings) -> DocumentStore:
    if settings.uses_memory_store:
        return InMemoryDocumentStore()
    session_factory = make_session_factory(make_engine(settings.database_url))
    return SQLDocumentStore(session_factory())


def boot(
    path: str = "/",
    settings: Optional[Settings] = None,
    *,
    store: Optional[DocumentStore] = None,
    storage: Optional[KeyValueStorage] = None,
    on_address: Optional[AddressCallback] = None,
) -> SessionController:
    """Build a client. `store` / `storage` override what the settings would create."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    storage = storage if storage is not None else JsonFileStorage(settings.identity_path)
    user_id = get_or_create_local_identity(storage)
    store = store if store is not None else make_store(settings)

    controller = SessionController(store, PythonChessRules(), user_id, on_address=on_address)

    session_id = session_id_from_path(path)
    if session_id is not None:
        try:
            controller.connect(session_id)
        except SessionNotFoundError:
            logger.warning("Deep link %s does not name an existing session", path)
    return controller
