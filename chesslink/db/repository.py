"""Protocol for the remote document store (implemented in memory and with SQL Alchemy)."""

import logging
from typing import Any, Callable, Protocol

from chesslink.core.exceptions import InvalidDocumentError
from chesslink.core.models import SessionDocument
from chesslink.core.shared_types import SessionId

logger = logging.getLogger(__name__)

DocumentCallback = Callable[[SessionDocument], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """Keyed session documents with push notifications."""

    def create(self, session_id: SessionId, document: SessionDocument) -> SessionDocument:
        """Store a whole document, replacing any previous one under the same id."""
        ...

    def read(self, session_id: SessionId) -> SessionDocument | None:
        """Get the document, if it exists."""
        ...

    def update(self, session_id: SessionId, partial: dict[str, Any]) -> SessionDocument | None:
        """Merge `partial` into the stored document. Unnamed fields are left alone."""
        ...

    def subscribe(self, session_id: SessionId, callback: DocumentCallback) -> Unsubscribe:
        """
        Call `callback` with the current document (if any) and again after every write.
        Writes made through this very store are delivered too.
        """
        ...


class Subscribers:
    """Callback bookkeeping shared by the store implementations."""

    def __init__(self) -> None:
        self._callbacks: dict[SessionId, list[DocumentCallback]] = {}

    def add(self, session_id: SessionId, callback: DocumentCallback) -> Unsubscribe:
        callbacks = self._callbacks.setdefault(session_id, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            # Unsubscribing twice is harmless
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._callbacks.pop(session_id, None)

        return unsubscribe

    def notify(self, session_id: SessionId, document: SessionDocument) -> int:
        """Deliver to every current subscriber. Returns the number of callbacks made."""
        callbacks = list(self._callbacks.get(session_id, []))
        logger.debug("Notifying %d subscriber(s) of session %s", len(callbacks), session_id)
        for callback in callbacks:
            callback(document)
        return len(callbacks)

    def count(self, session_id: SessionId) -> int:
        return len(self._callbacks.get(session_id, []))

    def session_ids(self) -> list[SessionId]:
        return list(self._callbacks)


def check_document_id(session_id: SessionId, document: SessionDocument) -> None:
    if document.session_id != session_id:
        raise InvalidDocumentError(
            f"Document for session {document.session_id!r} cannot be stored under {session_id!r}"
        )


def partial_without_id(partial: dict[str, Any], session_id: SessionId) -> dict[str, Any]:
    """The id is the key of the document, a partial update is not allowed to change it."""
    if partial.get("session_id", session_id) != session_id:
        raise InvalidDocumentError("A partial update cannot change the session id")
    return {key: value for key, value in partial.items() if key != "session_id"}
