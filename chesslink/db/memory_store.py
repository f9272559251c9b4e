"""DocumentStore kept in a dictionary. Every client in the process shares the same instance."""

import logging
from typing import Any

from chesslink.core.exceptions import RemoteStoreError
from chesslink.core.models import SessionDocument
from chesslink.core.shared_types import SessionId
from chesslink.db.repository import (
    DocumentCallback,
    Subscribers,
    Unsubscribe,
    check_document_id,
    partial_without_id,
)

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """
    Data stored in a dict, fan-out happens synchronously inside the write.

    `fail_writes` / `fail_reads` make the store behave like an unreachable remote, so the
    retry path of the clients can be exercised.
    """

    def __init__(self) -> None:
        self._documents: dict[SessionId, SessionDocument] = {}
        self._subscribers = Subscribers()
        self.fail_writes = False
        self.fail_reads = False

    def create(self, session_id: SessionId, document: SessionDocument) -> SessionDocument:
        check_document_id(session_id, document)
        self._check_writable(session_id)
        self._documents[session_id] = document
        self._subscribers.notify(session_id, document)
        return document

    def read(self, session_id: SessionId) -> SessionDocument | None:
        if self.fail_reads:
            raise RemoteStoreError(f"Cannot read session {session_id}: store unreachable")
        return self._documents.get(session_id)

    def update(self, session_id: SessionId, partial: dict[str, Any]) -> SessionDocument | None:
        self._check_writable(session_id)
        current = self._documents.get(session_id)
        if current is None:
            logger.debug("Ignoring update of unknown session %s", session_id)
            return None
        updated = current.merged(partial_without_id(partial, session_id))
        self._documents[session_id] = updated
        self._subscribers.notify(session_id, updated)
        return updated

    def subscribe(self, session_id: SessionId, callback: DocumentCallback) -> Unsubscribe:
        unsubscribe = self._subscribers.add(session_id, callback)
        current = self._documents.get(session_id)
        if current is not None:
            callback(current)
        return unsubscribe

    def subscriber_count(self, session_id: SessionId) -> int:
        return self._subscribers.count(session_id)

    def _check_writable(self, session_id: SessionId) -> None:
        if self.fail_writes:
            raise RemoteStoreError(f"Cannot write session {session_id}: store unreachable")
