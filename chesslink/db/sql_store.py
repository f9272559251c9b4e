"""Implementation of DocumentStore using SQLAlchemy"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

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
from chesslink.db.schema import DBSessionDocument

logger = logging.getLogger(__name__)


class SQLDocumentStore:
    """
    Documents stored as JSON rows.

    Subscribers of this store object hear about its own writes straight away. Writes from other
    processes sharing the database are picked up by `poll()`, which compares revisions.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self._subscribers = Subscribers()
        self._seen_revisions: dict[SessionId, int] = {}

    def create(self, session_id: SessionId, document: SessionDocument) -> SessionDocument:
        """Store new document (or overwrite the old one under the same id)."""
        check_document_id(session_id, document)
        try:
            row = self._fetch_document(session_id)
            if row is None:
                row = DBSessionDocument(id=session_id, document={}, revision=0)
                self.db.add(row)
            row.document = document.model_dump(mode="json")
            row.revision = (row.revision or 0) + 1
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as exc:
            self._rollback()
            raise RemoteStoreError(f"Cannot create session {session_id}: {exc}") from exc

        stored = self._to_model(row)
        self._notify(session_id, stored, row.revision)
        return stored

    def read(self, session_id: SessionId) -> SessionDocument | None:
        """Get document by id, if record exists."""
        try:
            row = self._fetch_document(session_id)
        except SQLAlchemyError as exc:
            self._rollback()
            raise RemoteStoreError(f"Cannot read session {session_id}: {exc}") from exc
        if row is None:
            return None
        return self._to_model(row)

    def update(self, session_id: SessionId, partial: dict[str, Any]) -> SessionDocument | None:
        """Merge new info into an existing record."""
        partial = partial_without_id(partial, session_id)
        try:
            row = self._fetch_document(session_id)
            if row is None:
                return None
            updated = self._to_model(row).merged(partial)
            row.document = updated.model_dump(mode="json")
            row.revision += 1
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as exc:
            self._rollback()
            raise RemoteStoreError(f"Cannot update session {session_id}: {exc}") from exc

        self._notify(session_id, updated, row.revision)
        return updated

    def subscribe(self, session_id: SessionId, callback: DocumentCallback) -> Unsubscribe:
        try:
            row = self._fetch_document(session_id)
        except SQLAlchemyError as exc:
            self._rollback()
            raise RemoteStoreError(f"Cannot subscribe to session {session_id}: {exc}") from exc

        unsubscribe = self._subscribers.add(session_id, callback)
        if row is not None:
            self._seen_revisions[session_id] = row.revision
            callback(self._to_model(row))
        return unsubscribe

    def poll(self) -> int:
        """Deliver documents changed behind our back. Returns the number of callbacks made."""
        delivered = 0
        try:
            # Forget cached rows, other connections may have written since
            self.db.expire_all()
            for session_id in self._subscribers.session_ids():
                row = self._fetch_document(session_id)
                if row is None or row.revision == self._seen_revisions.get(session_id):
                    continue
                delivered += self._notify(session_id, self._to_model(row), row.revision)
        except SQLAlchemyError as exc:
            self._rollback()
            raise RemoteStoreError(f"Cannot poll sessions: {exc}") from exc
        return delivered

    def subscriber_count(self, session_id: SessionId) -> int:
        return self._subscribers.count(session_id)

    # -- Internal helpers --
    def _fetch_document(self, session_id: SessionId) -> DBSessionDocument | None:
        query = select(DBSessionDocument).where(DBSessionDocument.id == session_id)
        return self.db.scalar(query)

    def _notify(self, session_id: SessionId, document: SessionDocument, revision: int) -> int:
        self._seen_revisions[session_id] = revision
        return self._subscribers.notify(session_id, document)

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed")

    def _to_model(self, row: DBSessionDocument) -> SessionDocument:
        """Convert SQLAlchemy row to the transport model."""
        return SessionDocument.validated(row.document)
