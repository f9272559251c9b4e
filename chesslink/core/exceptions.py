"""
Custom exceptions shared across layers.

User mistakes (clicking the wrong square, negotiating without a side) never raise.
Everything below signals a programming error or a broken collaborator.
"""


class GameError(Exception):
    """Top-level error of the game domain."""


class SquareIndexError(GameError, IndexError):
    """A square index outside 0..63 reached code that requires a valid one."""


class InvalidSquareNameError(GameError, ValueError):
    """A square name that is not 'a1' - 'h8'."""


class IllegalMoveError(GameError):
    """The rule engine refused to apply a move."""


class InvalidPositionError(GameError):
    """The serialized position could not be loaded by the rule engine."""


class IdentityStorageError(GameError):
    """The local identity could not be read or persisted. Fatal for the client."""


# --- Storage ---
class RepositoryError(Exception):
    """Top-level error of the document storage layer."""


class RemoteStoreError(RepositoryError):
    """A read or write against the remote store failed. The caller may retry."""


class SessionNotFoundError(RepositoryError):
    """No document exists for the requested session id."""


class InvalidDocumentError(RepositoryError):
    """A (partial) document does not validate against the session document model."""
