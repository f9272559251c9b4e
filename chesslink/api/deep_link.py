"""
Deep links: the session id is the one and only path segment of the client's address.

    /            -> no session
    /k3n7pqx2ab4mzz9e -> session 'k3n7pqx2ab4mzz9e'
"""

from typing import Optional
from urllib.parse import urlsplit

from chesslink.core.shared_types import SessionId


def session_path(session_id: SessionId) -> str:
    return f"/{session_id}"


def session_url(base_url: str, session_id: SessionId) -> str:
    """Shareable address of a session."""
    return f"{base_url.rstrip('/')}{session_path(session_id)}"


def session_id_from_path(path: str) -> Optional[SessionId]:
    """
    Session id named by an address (or just its path), None for the root.

    Anything with more than one segment is not one of our links.
    """
    segments = [segment for segment in urlsplit(path).path.split("/") if segment]
    if len(segments) != 1:
        return None
    return segments[0]
