"""
Boundary layer data model(s).

The session document is what every client reads from and writes to the remote store.
Only the fields that must be shared live here: the board squares and the game status are
never stored, every client derives them from `position` itself.
"""

from typing import Any, Optional, Self

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from chesslink.core.exceptions import InvalidDocumentError
from chesslink.core.shared_types import Color, SessionId, UserId

# python-chess / chess.js starting FEN. Kept here so the store layer does not need the rule engine.
STARTING_POSITION = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


class Ownership(BaseModel):
    """Which identity plays which side. None means the side is unclaimed."""

    model_config = ConfigDict(frozen=True)

    white: Optional[UserId] = None
    black: Optional[UserId] = None

    def owner(self, color: Color) -> Optional[UserId]:
        return self.white if color == Color.WHITE else self.black

    def side_of(self, user_id: UserId) -> Optional[Color]:
        """The side claimed by user_id. White wins if the identity holds both."""
        if self.white == user_id:
            return Color.WHITE
        if self.black == user_id:
            return Color.BLACK
        return None


class Negotiation(BaseModel):
    model_config = ConfigDict(frozen=True)

    draw_offered_by: Optional[Color] = None
    draw_accepted: bool = False
    resigned_by: Optional[Color] = None


class HighlightPolicy(BaseModel):
    """Whether legal destinations get highlighted, and who asked to change that."""

    model_config = ConfigDict(frozen=True)

    offered_by: Optional[Color] = None
    accepted: bool = True


class SessionDocument(BaseModel):
    """Transport-safe representation of one session as kept by the remote store."""

    model_config = ConfigDict(frozen=True)

    session_id: SessionId
    ownership: Ownership = Ownership()
    negotiation: Negotiation = Negotiation()
    highlight_policy: HighlightPolicy = HighlightPolicy()
    position: str = STARTING_POSITION

    @field_validator("position")
    @classmethod
    def validate_position(cls, value: str) -> str:
        # Full parsing is the rule engine's job, only reject what can never be a FEN string.
        parts = value.strip().split(" ")
        if len(parts) != 6:
            raise ValueError("position must contain 6 space-separated parts.")
        return value.strip()

    @classmethod
    def fresh(cls, session_id: SessionId, position: str = STARTING_POSITION) -> Self:
        """A new game: nobody has claimed a side, nothing is being negotiated."""
        return cls(session_id=session_id, position=position)

    def merged(self, partial: dict[str, Any]) -> Self:
        """Apply a partial (nested) update. Fields not named in `partial` keep their value."""
        data = merge_partial(self.model_dump(mode="json"), partial)
        return self.validated(data)

    @classmethod
    def validated(cls, data: dict[str, Any]) -> Self:
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidDocumentError(f"Invalid session document: {exc}") from exc


def merge_partial(base: dict[str, Any], partial: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge: nested dicts are merged, anything else replaces the old value."""
    merged = dict(base)
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_partial(merged[key], value)
        else:
            merged[key] = value
    return merged
