"""
Game Session State: the in-memory picture of one session.

All records are frozen. The controller replaces them (`dataclasses.replace`) inside its
transitions, observers only ever receive a finished snapshot.

`squares` is always derived from the rule engine's position (`derive_squares`); only the
transient flags (highlight / error / selected) are ever changed on top of it.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Self

from chesslink.chess.coordinates import SQUARE_COUNT, check_index, is_light, name_to_idx
from chesslink.chess.rules import RuleEngine
from chesslink.core.models import HighlightPolicy, Ownership
from chesslink.core.shared_types import Color, PieceType, SessionId, UserId


@dataclass(frozen=True)
class Piece:
    color: Color
    kind: PieceType
    is_selected: bool = False


@dataclass(frozen=True)
class Square:
    idx: int
    occupant: Optional[Piece] = None
    highlight: bool = False
    error: bool = False

    @property
    def is_light(self) -> bool:
        return is_light(self.idx)


@dataclass(frozen=True)
class Move:
    """
    A move between two square indices.

    needs_promotion without a promotion kind means the move is incomplete and must not be
    handed to the rule engine.
    """

    from_idx: int
    to_idx: int
    needs_promotion: bool = False
    promotion: Optional[PieceType] = None

    @property
    def is_incomplete(self) -> bool:
        return self.needs_promotion and self.promotion is None


@dataclass(frozen=True)
class Status:
    over: bool = False
    check: bool = False
    checkmate: bool = False
    stalemate: bool = False
    draw: bool = False
    insufficient_material: bool = False
    repetition: bool = False
    white_to_move: bool = True

    @property
    def mover(self) -> Color:
        return Color.WHITE if self.white_to_move else Color.BLACK

    @classmethod
    def idle(cls) -> Self:
        """No session: nothing can be played."""
        return cls(over=True)


@dataclass(frozen=True)
class NegotiationState:
    draw_offered_by: Optional[Color] = None
    draw_accepted: bool = False
    resigned_by: Optional[Color] = None
    # Local only, never sent to the remote store
    confirming_resign_locally: bool = False


def empty_squares() -> tuple[Square, ...]:
    return tuple(Square(idx) for idx in range(SQUARE_COUNT))


@dataclass(frozen=True)
class GameSession:
    local_user_id: UserId
    session_id: Optional[SessionId] = None
    squares: tuple[Square, ...] = field(default_factory=empty_squares)
    pending_promotion: Optional[Move] = None
    ownership: Ownership = Ownership()
    status: Status = Status.idle()
    negotiation: NegotiationState = NegotiationState()
    highlight_policy: HighlightPolicy = HighlightPolicy()
    # Set when the last push to the remote store failed and is waiting for a retry
    sync_error: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.squares) != SQUARE_COUNT:
            raise ValueError(f"A session needs {SQUARE_COUNT} squares, got {len(self.squares)}")
        for position, square in enumerate(self.squares):
            if square.idx != position:
                raise ValueError(f"Square {square.idx} stored at position {position}")

    # --- read helpers ---
    def square(self, idx: int) -> Square:
        return self.squares[check_index(idx)]

    @property
    def selected_idx(self) -> Optional[int]:
        return next(
            (sq.idx for sq in self.squares if sq.occupant and sq.occupant.is_selected),
            None,
        )

    @property
    def local_side(self) -> Optional[Color]:
        return self.ownership.side_of(self.local_user_id)

    @property
    def is_connected(self) -> bool:
        return self.session_id is not None

    def may_move(self, color: Color) -> bool:
        """
        Is the local identity allowed to move the pieces of `color`?

        Yes if nobody claimed that side yet, if we claimed it ourselves, or if both sides are
        held by the same identity (one browser playing both colours).
        """
        owner = self.ownership.owner(color)
        return (
            owner is None
            or owner == self.local_user_id
            or self.ownership.white == self.ownership.black
        )


# --- Derivations ---
def derive_squares(rules: RuleEngine) -> tuple[Square, ...]:
    """Fresh squares for the engine's current position, all transient flags reset."""
    squares = list(empty_squares())
    for placed in rules.pieces():
        idx = name_to_idx(placed.square)
        squares[idx] = Square(idx, occupant=Piece(color=placed.color, kind=placed.kind))
    return tuple(squares)


def derive_status(rules: RuleEngine, negotiation: NegotiationState) -> Status:
    """
    One rule engine query per field, then the negotiated outcomes on top.

    The overrides are applied last, every time, so an agreed draw or a resignation ends the
    game whatever the position says.
    """
    status = Status(
        over=rules.is_game_over(),
        check=rules.is_check(),
        checkmate=rules.is_checkmate(),
        stalemate=rules.is_stalemate(),
        draw=rules.is_draw(),
        insufficient_material=rules.is_insufficient_material(),
        repetition=rules.is_repetition(),
        white_to_move=rules.white_to_move(),
    )
    if negotiation.draw_accepted:
        status = replace(status, over=True, draw=True)
    if negotiation.resigned_by is not None:
        status = replace(status, over=True)
    return status


# --- Square helpers used by the controller ---
def update_square(squares: tuple[Square, ...], idx: int, **changes) -> tuple[Square, ...]:
    check_index(idx)
    updated = list(squares)
    updated[idx] = replace(updated[idx], **changes)
    return tuple(updated)


def set_selected(squares: tuple[Square, ...], idx: Optional[int]) -> tuple[Square, ...]:
    """Select the piece on `idx` (or nothing), deselecting whatever was selected before."""
    updated: list[Square] = []
    for square in squares:
        piece = square.occupant
        if piece is not None and piece.is_selected != (square.idx == idx):
            square = replace(square, occupant=replace(piece, is_selected=square.idx == idx))
        updated.append(square)
    return tuple(updated)


def set_highlights(squares: tuple[Square, ...], targets: Iterable[int]) -> tuple[Square, ...]:
    """Highlight exactly the `targets`, switch off every other highlight."""
    wanted = set(targets)
    return tuple(
        square if square.highlight == (square.idx in wanted) else replace(square, highlight=square.idx in wanted)
        for square in squares
    )


def clear_errors(squares: tuple[Square, ...]) -> tuple[Square, ...]:
    return tuple(replace(square, error=False) if square.error else square for square in squares)
