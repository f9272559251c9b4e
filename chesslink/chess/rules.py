"""
The rule engine: everything about the rules of chess is delegated to python-chess.

The session layer only ever talks to the `RuleEngine` protocol, using square names
('e2') and the shared Color / PieceType types, so it never sees a `chess.Board`.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import chess

from chesslink.core.exceptions import IllegalMoveError, InvalidPositionError
from chesslink.core.shared_types import Color, PieceType, SquareName

PIECE_TYPES: dict[int, PieceType] = {
    chess.PAWN: PieceType.PAWN,
    chess.KNIGHT: PieceType.KNIGHT,
    chess.BISHOP: PieceType.BISHOP,
    chess.ROOK: PieceType.ROOK,
    chess.QUEEN: PieceType.QUEEN,
    chess.KING: PieceType.KING,
}

TO_PIECE_TYPE: dict[PieceType, int] = {value: key for key, value in PIECE_TYPES.items()}

# Half moves without capture or pawn move before the game is drawn
FIFTY_MOVE_HALF_MOVES = 100


@dataclass(frozen=True)
class LegalMove:
    """A destination reachable from some origin. Promotion variants are collapsed into one."""

    to: SquareName
    needs_promotion: bool = False


@dataclass(frozen=True)
class PlacedPiece:
    square: SquareName
    color: Color
    kind: PieceType


class RuleEngine(Protocol):
    """What the session needs from a rule engine."""

    def clear(self) -> None:
        """Empty board."""
        ...

    def load(self, position: str) -> None: ...

    def position(self) -> str: ...

    def starting_position(self) -> str: ...

    def legal_moves_from(self, square: SquareName) -> list[LegalMove]: ...

    def apply(
        self, from_square: SquareName, to_square: SquareName, promotion: Optional[PieceType] = None
    ) -> None: ...

    def pieces(self) -> list[PlacedPiece]: ...

    def white_to_move(self) -> bool: ...

    def is_check(self) -> bool: ...

    def is_checkmate(self) -> bool: ...

    def is_stalemate(self) -> bool: ...

    def is_draw(self) -> bool: ...

    def is_insufficient_material(self) -> bool: ...

    def is_repetition(self) -> bool: ...

    def is_game_over(self) -> bool: ...


class PythonChessRules:
    """RuleEngine backed by a `chess.Board`."""

    def __init__(self, position: Optional[str] = None) -> None:
        self.board = chess.Board()
        if position is not None:
            self.load(position)

    # --- position handling ---
    def clear(self) -> None:
        self.board.clear()

    def load(self, position: str) -> None:
        """
        Replace the current position. The move history (and with it repetition tracking) is lost.
        An unreadable position leaves the board as it was.
        """
        try:
            board = chess.Board(position)
        except ValueError as exc:
            raise InvalidPositionError(f"Cannot load position {position!r}: {exc}") from exc
        self.board = board

    def position(self) -> str:
        return self.board.fen()

    def starting_position(self) -> str:
        return chess.STARTING_FEN

    # --- moves ---
    def legal_moves_from(self, square: SquareName) -> list[LegalMove]:
        origin = chess.parse_square(square)
        destinations: dict[SquareName, LegalMove] = {}
        for move in self.board.legal_moves:
            if move.from_square != origin:
                continue
            name = chess.square_name(move.to_square)
            destinations[name] = LegalMove(to=name, needs_promotion=move.promotion is not None)
        return sorted(destinations.values(), key=lambda legal: chess.parse_square(legal.to))

    def apply(
        self, from_square: SquareName, to_square: SquareName, promotion: Optional[PieceType] = None
    ) -> None:
        move = chess.Move(
            chess.parse_square(from_square),
            chess.parse_square(to_square),
            promotion=TO_PIECE_TYPE[promotion] if promotion else None,
        )
        if move not in self.board.legal_moves:
            raise IllegalMoveError(f"Move not allowed: {move.uci()}")
        self.board.push(move)

    # --- board content ---
    def pieces(self) -> list[PlacedPiece]:
        return [
            PlacedPiece(
                square=chess.square_name(square),
                color=Color.WHITE if piece.color == chess.WHITE else Color.BLACK,
                kind=PIECE_TYPES[piece.piece_type],
            )
            for square, piece in self.board.piece_map().items()
        ]

    def white_to_move(self) -> bool:
        return self.board.turn == chess.WHITE

    # --- end conditions ---
    def is_check(self) -> bool:
        return self.board.is_check()

    def is_checkmate(self) -> bool:
        return self.board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self.board.is_stalemate()

    def is_insufficient_material(self) -> bool:
        return self.board.is_insufficient_material()

    def is_repetition(self) -> bool:
        return self.board.is_repetition(3)

    def is_draw(self) -> bool:
        return (
            self.board.halfmove_clock >= FIFTY_MOVE_HALF_MOVES
            or self.is_stalemate()
            or self.is_insufficient_material()
            or self.is_repetition()
        )

    def is_game_over(self) -> bool:
        return self.is_checkmate() or self.is_draw()
