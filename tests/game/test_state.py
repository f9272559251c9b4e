"""Unit tests for chesslink/game/state.py"""

import pytest

from chesslink.chess.rules import PythonChessRules
from chesslink.core.exceptions import SquareIndexError
from chesslink.core.models import Ownership
from chesslink.core.shared_types import Color, PieceType
from chesslink.game.state import (
    GameSession,
    Move,
    NegotiationState,
    Square,
    derive_squares,
    derive_status,
    empty_squares,
    set_highlights,
    set_selected,
)

CHECKMATE_FEN = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"


def test_squares_are_indexed_by_position() -> None:
    squares = derive_squares(PythonChessRules())
    assert len(squares) == 64
    assert all(square.idx == position for position, square in enumerate(squares))


def test_session_refuses_misplaced_squares() -> None:
    squares = list(empty_squares())
    squares[0], squares[1] = squares[1], squares[0]
    with pytest.raises(ValueError):
        GameSession(local_user_id="me", squares=tuple(squares))

    with pytest.raises(ValueError):
        GameSession(local_user_id="me", squares=empty_squares()[:63])


def test_square_lookup_traps_on_bad_index() -> None:
    session = GameSession(local_user_id="me")
    with pytest.raises(SquareIndexError):
        session.square(64)


def test_derive_squares_from_starting_position() -> None:
    squares = derive_squares(PythonChessRules())
    assert squares[4].occupant is not None
    assert squares[4].occupant.kind == PieceType.KING
    assert squares[4].occupant.color == Color.WHITE
    assert squares[59].occupant.kind == PieceType.QUEEN
    assert squares[59].occupant.color == Color.BLACK
    assert all(square.occupant is None for square in squares[16:48])
    assert not any(square.highlight or square.error for square in squares)
    assert not any(square.occupant.is_selected for square in squares if square.occupant)


def test_square_colour_is_derived() -> None:
    assert not Square(0).is_light
    assert Square(1).is_light


def test_status_of_starting_position() -> None:
    status = derive_status(PythonChessRules(), NegotiationState())
    assert status.white_to_move
    assert not any(
        [
            status.over,
            status.check,
            status.checkmate,
            status.stalemate,
            status.draw,
            status.insufficient_material,
            status.repetition,
        ]
    )


def test_status_follows_the_rule_engine() -> None:
    status = derive_status(PythonChessRules(CHECKMATE_FEN), NegotiationState())
    assert status.over and status.check and status.checkmate
    assert not status.draw


def test_agreed_draw_overrides_the_position() -> None:
    status = derive_status(PythonChessRules(), NegotiationState(draw_accepted=True))
    assert status.over
    assert status.draw
    assert not status.checkmate


@pytest.mark.parametrize("color", list(Color))
def test_resignation_ends_the_game(color: Color) -> None:
    status = derive_status(PythonChessRules(), NegotiationState(resigned_by=color))
    assert status.over
    assert not status.draw


def test_only_one_piece_selected() -> None:
    squares = derive_squares(PythonChessRules())
    squares = set_selected(squares, 12)
    squares = set_selected(squares, 11)
    selected = [square.idx for square in squares if square.occupant and square.occupant.is_selected]
    assert selected == [11]

    squares = set_selected(squares, None)
    assert not any(square.occupant.is_selected for square in squares if square.occupant)


def test_set_highlights_replaces_previous_ones() -> None:
    squares = set_highlights(empty_squares(), [20, 28])
    squares = set_highlights(squares, [16])
    assert [square.idx for square in squares if square.highlight] == [16]


def test_incomplete_move() -> None:
    assert Move(52, 60, needs_promotion=True).is_incomplete
    assert not Move(52, 60, needs_promotion=True, promotion=PieceType.QUEEN).is_incomplete
    assert not Move(12, 28).is_incomplete


@pytest.mark.parametrize(
    "ownership, me, allowed",
    [
        (Ownership(), "me", True),
        (Ownership(white="me"), "me", True),
        (Ownership(white="you"), "me", False),
        (Ownership(white="you", black="you"), "me", True),
        (Ownership(white="you", black="me"), "me", False),
    ],
)
def test_may_move_white(ownership: Ownership, me: str, allowed: bool) -> None:
    session = GameSession(local_user_id=me, ownership=ownership)
    assert session.may_move(Color.WHITE) is allowed


def test_local_side() -> None:
    assert GameSession(local_user_id="me", ownership=Ownership(black="me")).local_side == Color.BLACK
    assert GameSession(local_user_id="me", ownership=Ownership(white="you")).local_side is None
