"""Unit tests for chesslink/core/models.py"""

import pytest

from chesslink.core.exceptions import InvalidDocumentError
from chesslink.core.models import STARTING_POSITION, Ownership, SessionDocument, merge_partial
from chesslink.core.shared_types import Color


def test_fresh_document() -> None:
    document = SessionDocument.fresh("abc")
    assert document.ownership == Ownership(white=None, black=None)
    assert document.negotiation.draw_offered_by is None
    assert not document.negotiation.draw_accepted
    assert document.negotiation.resigned_by is None
    assert document.highlight_policy.offered_by is None
    assert document.highlight_policy.accepted
    assert document.position == STARTING_POSITION


def test_partial_update_leaves_other_fields_alone() -> None:
    document = SessionDocument.fresh("abc").merged({"ownership": {"white": "me"}})
    document = document.merged({"negotiation": {"draw_offered_by": "black"}})

    assert document.ownership == Ownership(white="me")
    assert document.negotiation.draw_offered_by == Color.BLACK
    assert not document.negotiation.draw_accepted
    assert document.position == STARTING_POSITION


@pytest.mark.parametrize(
    "partial",
    [
        {"negotiation": {"draw_offered_by": "purple"}},
        {"position": "not a fen"},
        {"highlight_policy": {"accepted": "maybe"}},
    ],
)
def test_invalid_partial(partial: dict) -> None:
    with pytest.raises(InvalidDocumentError):
        SessionDocument.fresh("abc").merged(partial)


def test_merge_partial_is_recursive() -> None:
    base = {"a": {"b": 1, "c": 2}, "d": 3}
    assert merge_partial(base, {"a": {"b": 5}}) == {"a": {"b": 5, "c": 2}, "d": 3}
    assert base == {"a": {"b": 1, "c": 2}, "d": 3}


def test_side_of() -> None:
    assert Ownership(white="me", black="me").side_of("me") == Color.WHITE
    assert Ownership(black="me").side_of("me") == Color.BLACK
    assert Ownership(white="you").side_of("me") is None
