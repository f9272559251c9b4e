"""Unit tests for chesslink/api/deep_link.py"""

import pytest

from chesslink.api.deep_link import session_id_from_path, session_path, session_url


@pytest.mark.parametrize(
    "path, session_id",
    [
        ("/", None),
        ("", None),
        ("/k3n7pqx2ab4mzz9e", "k3n7pqx2ab4mzz9e"),
        ("/k3n7pqx2ab4mzz9e/", "k3n7pqx2ab4mzz9e"),
        ("https://chess.example.org/k3n7pqx2ab4mzz9e?ref=share", "k3n7pqx2ab4mzz9e"),
        ("/games/k3n7pqx2ab4mzz9e", None),
    ],
)
def test_session_id_from_path(path: str, session_id: str | None) -> None:
    assert session_id_from_path(path) == session_id


def test_links_round_trip() -> None:
    assert session_path("abc") == "/abc"
    assert session_url("https://chess.example.org/", "abc") == "https://chess.example.org/abc"
    assert session_id_from_path(session_url("https://chess.example.org", "abc")) == "abc"
