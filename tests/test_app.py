"""Unit tests for chesslink/app.py"""

from pathlib import Path

from chesslink.app import boot, make_store
from chesslink.config import Settings
from chesslink.core.models import SessionDocument
from chesslink.db.memory_store import InMemoryDocumentStore
from chesslink.db.sql_store import SQLDocumentStore
from chesslink.game.identity import IDENTITY_KEY, MemoryStorage


def memory_settings(tmp_path: Path) -> Settings:
    return Settings(database_url="memory", identity_path=tmp_path / "identity.json")


def test_boot_without_deep_link(tmp_path: Path) -> None:
    controller = boot("/", memory_settings(tmp_path))
    assert controller.state.session_id is None
    assert controller.state.local_user_id
    assert (tmp_path / "identity.json").exists()


def test_boot_keeps_the_identity(tmp_path: Path) -> None:
    first = boot("/", memory_settings(tmp_path))
    second = boot("/", memory_settings(tmp_path))
    assert first.state.local_user_id == second.state.local_user_id


def test_boot_on_deep_link(tmp_path: Path, store: InMemoryDocumentStore) -> None:
    store.create("abc", SessionDocument.fresh("abc"))
    controller = boot(
        "/abc", memory_settings(tmp_path), store=store, storage=MemoryStorage({IDENTITY_KEY: "me"})
    )
    assert controller.state.session_id == "abc"
    assert controller.state.local_user_id == "me"
    assert controller.state.status.white_to_move
    assert not controller.state.status.over


def test_boot_on_dead_link(tmp_path: Path, store: InMemoryDocumentStore) -> None:
    controller = boot("/gone", memory_settings(tmp_path), store=store, storage=MemoryStorage())
    assert controller.state.session_id is None


def test_two_clients_share_a_sql_store(tmp_path: Path) -> None:
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'games.db'}", identity_path=tmp_path / "id.json")
    store = make_store(settings)
    assert isinstance(store, SQLDocumentStore)

    host = boot("/", settings, store=store, storage=MemoryStorage())
    session_id = host.new_game()
    guest = boot(f"/{session_id}", settings, store=store, storage=MemoryStorage())

    assert guest.state.session_id == session_id
    host.click(12)
    host.click(28)
    assert not guest.state.status.white_to_move
    assert guest.state.ownership.white == host.state.local_user_id


def test_memory_store_from_settings(tmp_path: Path) -> None:
    assert isinstance(make_store(memory_settings(tmp_path)), InMemoryDocumentStore)
