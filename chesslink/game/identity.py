"""
Per-client identity: a random string created once and kept in local storage.

The identity is what claims a side in a session, so losing access to the storage means the
client can no longer tell which pieces are its own. That is treated as fatal.
"""

import json
import secrets
from pathlib import Path
from string import ascii_letters, ascii_lowercase, digits
from typing import Optional, Protocol

from chesslink.core.exceptions import IdentityStorageError
from chesslink.core.shared_types import SessionId, UserId

IDENTITY_KEY = "chesslinkUserId"
IDENTITY_LENGTH = 32

# Session ids end up in an address bar: lower case, without look-alike characters
SESSION_ID_LENGTH = 16
READABLE_CHARACTERS = "".join(c for c in ascii_lowercase + digits if c not in "0o1il")


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """Storage that lives as long as the process (tests, throwaway clients)."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileStorage:
    """All keys in one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            raise IdentityStorageError(f"Cannot write {self.path}: {exc}") from exc

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise IdentityStorageError(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise IdentityStorageError(f"{self.path} does not hold a JSON object")
        return data


def random_string(length: int = IDENTITY_LENGTH, alphabet: str = ascii_letters + digits) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def new_session_id() -> SessionId:
    return random_string(SESSION_ID_LENGTH, READABLE_CHARACTERS)


def get_or_create_local_identity(storage: KeyValueStorage) -> UserId:
    """Same answer on every call (and every restart) for the same storage."""
    user_id = storage.get(IDENTITY_KEY)
    if not user_id:
        user_id = random_string()
        storage.set(IDENTITY_KEY, user_id)
    return user_id
