from __future__ import annotations

from threading import RLock
from typing import Dict, Optional, Protocol

from ..config import AskSettings, get_settings
from ..domain.question_models import UserCredential
from ..errors import MissingApiKeyError, UserNotFoundError


class CredentialStore(Protocol):
    def get_credential(self, user_id: str) -> Optional[UserCredential]: ...


class InMemoryCredentialStore:
    def __init__(self, users: Optional[Dict[str, Optional[str]]] = None) -> None:
        self._users: Dict[str, Optional[str]] = dict(users or {})
        self._lock = RLock()

    def put_user(self, user_id: str, api_key: Optional[str] = None) -> UserCredential:
        with self._lock:
            self._users[user_id] = api_key
        return UserCredential(user_id=user_id, api_key=api_key)

    def get_credential(self, user_id: str) -> Optional[UserCredential]:
        with self._lock:
            if user_id not in self._users:
                return None
            return UserCredential(user_id=user_id, api_key=self._users[user_id])


def resolve_api_key(credential: UserCredential, settings: AskSettings) -> str:
    """Prefer the user's own provider key, else the service default."""
    key = (credential.api_key or "").strip() or settings.api_key
    if not key:
        raise MissingApiKeyError(credential.user_id)
    return key


def require_credential(store: CredentialStore, user_id: str) -> UserCredential:
    credential = store.get_credential(user_id)
    if credential is None:
        raise UserNotFoundError(user_id)
    return credential


_store: CredentialStore | None = None


def get_credential_store() -> CredentialStore:
    global _store
    if _store is not None:
        return _store
    if get_settings().store_impl == "postgres":
        from .store_postgres import get_postgres_store

        _store = get_postgres_store()
    else:
        _store = InMemoryCredentialStore()
    return _store
