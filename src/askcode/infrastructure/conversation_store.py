from __future__ import annotations

from threading import RLock
from typing import Dict, List, Protocol

from ..config import get_settings
from ..domain.question_models import ConversationTurn


class ConversationStore(Protocol):
    def latest_turns(self, project_id: str, limit: int = 1) -> List[ConversationTurn]: ...

    def append_turn(self, turn: ConversationTurn) -> ConversationTurn: ...


class InMemoryConversationStore:
    def __init__(self) -> None:
        self._turns: Dict[str, List[ConversationTurn]] = {}
        self._lock = RLock()

    def latest_turns(self, project_id: str, limit: int = 1) -> List[ConversationTurn]:
        """Return up to ``limit`` turns for the project, newest first."""
        with self._lock:
            turns = list(reversed(self._turns.get(project_id, [])))
        # Later inserts win ties on identical timestamps
        turns.sort(key=lambda t: t.created_at, reverse=True)
        return turns[: max(0, limit)]

    def append_turn(self, turn: ConversationTurn) -> ConversationTurn:
        with self._lock:
            self._turns.setdefault(turn.project_id, []).append(turn)
            return turn

    def count_turns(self, project_id: str) -> int:
        with self._lock:
            return len(self._turns.get(project_id, []))


_store: ConversationStore | None = None


def get_conversation_store() -> ConversationStore:
    global _store
    if _store is not None:
        return _store
    if get_settings().store_impl == "postgres":
        from .store_postgres import get_postgres_store

        _store = get_postgres_store()
    else:
        _store = InMemoryConversationStore()
    return _store
