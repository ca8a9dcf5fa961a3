from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from ..domain.question_models import ConversationTurn
from ..errors import PersistenceError
from ..infrastructure.conversation_store import ConversationStore
from ..observability.metrics import TURN_PERSIST_FAILURES


logger = logging.getLogger("askcode.persistence")


class TurnPersister:
    def __init__(self, conversations: ConversationStore) -> None:
        self._conversations = conversations

    async def persist(self, project_id: str, question: str, answer: str) -> ConversationTurn:
        """Record one completed question/answer pair; store failures become PersistenceError."""
        turn = ConversationTurn(
            project_id=project_id,
            question=question,
            answer=answer,
            file_reference=[],
            created_at=datetime.now(UTC),
        )
        try:
            return await asyncio.to_thread(self._conversations.append_turn, turn)
        except Exception as exc:
            TURN_PERSIST_FAILURES.inc()
            logger.exception("turn_persist_failed", extra={"project_id": project_id})
            raise PersistenceError(f"conversation turn not recorded: {exc}") from exc
