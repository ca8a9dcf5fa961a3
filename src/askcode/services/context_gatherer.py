from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, List, Tuple

from ..domain.question_models import ConversationTurn, DocumentationSnippet, UserCredential
from ..infrastructure.conversation_store import ConversationStore
from ..infrastructure.credential_store import CredentialStore, require_credential
from ..infrastructure.knowledge_store import DocumentationStore
from .prompts import format_transcript


logger = logging.getLogger("askcode.context")


async def gather_or_fail(*aws: Awaitable[Any]) -> Tuple[Any, ...]:
    """Await all of ``aws`` concurrently; on the first failure cancel the rest and re-raise.

    When several fail, the one that failed earliest in time is raised.
    """

    tasks = [asyncio.ensure_future(aw) for aw in aws]
    failed: List["asyncio.Future[Any]"] = []

    def _record(task: "asyncio.Future[Any]") -> None:
        if not task.cancelled() and task.exception() is not None:
            failed.append(task)

    for task in tasks:
        task.add_done_callback(_record)
    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        if failed:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
            raise failed[0].exception()
        return tuple(task.result() for task in tasks)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise


@dataclass(frozen=True)
class GatheredContext:
    turns: List[ConversationTurn]
    transcript: str
    credential: UserCredential
    documentation: List[DocumentationSnippet] = field(default_factory=list)


class ContextGatherer:
    def __init__(
        self,
        conversations: ConversationStore,
        credentials: CredentialStore,
        documentation: DocumentationStore,
        history_window: int = 1,
    ) -> None:
        self._conversations = conversations
        self._credentials = credentials
        self._documentation = documentation
        self.history_window = history_window

    async def gather(self, user_id: str, project_id: str) -> GatheredContext:
        latest, credential, docs = await gather_or_fail(
            asyncio.to_thread(self._conversations.latest_turns, project_id, self.history_window),
            asyncio.to_thread(require_credential, self._credentials, user_id),
            asyncio.to_thread(self._documentation.list_documentation, project_id),
        )
        # Stores return newest first; the transcript reads oldest first
        turns = list(reversed(latest))
        logger.debug(
            "context_gathered",
            extra={"project_id": project_id, "turns": len(turns), "docs": len(docs)},
        )
        return GatheredContext(
            turns=turns,
            transcript=format_transcript(turns),
            credential=credential,
            documentation=list(docs),
        )
