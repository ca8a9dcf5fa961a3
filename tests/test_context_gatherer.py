import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from src.askcode.domain.question_models import ConversationTurn
from src.askcode.errors import UserNotFoundError
from src.askcode.infrastructure.conversation_store import InMemoryConversationStore
from src.askcode.infrastructure.credential_store import InMemoryCredentialStore
from src.askcode.infrastructure.knowledge_store import InMemoryKnowledgeStore
from src.askcode.services.context_gatherer import ContextGatherer, gather_or_fail


BASE = datetime(2025, 1, 1, tzinfo=UTC)


@pytest.fixture
def conversations():
    store = InMemoryConversationStore()
    for index in range(3):
        store.append_turn(
            ConversationTurn(
                project_id="proj-1",
                question=f"Q{index}",
                answer=f"A{index}",
                created_at=BASE + timedelta(minutes=index),
            )
        )
    return store


def _gatherer(conversations, window=1, users=None):
    knowledge = InMemoryKnowledgeStore()
    knowledge.add_documentation("proj-1", "Guide d'installation")
    credentials = InMemoryCredentialStore(users if users is not None else {"user-1": "sk-user"})
    return ContextGatherer(conversations, credentials, knowledge, history_window=window)


@pytest.mark.asyncio
async def test_gather_uses_latest_turn_only_by_default(conversations):
    context = await _gatherer(conversations).gather("user-1", "proj-1")
    assert [t.question for t in context.turns] == ["Q2"]
    assert context.transcript == "Historique de conversation:\nUtilisateur: Q2\nAssistant: A2\n\n"
    assert context.credential.api_key == "sk-user"
    assert [d.documentation_string for d in context.documentation] == ["Guide d'installation"]


@pytest.mark.asyncio
async def test_wider_window_reads_oldest_first(conversations):
    context = await _gatherer(conversations, window=2).gather("user-1", "proj-1")
    assert [t.question for t in context.turns] == ["Q1", "Q2"]
    assert context.transcript.index("Q1") < context.transcript.index("Q2")


@pytest.mark.asyncio
async def test_empty_history_gives_empty_transcript():
    context = await _gatherer(InMemoryConversationStore()).gather("user-1", "proj-1")
    assert context.turns == []
    assert context.transcript == ""


@pytest.mark.asyncio
async def test_unknown_user_fails_the_gather(conversations):
    with pytest.raises(UserNotFoundError):
        await _gatherer(conversations, users={}).gather("ghost", "proj-1")


@pytest.mark.asyncio
async def test_gather_or_fail_cancels_siblings():
    cancelled = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    async def boom():
        raise RuntimeError("lookup failed")

    with pytest.raises(RuntimeError, match="lookup failed"):
        await gather_or_fail(slow(), boom())
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_gather_or_fail_keeps_argument_order():
    async def later():
        await asyncio.sleep(0.01)
        return "later"

    async def now():
        return "now"

    assert await gather_or_fail(later(), now()) == ("later", "now")


@pytest.mark.asyncio
async def test_gather_or_fail_raises_earliest_failure():
    async def fails_later():
        await asyncio.sleep(0)
        raise RuntimeError("later failure")

    async def fails_first():
        raise UserNotFoundError("Utilisateur non trouvé")

    with pytest.raises(UserNotFoundError):
        await gather_or_fail(fails_later(), fails_first())
