from __future__ import annotations

import math
import threading
from typing import Iterator, List, Optional, Sequence

from src.askcode.config import AskSettings
from src.askcode.domain.question_models import ConversationTurn
from src.askcode.errors import ProviderError
from src.askcode.infrastructure.conversation_store import InMemoryConversationStore
from src.askcode.infrastructure.credential_store import InMemoryCredentialStore
from src.askcode.infrastructure.knowledge_store import InMemoryKnowledgeStore
from src.askcode.services.ask_pipeline import AskPipeline
from src.askcode.services.completion import StreamingCompletionClient
from src.askcode.services.context_gatherer import ContextGatherer
from src.askcode.services.persistence import TurnPersister
from src.askcode.services.retrieval import EmbeddingService, SimilarityRetriever
from src.askcode.services.retry import RetryPolicy

DIM = 1024


def unit_vector(axis: int = 0, dim: int = DIM) -> List[float]:
    vec = [0.0] * dim
    vec[axis] = 1.0
    return vec


def vector_with_similarity(similarity: float, axis: int = 1, dim: int = DIM) -> List[float]:
    """A vector whose cosine similarity with ``unit_vector(0)`` equals ``similarity``."""
    vec = [0.0] * dim
    vec[0] = similarity
    vec[axis] = math.sqrt(max(0.0, 1.0 - similarity * similarity))
    return vec


class StubProvider:
    """Scripted stand-in for MistralClient."""

    def __init__(
        self,
        chunks: Sequence[str] = (),
        open_errors: Sequence[Exception] = (),
        fail_after: Optional[int] = None,
        vector: Optional[List[float]] = None,
        gate: Optional[threading.Event] = None,
    ) -> None:
        self.chunks = list(chunks)
        self.gate = gate
        self.open_errors = list(open_errors)
        self.fail_after = fail_after
        self.vector = vector if vector is not None else unit_vector(0)
        self.open_calls = 0
        self.embed_calls = 0
        self.last_request: dict = {}
        self.drained = False

    def open_chat_stream(self, api_key, model, temperature, max_tokens, messages) -> Iterator[str]:
        self.open_calls += 1
        self.last_request = {
            "api_key": api_key,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if self.open_errors:
            raise self.open_errors.pop(0)
        return self._iter()

    def _iter(self) -> Iterator[str]:
        for index, chunk in enumerate(self.chunks):
            if self.gate is not None and index > 0:
                self.gate.wait(timeout=5)
            if self.fail_after is not None and index >= self.fail_after:
                raise ProviderError("Mistral stream interrupted: connection reset")
            yield chunk
        self.drained = True

    def embed(self, api_key, model, text) -> List[float]:
        self.embed_calls += 1
        return list(self.vector)


class CountingConversationStore(InMemoryConversationStore):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def latest_turns(self, project_id, limit=1):
        self.calls += 1
        return super().latest_turns(project_id, limit)

    def append_turn(self, turn: ConversationTurn) -> ConversationTurn:
        self.calls += 1
        return super().append_turn(turn)


class FailingConversationStore(InMemoryConversationStore):
    def append_turn(self, turn: ConversationTurn) -> ConversationTurn:
        raise RuntimeError("database is read-only")


class CountingCredentialStore(InMemoryCredentialStore):
    def __init__(self, users=None) -> None:
        super().__init__(users)
        self.calls = 0

    def get_credential(self, user_id):
        self.calls += 1
        return super().get_credential(user_id)


class CountingKnowledgeStore(InMemoryKnowledgeStore):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def list_documentation(self, project_id):
        self.calls += 1
        return super().list_documentation(project_id)

    def search_artifacts(self, vector, project_id, floor=0.3, limit=5):
        self.calls += 1
        return super().search_artifacts(vector, project_id, floor, limit)


def make_pipeline(
    provider: StubProvider,
    *,
    conversations=None,
    credentials=None,
    knowledge=None,
    settings: Optional[AskSettings] = None,
    sleeps: Optional[List[float]] = None,
) -> AskPipeline:
    settings = settings or AskSettings()
    conversations = conversations if conversations is not None else InMemoryConversationStore()
    credentials = credentials if credentials is not None else InMemoryCredentialStore({"user-1": "sk-user"})
    knowledge = knowledge if knowledge is not None else InMemoryKnowledgeStore()
    recorded = sleeps if sleeps is not None else []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    policy = RetryPolicy(
        max_attempts=settings.retry_attempts,
        initial_delay=settings.retry_initial_delay,
        multiplier=settings.retry_multiplier,
        sleep=fake_sleep,
    )
    return AskPipeline(
        gatherer=ContextGatherer(conversations, credentials, knowledge, history_window=settings.history_window),
        retriever=SimilarityRetriever(
            EmbeddingService(credentials, provider, settings),
            knowledge,
            floor=settings.similarity_floor,
            limit=settings.top_k,
        ),
        completion=StreamingCompletionClient(provider, settings, policy),
        persister=TurnPersister(conversations),
        settings=settings,
    )
