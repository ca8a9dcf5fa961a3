"""Answer one question about a project's code base.

``AskPipeline.ask`` validates the request, gathers context and ranks source
files concurrently, composes the prompt and returns at once with an
:class:`AnswerChannel` that a background task fills while the provider
streams. The turn is recorded only after the stream completed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Protocol, Set

from ..config import AskSettings, get_settings
from ..domain.question_models import QuestionRequest, RetrievedArtifact
from ..errors import AskCodeError, PersistenceError
from ..infrastructure.conversation_store import get_conversation_store
from ..infrastructure.credential_store import get_credential_store, resolve_api_key
from ..infrastructure.knowledge_store import get_knowledge_store
from ..observability.metrics import ANSWER_STREAMS, QUESTIONS_TOTAL
from .completion import StreamingCompletionClient
from .context_gatherer import ContextGatherer, gather_or_fail
from .mistral_client import MistralClient
from .persistence import TurnPersister
from .prompts import compose_prompt
from .retrieval import EmbeddingService, SimilarityRetriever
from .streaming import AnswerChannel
from .validation import validate_question_request


logger = logging.getLogger("askcode.pipeline")


class CompletionStream(Protocol):
    def stream(self, api_key: str, prompt: str) -> AsyncIterator[str]: ...


@dataclass
class AskResult:
    output: AnswerChannel
    files_references: List[RetrievedArtifact] = field(default_factory=list)
    task: Optional["asyncio.Task[None]"] = None


class AskPipeline:
    def __init__(
        self,
        gatherer: ContextGatherer,
        retriever: SimilarityRetriever,
        completion: CompletionStream,
        persister: TurnPersister,
        settings: Optional[AskSettings] = None,
    ) -> None:
        self._gatherer = gatherer
        self._retriever = retriever
        self._completion = completion
        self._persister = persister
        self._settings = settings or get_settings()
        self._tasks: Set["asyncio.Task[None]"] = set()

    async def ask(self, request: QuestionRequest) -> AskResult:
        validate_question_request(request, self._settings.limits)
        QUESTIONS_TOTAL.labels(agent_type=request.agent_type.value).inc()
        log_extra = {"project_id": request.project_id, "user_id": request.user_id}
        try:
            context, artifacts = await gather_or_fail(
                self._gatherer.gather(request.user_id, request.project_id),
                self._retriever.retrieve(request.question, request.project_id, request.user_id),
            )
            api_key = resolve_api_key(context.credential, self._settings)
        except AskCodeError as exc:
            logger.warning("ask_rejected", extra={**log_extra, "err": str(exc), "kind": type(exc).__name__})
            raise
        except Exception:
            logger.exception("ask_context_failed", extra=log_extra)
            raise

        prompt = compose_prompt(
            request.agent_type,
            artifacts,
            context.documentation,
            context.transcript,
            request.question,
            topic=request.topic,
            backend_language=request.backend_language,
            frontend_language=request.frontend_language,
        )
        logger.info(
            "ask_started",
            extra={**log_extra, "agent_type": request.agent_type.value, "artifacts": len(artifacts)},
        )

        channel = AnswerChannel()
        task = asyncio.create_task(self._run_stream(channel, api_key, prompt, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return AskResult(output=channel, files_references=list(artifacts), task=task)

    async def _run_stream(
        self,
        channel: AnswerChannel,
        api_key: str,
        prompt: str,
        request: QuestionRequest,
    ) -> None:
        buffer: List[str] = []
        try:
            async for delta in self._completion.stream(api_key, prompt):
                buffer.append(delta)
                channel.update(delta)
        except asyncio.CancelledError as exc:
            ANSWER_STREAMS.labels(outcome="cancelled").inc()
            logger.warning(
                "answer_stream_cancelled",
                extra={"project_id": request.project_id, "delivered_chars": sum(map(len, buffer))},
            )
            channel.fail(exc)
            raise
        except Exception as exc:
            ANSWER_STREAMS.labels(outcome="failed").inc()
            logger.warning(
                "answer_stream_failed",
                extra={"project_id": request.project_id, "err": str(exc), "delivered_chars": sum(map(len, buffer))},
            )
            channel.fail(exc)
            return

        channel.done()
        try:
            turn = await self._persister.persist(request.project_id, request.question, "".join(buffer))
        except PersistenceError as exc:
            ANSWER_STREAMS.labels(outcome="unrecorded").inc()
            channel.unrecorded(exc)
            return
        except asyncio.CancelledError:
            ANSWER_STREAMS.labels(outcome="unrecorded").inc()
            channel.unrecorded(PersistenceError("conversation turn not recorded: cancelled"))
            raise
        ANSWER_STREAMS.labels(outcome="recorded").inc()
        channel.recorded(turn)


_pipeline: AskPipeline | None = None


def build_pipeline(settings: Optional[AskSettings] = None) -> AskPipeline:
    settings = settings or get_settings()
    conversations = get_conversation_store()
    credentials = get_credential_store()
    knowledge = get_knowledge_store()
    client = MistralClient(
        base_url=settings.base_url,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
    )
    return AskPipeline(
        gatherer=ContextGatherer(conversations, credentials, knowledge, history_window=settings.history_window),
        retriever=SimilarityRetriever(
            EmbeddingService(credentials, client, settings),
            knowledge,
            floor=settings.similarity_floor,
            limit=settings.top_k,
        ),
        completion=StreamingCompletionClient(client, settings),
        persister=TurnPersister(conversations),
        settings=settings,
    )


def get_pipeline() -> AskPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline
