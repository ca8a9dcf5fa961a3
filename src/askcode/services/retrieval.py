from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol

from ..config import AskSettings, get_settings
from ..domain.question_models import RetrievedArtifact
from ..errors import ProviderError
from ..infrastructure.credential_store import CredentialStore, require_credential, resolve_api_key
from ..infrastructure.knowledge_store import ArtifactStore
from .mistral_client import MistralClient


logger = logging.getLogger("askcode.retrieval")


class Embedder(Protocol):
    async def embed(self, user_id: str, text: str) -> List[float]: ...


class EmbeddingService:
    """Embeds text with the requesting user's provider key."""

    def __init__(
        self,
        credentials: CredentialStore,
        client: MistralClient,
        settings: Optional[AskSettings] = None,
    ) -> None:
        self._credentials = credentials
        self._client = client
        self._settings = settings or get_settings()

    async def embed(self, user_id: str, text: str) -> List[float]:
        credential = await asyncio.to_thread(require_credential, self._credentials, user_id)
        api_key = resolve_api_key(credential, self._settings)
        vector = await asyncio.to_thread(self._client.embed, api_key, self._settings.embedding_model, text)
        if len(vector) != self._settings.embedding_dim:
            raise ProviderError(
                f"embedding has dimension {len(vector)}, expected {self._settings.embedding_dim}"
            )
        return vector


class SimilarityRetriever:
    def __init__(
        self,
        embedder: Embedder,
        artifacts: ArtifactStore,
        floor: float = 0.3,
        limit: int = 5,
    ) -> None:
        self._embedder = embedder
        self._artifacts = artifacts
        self.floor = floor
        self.limit = limit

    async def retrieve(self, question: str, project_id: str, user_id: str) -> List[RetrievedArtifact]:
        """Embed the question, then rank the project's file summaries against it."""
        vector = await self._embedder.embed(user_id, question)
        ranked = await asyncio.to_thread(
            self._artifacts.search_artifacts, vector, project_id, self.floor, self.limit
        )
        logger.debug(
            "artifacts_ranked",
            extra={"project_id": project_id, "count": len(ranked), "files": [a.file_name for a in ranked]},
        )
        return ranked
