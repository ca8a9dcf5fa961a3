from __future__ import annotations

import math
from datetime import UTC, datetime
from threading import RLock
from typing import Dict, List, Optional, Protocol, Sequence

from ..config import get_settings
from ..domain.question_models import DocumentationSnippet, RetrievedArtifact


class DocumentationStore(Protocol):
    def list_documentation(self, project_id: str) -> List[DocumentationSnippet]: ...


class ArtifactStore(Protocol):
    def search_artifacts(
        self,
        vector: Sequence[float],
        project_id: str,
        floor: float = 0.3,
        limit: int = 5,
    ) -> List[RetrievedArtifact]: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``1 - cosine_distance(a, b)``; zero vectors have similarity 0."""
    if len(a) != len(b):
        raise ValueError(f"vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def clamp_similarity(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class _StoredArtifact:
    __slots__ = ("file_name", "source_code", "summary", "embedding")

    def __init__(self, file_name: str, source_code: str, summary: str, embedding: Sequence[float]) -> None:
        self.file_name = file_name
        self.source_code = source_code
        self.summary = summary
        self.embedding = [float(x) for x in embedding]


class InMemoryKnowledgeStore:
    """Project documentation and source-code summary embeddings, kept in memory."""

    def __init__(self) -> None:
        self._docs: Dict[str, List[DocumentationSnippet]] = {}
        self._artifacts: Dict[str, Dict[str, _StoredArtifact]] = {}
        self._lock = RLock()

    def add_documentation(
        self,
        project_id: str,
        documentation_string: str,
        created_at: Optional[datetime] = None,
    ) -> DocumentationSnippet:
        now = created_at or datetime.now(UTC)
        snippet = DocumentationSnippet(documentation_string=documentation_string, created_at=now, updated_at=now)
        with self._lock:
            self._docs.setdefault(project_id, []).append(snippet)
        return snippet

    def list_documentation(self, project_id: str) -> List[DocumentationSnippet]:
        with self._lock:
            return list(self._docs.get(project_id, []))

    def put_artifact(
        self,
        project_id: str,
        file_name: str,
        source_code: str,
        summary: str,
        embedding: Sequence[float],
    ) -> None:
        """Insert or replace the embedding row for ``file_name``."""
        with self._lock:
            self._artifacts.setdefault(project_id, {})[file_name] = _StoredArtifact(
                file_name, source_code, summary, embedding
            )

    def search_artifacts(
        self,
        vector: Sequence[float],
        project_id: str,
        floor: float = 0.3,
        limit: int = 5,
    ) -> List[RetrievedArtifact]:
        with self._lock:
            rows = list(self._artifacts.get(project_id, {}).values())
        scored = []
        for row in rows:
            similarity = cosine_similarity(vector, row.embedding)
            if similarity > floor:
                scored.append((similarity, row))
        scored.sort(key=lambda pair: (-pair[0], pair[1].file_name))
        return [
            RetrievedArtifact(
                file_name=row.file_name,
                source_code=row.source_code,
                summary=row.summary,
                similarity=clamp_similarity(similarity),
            )
            for similarity, row in scored[: max(0, limit)]
        ]


_store = None


def get_knowledge_store():
    """Return the store serving both documentation and artifact searches."""
    global _store
    if _store is not None:
        return _store
    if get_settings().store_impl == "postgres":
        from .store_postgres import get_postgres_store

        _store = get_postgres_store()
    else:
        _store = InMemoryKnowledgeStore()
    return _store
