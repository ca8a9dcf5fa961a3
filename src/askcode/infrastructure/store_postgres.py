"""PostgreSQL + pgvector backing for conversations, credentials and knowledge.

Table and column names follow the existing application schema (quoted
camelCase), so this store reads the rows the ingestion side already wrote.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import List, Optional, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import Select

from ..config import get_settings
from ..domain.question_models import ConversationTurn, DocumentationSnippet, RetrievedArtifact, UserCredential
from .knowledge_store import clamp_similarity


logger = logging.getLogger("askcode.store")

EMBEDDING_DIM = 1024

Base = declarative_base()


# Timestamp columns are "timestamp(3)" without time zone and hold UTC wall time
def to_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class ConversationHistoryRow(Base):
    __tablename__ = "ConversationHistory"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    project_id = Column("projectId", String, index=True, nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    file_reference = Column("fileReference", ARRAY(Text), nullable=False, default=list)
    created_at = Column("createdAt", DateTime(), nullable=False)


class UserRow(Base):
    __tablename__ = "User"

    id = Column(String, primary_key=True)
    api_key = Column("apiKey", String, nullable=True)


class ProjectDocumentationRow(Base):
    __tablename__ = "ProjectDocumentation"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    project_id = Column("projectId", String, index=True, nullable=False)
    documentation_string = Column("documentationString", Text, nullable=False)
    created_at = Column("createdAt", DateTime(), nullable=False)
    updated_at = Column("updatedAt", DateTime(), nullable=False)


class SourceCodeEmbeddingRow(Base):
    __tablename__ = "SourceCodeEmbedding"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    project_id = Column("projectId", String, index=True, nullable=False)
    file_name = Column("fileName", String, nullable=False)
    source_code = Column("sourceCode", Text, nullable=False)
    summary = Column(Text, nullable=False)
    summary_embedding = Column("summaryEmbedding", Vector(EMBEDDING_DIM))


def latest_turns_query(project_id: str, limit: int) -> Select:
    return (
        select(ConversationHistoryRow)
        .where(ConversationHistoryRow.project_id == project_id)
        .order_by(ConversationHistoryRow.created_at.desc())
        .limit(limit)
    )


def similarity_query(vector: Sequence[float], project_id: str, floor: float, limit: int) -> Select:
    """Rank summaries by ``1 - cosine_distance`` above ``floor``, best first."""
    distance = SourceCodeEmbeddingRow.summary_embedding.cosine_distance(list(vector))
    similarity = (1 - distance).label("similarity")
    return (
        select(
            SourceCodeEmbeddingRow.file_name,
            SourceCodeEmbeddingRow.source_code,
            SourceCodeEmbeddingRow.summary,
            similarity,
        )
        .where(SourceCodeEmbeddingRow.project_id == project_id)
        .where((1 - distance) > floor)
        .order_by(similarity.desc(), SourceCodeEmbeddingRow.file_name)
        .limit(limit)
    )


class PostgresStore:
    """Implements the conversation, credential, documentation and artifact protocols."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        embedding_dim: int = EMBEDDING_DIM,
    ) -> None:
        column_dim = SourceCodeEmbeddingRow.__table__.c.summaryEmbedding.type.dim
        if embedding_dim != column_dim:
            raise RuntimeError(
                f"ASKCODE_EMBEDDING_DIM is {embedding_dim} but the summaryEmbedding column is vector({column_dim})"
            )
        if engine is None:
            if not database_url:
                raise RuntimeError("ASKCODE_DATABASE_URL is required for the postgres store")
            engine = create_engine(database_url, pool_pre_ping=True, pool_recycle=3600)
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def latest_turns(self, project_id: str, limit: int = 1) -> List[ConversationTurn]:
        with self._sessions() as session:
            rows = session.scalars(latest_turns_query(project_id, limit)).all()
            return [
                ConversationTurn(
                    project_id=row.project_id,
                    question=row.question,
                    answer=row.answer,
                    file_reference=list(row.file_reference or []),
                    created_at=from_db_time(row.created_at),
                )
                for row in rows
            ]

    def append_turn(self, turn: ConversationTurn) -> ConversationTurn:
        row = ConversationHistoryRow(
            project_id=turn.project_id,
            question=turn.question,
            answer=turn.answer,
            file_reference=list(turn.file_reference),
            created_at=to_db_time(turn.created_at),
        )
        with self._sessions.begin() as session:
            session.add(row)
        logger.debug("turn_inserted", extra={"project_id": turn.project_id, "row_id": row.id})
        return turn

    def get_credential(self, user_id: str) -> Optional[UserCredential]:
        with self._sessions() as session:
            row = session.get(UserRow, user_id)
            if row is None:
                return None
            return UserCredential(user_id=row.id, api_key=row.api_key)

    def list_documentation(self, project_id: str) -> List[DocumentationSnippet]:
        stmt = select(ProjectDocumentationRow).where(ProjectDocumentationRow.project_id == project_id)
        with self._sessions() as session:
            rows = session.scalars(stmt).all()
        snippets = []
        for row in rows:
            created_at = from_db_time(row.created_at) or datetime.now(UTC)
            snippets.append(
                DocumentationSnippet(
                    documentation_string=row.documentation_string,
                    created_at=created_at,
                    updated_at=from_db_time(row.updated_at) or created_at,
                )
            )
        return snippets

    def search_artifacts(
        self,
        vector: Sequence[float],
        project_id: str,
        floor: float = 0.3,
        limit: int = 5,
    ) -> List[RetrievedArtifact]:
        with self._sessions() as session:
            rows = session.execute(similarity_query(vector, project_id, floor, limit)).all()
            return [
                RetrievedArtifact(
                    file_name=row.file_name,
                    source_code=row.source_code,
                    summary=row.summary,
                    similarity=clamp_similarity(row.similarity),
                )
                for row in rows
            ]


_store: PostgresStore | None = None


def get_postgres_store() -> PostgresStore:
    global _store
    if _store is None:
        settings = get_settings()
        _store = PostgresStore(database_url=settings.database_url, embedding_dim=settings.embedding_dim)
    return _store
