from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AgentType(str, Enum):
    GENERAL = "general"
    SECURITY = "security"
    DEVOPS = "devops"
    PERFORMANCE = "performance"
    ARCHITECTURE = "architecture"


class QuestionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    question: str
    project_id: str
    topic: Optional[str] = None
    backend_language: Optional[str] = None
    frontend_language: Optional[str] = None
    agent_type: AgentType = AgentType.GENERAL


class QuestionCreate(BaseModel):
    """Request body of ``POST /projects/{project_id}/questions``."""

    user_id: str = Field(min_length=1)
    question: str = Field(min_length=1)
    topic: Optional[str] = None
    backend_language: Optional[str] = None
    frontend_language: Optional[str] = None
    agent_type: AgentType = AgentType.GENERAL


class RetrievedArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_name: str
    source_code: str
    summary: str
    similarity: float = Field(ge=0.0, le=1.0)


class DocumentationSnippet(BaseModel):
    documentation_string: str
    created_at: datetime
    updated_at: datetime


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    question: str
    answer: str
    file_reference: List[str] = Field(default_factory=list)
    created_at: datetime


class UserCredential(BaseModel):
    user_id: str
    api_key: Optional[str] = None
