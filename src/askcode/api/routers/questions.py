from __future__ import annotations

import json
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from ...domain.question_models import ConversationTurn, QuestionCreate, QuestionRequest
from ...errors import (
    AskCodeError,
    MissingApiKeyError,
    ProviderError,
    UserNotFoundError,
    ValidationError,
)
from ...infrastructure.conversation_store import get_conversation_store
from ...services.ask_pipeline import get_pipeline
from ...services.streaming import DELTA, DONE, ERROR, RECORDED, UNRECORDED


router = APIRouter(prefix="/projects", tags=["questions"])


def _http_status(exc: AskCodeError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, UserNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, MissingApiKeyError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ProviderError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _sse(event: str, payload: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("/{project_id}/questions", response_class=StreamingResponse)
async def ask_question(project_id: str, payload: QuestionCreate):
    request = QuestionRequest(project_id=project_id, **payload.model_dump())
    try:
        result = await get_pipeline().ask(request)
    except AskCodeError as exc:
        detail: Dict[str, Any] | str = str(exc)
        if isinstance(exc, ValidationError):
            detail = {"field": exc.field, "message": str(exc)}
        raise HTTPException(status_code=_http_status(exc), detail=detail) from exc

    references = [artifact.model_dump() for artifact in result.files_references]
    channel = result.output

    async def event_stream():
        yield _sse("references", references)
        async for event in channel.events():
            if event.kind == DELTA:
                yield _sse(DELTA, {"text": event.data})
            elif event.kind == DONE:
                yield _sse(DONE, {})
            elif event.kind == RECORDED:
                yield _sse(RECORDED, {"created_at": event.data.created_at.isoformat()})
            elif event.kind == UNRECORDED:
                yield _sse(UNRECORDED, {"detail": str(event.data)})
            elif event.kind == ERROR:
                yield _sse(ERROR, {"detail": str(event.data) or type(event.data).__name__})

    headers = {
        "Cache-Control": "no-cache, no-transform",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=headers)


@router.get("/{project_id}/conversation", response_model=List[ConversationTurn])
def list_conversation(project_id: str, limit: int = Query(10, ge=1, le=50)):
    """Latest recorded turns for the project, newest first."""
    return get_conversation_store().latest_turns(project_id, limit)
