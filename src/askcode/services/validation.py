from __future__ import annotations

from typing import Optional

from ..config import FieldLimits
from ..domain.question_models import QuestionRequest
from ..errors import ValidationError


def _too_long(value: Optional[str], limit: int) -> bool:
    return bool(value) and len(value) > limit


def validate_question_request(request: QuestionRequest, limits: Optional[FieldLimits] = None) -> None:
    """Reject oversized free-text fields before any store or provider call."""

    limits = limits or FieldLimits()
    if len(request.question) > limits.question:
        raise ValidationError("question", "Votre message est trop long")
    if _too_long(request.topic, limits.topic):
        raise ValidationError("topic", f"Le champ sujet ne doit pas dépasser {limits.topic} caractères.")
    if _too_long(request.backend_language, limits.backend_language):
        raise ValidationError(
            "backend_language",
            f"Le champ backend ne doit pas dépasser {limits.backend_language} caractères.",
        )
    if _too_long(request.frontend_language, limits.frontend_language):
        raise ValidationError(
            "frontend_language",
            f"Le champ frontend ne doit pas dépasser {limits.frontend_language} caractères.",
        )
