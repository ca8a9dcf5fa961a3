import pytest

from src.askcode.config import FieldLimits
from src.askcode.domain.question_models import QuestionRequest
from src.askcode.errors import ValidationError
from src.askcode.services.validation import validate_question_request


def _request(**overrides):
    data = {"user_id": "user-1", "question": "Que fait ce module ?", "project_id": "proj-1"}
    data.update(overrides)
    return QuestionRequest(**data)


def test_accepts_inputs_at_the_bounds():
    validate_question_request(
        _request(question="q" * 10_000, topic="t" * 100, backend_language="b" * 50, frontend_language="f" * 50)
    )


def test_rejects_long_question():
    with pytest.raises(ValidationError) as exc:
        validate_question_request(_request(question="q" * 10_001))
    assert exc.value.field == "question"
    assert str(exc.value) == "Votre message est trop long"


@pytest.mark.parametrize(
    "field,size,message",
    [
        ("topic", 101, "Le champ sujet ne doit pas dépasser 100 caractères."),
        ("backend_language", 51, "backend"),
        ("frontend_language", 51, "frontend"),
    ],
)
def test_rejects_long_optional_fields(field, size, message):
    with pytest.raises(ValidationError) as exc:
        validate_question_request(_request(**{field: "x" * size}))
    assert exc.value.field == field
    assert message in str(exc.value)


def test_custom_limits_apply():
    with pytest.raises(ValidationError):
        validate_question_request(_request(topic="abcdef"), FieldLimits(topic=5))
