from __future__ import annotations

"""Error taxonomy for the question answering pipeline.

Errors raised before streaming starts reach the caller directly. Errors
raised while the answer is streaming are reported on the answer channel
instead (see :mod:`askcode.services.streaming`).
"""

from typing import Optional


class AskCodeError(Exception):
    """Base class for every error raised by askcode."""


class ValidationError(AskCodeError):
    """A request field exceeds its size bound."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class UserNotFoundError(AskCodeError):
    def __init__(self, user_id: str) -> None:
        super().__init__("Utilisateur non trouvé")
        self.user_id = user_id


class MissingApiKeyError(AskCodeError):
    def __init__(self, user_id: str) -> None:
        super().__init__("Aucune clé API configurée pour cet utilisateur")
        self.user_id = user_id


class ProviderError(AskCodeError):
    """The LLM or embedding provider failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(ProviderError):
    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class MaxRetriesExceededError(ProviderError):
    def __init__(self, attempts: int) -> None:
        super().__init__(f"Max retries exceeded after {attempts} attempts", status_code=429)
        self.attempts = attempts


class PersistenceError(AskCodeError):
    """The answer was delivered but the conversation turn was not recorded."""
