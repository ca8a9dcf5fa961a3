from __future__ import annotations

"""Runtime settings loaded from environment variables.

Env vars (all optional):
- ASKCODE_MISTRAL_API_KEY: default provider key for users without their own
- ASKCODE_MISTRAL_BASE_URL (default https://api.mistral.ai/v1)
- ASKCODE_LLM_MODEL / ASKCODE_LLM_TEMPERATURE / ASKCODE_LLM_MAX_TOKENS
- ASKCODE_EMBEDDING_MODEL / ASKCODE_EMBEDDING_DIM
- ASKCODE_SIMILARITY_FLOOR / ASKCODE_TOP_K / ASKCODE_HISTORY_WINDOW
- ASKCODE_RETRY_ATTEMPTS / ASKCODE_RETRY_INITIAL_DELAY_MS / ASKCODE_RETRY_MULTIPLIER
- ASKCODE_LLM_CONNECT_TIMEOUT / ASKCODE_LLM_READ_TIMEOUT (seconds)
- ASKCODE_STORE_IMPL (memory|postgres) / ASKCODE_DATABASE_URL
- ASKCODE_MAX_QUESTION_CHARS / ASKCODE_MAX_TOPIC_CHARS / ASKCODE_MAX_LANGUAGE_CHARS
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


@dataclass(frozen=True)
class FieldLimits:
    question: int = 10_000
    topic: int = 100
    backend_language: int = 50
    frontend_language: int = 50


@dataclass(frozen=True)
class AskSettings:
    api_key: Optional[str] = None
    base_url: str = "https://api.mistral.ai/v1"
    model: str = "devstral-small-2505"
    temperature: float = 0.15
    max_tokens: int = 8192
    embedding_model: str = "mistral-embed"
    embedding_dim: int = 1024
    similarity_floor: float = 0.3
    top_k: int = 5
    history_window: int = 1
    retry_attempts: int = 5
    retry_initial_delay_ms: int = 2000
    retry_multiplier: float = 2.0
    connect_timeout: float = 3.0
    read_timeout: float = 60.0
    store_impl: str = "memory"
    database_url: Optional[str] = None
    limits: FieldLimits = field(default_factory=FieldLimits)

    @property
    def retry_initial_delay(self) -> float:
        return self.retry_initial_delay_ms / 1000.0

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "AskSettings":
        env = os.environ if env is None else env
        defaults = AskSettings()
        limits = FieldLimits(
            question=_env_int(env, "ASKCODE_MAX_QUESTION_CHARS", defaults.limits.question),
            topic=_env_int(env, "ASKCODE_MAX_TOPIC_CHARS", defaults.limits.topic),
            backend_language=_env_int(env, "ASKCODE_MAX_LANGUAGE_CHARS", defaults.limits.backend_language),
            frontend_language=_env_int(env, "ASKCODE_MAX_LANGUAGE_CHARS", defaults.limits.frontend_language),
        )
        return AskSettings(
            api_key=(env.get("ASKCODE_MISTRAL_API_KEY") or "").strip() or None,
            base_url=(env.get("ASKCODE_MISTRAL_BASE_URL") or defaults.base_url).rstrip("/"),
            model=env.get("ASKCODE_LLM_MODEL") or defaults.model,
            temperature=_env_float(env, "ASKCODE_LLM_TEMPERATURE", defaults.temperature, allow_zero=True),
            max_tokens=_env_int(env, "ASKCODE_LLM_MAX_TOKENS", defaults.max_tokens),
            embedding_model=env.get("ASKCODE_EMBEDDING_MODEL") or defaults.embedding_model,
            embedding_dim=_env_int(env, "ASKCODE_EMBEDDING_DIM", defaults.embedding_dim),
            similarity_floor=_env_float(env, "ASKCODE_SIMILARITY_FLOOR", defaults.similarity_floor, allow_zero=True),
            top_k=_env_int(env, "ASKCODE_TOP_K", defaults.top_k),
            history_window=_env_int(env, "ASKCODE_HISTORY_WINDOW", defaults.history_window),
            retry_attempts=_env_int(env, "ASKCODE_RETRY_ATTEMPTS", defaults.retry_attempts),
            retry_initial_delay_ms=_env_int(env, "ASKCODE_RETRY_INITIAL_DELAY_MS", defaults.retry_initial_delay_ms),
            retry_multiplier=_env_float(env, "ASKCODE_RETRY_MULTIPLIER", defaults.retry_multiplier),
            connect_timeout=_env_float(env, "ASKCODE_LLM_CONNECT_TIMEOUT", defaults.connect_timeout),
            read_timeout=_env_float(env, "ASKCODE_LLM_READ_TIMEOUT", defaults.read_timeout),
            store_impl=(env.get("ASKCODE_STORE_IMPL") or defaults.store_impl).strip().lower(),
            database_url=env.get("ASKCODE_DATABASE_URL") or None,
            limits=limits,
        )


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float, allow_zero: bool = False) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value > 0 or (allow_zero and value == 0):
        return value
    return default


_settings: AskSettings | None = None


def get_settings() -> AskSettings:
    global _settings
    if _settings is None:
        _settings = AskSettings.from_env()
    return _settings
