from src.askcode import config
from src.askcode.config import AskSettings


def test_defaults_match_provider_contract():
    settings = AskSettings.from_env({})
    assert settings.model == "devstral-small-2505"
    assert settings.temperature == 0.15
    assert settings.max_tokens == 8192
    assert settings.retry_attempts == 5
    assert settings.retry_initial_delay == 2.0
    assert settings.similarity_floor == 0.3
    assert settings.top_k == 5
    assert settings.history_window == 1
    assert settings.limits.question == 10_000
    assert settings.api_key is None
    assert settings.store_impl == "memory"


def test_env_overrides_and_invalid_values_fall_back():
    settings = AskSettings.from_env(
        {
            "ASKCODE_MISTRAL_API_KEY": "  sk-default  ",
            "ASKCODE_MISTRAL_BASE_URL": "http://localhost:8080/v1/",
            "ASKCODE_HISTORY_WINDOW": "3",
            "ASKCODE_TOP_K": "-2",
            "ASKCODE_RETRY_ATTEMPTS": "many",
            "ASKCODE_LLM_TEMPERATURE": "0",
            "ASKCODE_STORE_IMPL": "Postgres",
            "ASKCODE_MAX_LANGUAGE_CHARS": "20",
        }
    )
    assert settings.api_key == "sk-default"
    assert settings.base_url == "http://localhost:8080/v1"
    assert settings.history_window == 3
    assert settings.top_k == 5
    assert settings.retry_attempts == 5
    assert settings.temperature == 0.0
    assert settings.store_impl == "postgres"
    assert settings.limits.backend_language == 20
    assert settings.limits.frontend_language == 20


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("ASKCODE_TOP_K", "7")
    first = config.get_settings()
    monkeypatch.setenv("ASKCODE_TOP_K", "9")
    assert config.get_settings() is first
    assert first.top_k == 7
