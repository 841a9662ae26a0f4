import pytest

from companion.config import (
    DEFAULT_MODELS,
    QUIZ_THINKING_BUDGET,
    AppConfig,
    build_provider,
    load_config,
)
from companion.errors import ConfigurationError

ENV_VARS = (
    "COMPANION_PROVIDER",
    "GEMINI_API_KEY",
    "API_KEY",
    "OPENAI_API_KEY",
    "COMPANION_CHAT_MODEL",
    "COMPANION_QUIZ_MODEL",
    "COMPANION_VISION_MODEL",
    "COMPANION_LIVE_MODEL",
    "COMPANION_STORE_PATH",
    "COMPANION_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_missing_key_is_fatal():
    with pytest.raises(ConfigurationError):
        load_config(dotenv=False)


def test_unknown_provider_is_rejected(monkeypatch):
    monkeypatch.setenv("COMPANION_PROVIDER", "acme")
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    with pytest.raises(ConfigurationError):
        load_config(dotenv=False)


def test_gemini_defaults(monkeypatch):
    monkeypatch.setenv("API_KEY", "legacy-key")
    config = load_config(dotenv=False)
    assert config.provider == "gemini"
    assert config.api_key == "legacy-key"
    assert config.chat_model == DEFAULT_MODELS["gemini"]["chat"]

    chat = config.chat_settings()
    assert chat.temperature == 0.9
    assert chat.relaxed_safety

    quiz = config.quiz_settings()
    assert quiz.model == "gemini-2.5-pro"
    assert quiz.use_search
    assert quiz.thinking_budget == QUIZ_THINKING_BUDGET

    assert config.vision_settings().temperature == 0.0
    assert config.perception_settings().temperature is None


def test_overrides_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("COMPANION_PROVIDER", "OpenAI")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("COMPANION_CHAT_MODEL", "gpt-x")
    monkeypatch.setenv("COMPANION_STORE_PATH", str(tmp_path / "kv.json"))
    monkeypatch.setenv("COMPANION_LOG_LEVEL", "debug")
    config = load_config(dotenv=False)
    assert config.provider == "openai"
    assert config.chat_model == "gpt-x"
    assert config.quiz_model == DEFAULT_MODELS["openai"]["quiz"]
    assert config.store_path.endswith("kv.json")
    assert config.log_level == "DEBUG"


def test_build_provider_selects_adapter():
    from companion.services.llm_openai import OpenAIProvider

    provider = build_provider(AppConfig(provider="openai", openai_api_key="sk-test"))
    assert isinstance(provider, OpenAIProvider)
    with pytest.raises(ConfigurationError):
        build_provider(AppConfig(provider="gemini"))
