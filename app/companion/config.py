"""
Purpose: One explicit configuration object, built once at process start and
injected into the provider adapter and controllers (no global client).

Environment (optionally from a .env file):
- COMPANION_PROVIDER: "gemini" (default) or "openai"
- GEMINI_API_KEY (or API_KEY), OPENAI_API_KEY
- COMPANION_CHAT_MODEL / _QUIZ_MODEL / _VISION_MODEL / _LIVE_MODEL
- COMPANION_STORE_PATH: JSON file backing the key-value store
- COMPANION_LOG_LEVEL
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import GenerationSettings

SUPPORTED_PROVIDERS = ("gemini", "openai")

DEFAULT_MODELS = {
    "gemini": {
        "chat": "gemini-2.5-flash",
        "quiz": "gemini-2.5-pro",
        "vision": "gemini-2.5-flash",
        "live": "gemini-2.5-flash-native-audio-preview-09-2025",
    },
    "openai": {
        "chat": "gpt-4o-mini",
        "quiz": "gpt-4o",
        "vision": "gpt-4o-mini",
        "live": "gpt-4o-mini",
    },
}

QUIZ_THINKING_BUDGET = 32768


@dataclass
class AppConfig:
    provider: str = "gemini"
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    chat_model: str = DEFAULT_MODELS["gemini"]["chat"]
    quiz_model: str = DEFAULT_MODELS["gemini"]["quiz"]
    vision_model: str = DEFAULT_MODELS["gemini"]["vision"]
    live_model: str = DEFAULT_MODELS["gemini"]["live"]
    store_path: str = ".companion/storage.json"
    log_level: str = "INFO"

    @property
    def api_key(self) -> Optional[str]:
        if self.provider == "openai":
            return self.openai_api_key
        return self.gemini_api_key

    def validate(self) -> "AppConfig":
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                f"Unknown provider {self.provider!r}; "
                f"expected one of {', '.join(SUPPORTED_PROVIDERS)}"
            )
        if not (self.api_key or "").strip():
            name = "OPENAI_API_KEY" if self.provider == "openai" else "GEMINI_API_KEY"
            raise ConfigurationError(f"Missing {name}")
        return self

    def chat_settings(self) -> GenerationSettings:
        return GenerationSettings(
            model=self.chat_model, temperature=0.9, relaxed_safety=True
        )

    def quiz_settings(self) -> GenerationSettings:
        return GenerationSettings(
            model=self.quiz_model,
            use_search=True,
            thinking_budget=QUIZ_THINKING_BUDGET,
        )

    def vision_settings(self) -> GenerationSettings:
        return GenerationSettings(model=self.vision_model, temperature=0.0)

    def perception_settings(self) -> GenerationSettings:
        """Mood detection and transcription use provider defaults."""
        return GenerationSettings(model=self.vision_model)

    def live_settings(self) -> GenerationSettings:
        return GenerationSettings(model=self.live_model)


def load_config(*, dotenv: bool = True) -> AppConfig:
    """Read the environment into a validated AppConfig."""
    if dotenv:
        load_dotenv()

    provider = (os.getenv("COMPANION_PROVIDER") or "gemini").strip().lower()
    models = DEFAULT_MODELS.get(provider, DEFAULT_MODELS["gemini"])
    config = AppConfig(
        provider=provider,
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        chat_model=os.getenv("COMPANION_CHAT_MODEL", models["chat"]),
        quiz_model=os.getenv("COMPANION_QUIZ_MODEL", models["quiz"]),
        vision_model=os.getenv("COMPANION_VISION_MODEL", models["vision"]),
        live_model=os.getenv("COMPANION_LIVE_MODEL", models["live"]),
        store_path=os.getenv("COMPANION_STORE_PATH", AppConfig.store_path),
        log_level=os.getenv("COMPANION_LOG_LEVEL", "INFO").upper(),
    )
    return config.validate()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("companion").setLevel(
        getattr(logging, (level or "INFO").upper(), logging.INFO)
    )


def build_provider(config: AppConfig):
    """Construct the provider adapter named by the config."""
    config.validate()
    if config.provider == "openai":
        from .services.llm_openai import OpenAIProvider

        return OpenAIProvider(config.openai_api_key)

    from .services.llm_gemini import GeminiProvider

    return GeminiProvider(config.gemini_api_key)
