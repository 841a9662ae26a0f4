"""
Purpose: Small one-shot perception calls used around the chat: a camera
frame's mood and voice-note transcription. Both degrade to a fixed string
instead of raising, so they never block sending the message.
"""

from __future__ import annotations
import logging
from typing import Optional

from ..errors import ProviderError
from ..interfaces import ModelProvider, PromptFactory
from ..models import Attachment, GenerationSettings
from ..prompts import DefaultPromptFactory
from .request_builder import build_request

logger = logging.getLogger(__name__)

UNKNOWN_MOOD = "unknown"
TRANSCRIPTION_FAILED = "Audio transcription failed."

_HAPPY = ("happy", "joy", "cheerful", "excited")
_LOW = ("sad", "anxious", "angry", "upset", "stressed", "fear", "tired")


def analyze_mood(
    provider: ModelProvider,
    frame_b64: str,
    settings: GenerationSettings,
    *,
    mime_type: str = "image/jpeg",
    prompts: Optional[PromptFactory] = None,
) -> str:
    prompts = prompts or DefaultPromptFactory()
    request = build_request(
        prompts.mood_prompt(),
        attachment=Attachment(data=frame_b64, mime_type=mime_type, name="frame"),
    )
    try:
        return provider.generate(request, settings).strip() or UNKNOWN_MOOD
    except ProviderError:
        logger.warning("mood_analysis_failed", exc_info=True)
        return UNKNOWN_MOOD


def mood_category(mood: Optional[str]) -> Optional[str]:
    """Bucket a free-form mood label into happy / low / neutral for display."""
    if not mood:
        return None
    lowered = mood.lower()
    if any(word in lowered for word in _HAPPY):
        return "happy"
    if any(word in lowered for word in _LOW):
        return "low"
    return "neutral"


def transcribe_audio(
    provider: ModelProvider,
    audio_b64: str,
    mime_type: str,
    settings: GenerationSettings,
    *,
    prompts: Optional[PromptFactory] = None,
) -> str:
    prompts = prompts or DefaultPromptFactory()
    request = build_request(
        prompts.transcription_prompt(),
        attachment=Attachment(data=audio_b64, mime_type=mime_type, name="voice"),
    )
    try:
        return provider.generate(request, settings).strip()
    except ProviderError:
        logger.warning("audio_transcription_failed", exc_info=True)
        return TRANSCRIPTION_FAILED
