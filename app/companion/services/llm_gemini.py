"""
Purpose: Thin client wrapper around the Gemini API (google-genai SDK).
One place for auth, request/config mapping, response normalization and
error translation. No automatic retries: a failed call surfaces once as
ProviderError and the caller substitutes its fallback reply.

Extensibility:
- Other providers implement the same ModelProvider protocol (see llm_openai).

Testing: Pass a fake `client`; assert request mapping and error handling.
"""

from __future__ import annotations
import base64
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import ConfigurationError, ProviderError
from ..models import GenerationSettings, PcmChunk, ProviderRequest

logger = logging.getLogger(__name__)

RELAXED_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)

_CALL_ERRORS = (genai_errors.APIError, httpx.HTTPError, OSError, ValueError)


def to_part(part: dict[str, Any]) -> types.Part:
    if "inline_data" in part:
        blob = part["inline_data"]
        # the SDK base64-encodes bytes on the wire itself
        return types.Part(
            inline_data=types.Blob(
                mime_type=blob["mime_type"], data=base64.b64decode(blob["data"])
            )
        )
    return types.Part(text=part.get("text", ""))


def to_contents(history: list[dict[str, str]]) -> list[types.Content]:
    return [
        types.Content(role=turn["role"], parts=[types.Part(text=turn["content"])])
        for turn in history
    ]


def to_config(
    settings: GenerationSettings, instruction: Optional[str] = None
) -> types.GenerateContentConfig:
    safety = None
    if settings.relaxed_safety:
        safety = [
            types.SafetySetting(
                category=category,
                threshold=types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
            )
            for category in RELAXED_CATEGORIES
        ]
    tools = None
    if settings.use_search:
        tools = [types.Tool(google_search=types.GoogleSearch())]
    thinking = None
    if settings.thinking_budget is not None:
        thinking = types.ThinkingConfig(thinking_budget=settings.thinking_budget)
    return types.GenerateContentConfig(
        system_instruction=instruction or None,
        temperature=settings.temperature,
        safety_settings=safety,
        tools=tools,
        thinking_config=thinking,
    )


def _provider_error(exc: Exception, action: str) -> ProviderError:
    status = getattr(exc, "code", None)
    return ProviderError(
        f"Gemini {action} failed: {exc}",
        provider="gemini",
        status=status if isinstance(status, int) else None,
    )


class GeminiChatHandle:
    def __init__(self, chat) -> None:
        self._chat = chat

    def send(self, parts: list[dict[str, Any]]) -> str:
        try:
            resp = self._chat.send_message([to_part(p) for p in parts])
        except _CALL_ERRORS as exc:
            logger.warning("gemini_chat_send_failed", extra={"err": str(exc)})
            raise _provider_error(exc, "chat message") from exc
        return resp.text or ""


class GeminiLiveSession:
    def __init__(self, session) -> None:
        self._session = session

    async def send_audio(self, chunk: PcmChunk) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(
                data=base64.b64decode(chunk.data), mime_type=chunk.mime_type
            )
        )

    async def receive(self) -> AsyncIterator[str]:
        """Yield base64 PCM frames from model turns until the server closes."""
        while True:
            got_message = False
            async for message in self._session.receive():
                got_message = True
                content = message.server_content
                if not content or not content.model_turn:
                    continue
                for part in content.model_turn.parts or []:
                    if part.inline_data and part.inline_data.data:
                        yield base64.b64encode(part.inline_data.data).decode("ascii")
            if not got_message:
                return


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: Optional[str], *, client=None):
        if client is None:
            if not (api_key or "").strip():
                raise ConfigurationError("Missing GEMINI_API_KEY")
            client = genai.Client(api_key=api_key)
        self.client = client

    def generate(self, request: ProviderRequest, settings: GenerationSettings) -> str:
        try:
            contents = to_contents(request.history)
            contents.append(
                types.Content(role="user", parts=[to_part(p) for p in request.parts])
            )
            resp = self.client.models.generate_content(
                model=settings.model,
                contents=contents,
                config=to_config(settings, request.instruction),
            )
        except _CALL_ERRORS as exc:
            logger.warning(
                "gemini_generate_failed",
                extra={"model": settings.model, "err": str(exc)},
            )
            raise _provider_error(exc, "generate") from exc
        return resp.text or ""

    def create_chat_session(
        self,
        instruction: Optional[str],
        history: list[dict[str, str]],
        settings: GenerationSettings,
    ) -> GeminiChatHandle:
        try:
            chat = self.client.chats.create(
                model=settings.model,
                config=to_config(settings, instruction),
                history=to_contents(history),
            )
        except _CALL_ERRORS as exc:
            raise _provider_error(exc, "chat creation") from exc
        return GeminiChatHandle(chat)

    @asynccontextmanager
    async def open_streaming_session(
        self, instruction: Optional[str], settings: GenerationSettings
    ) -> AsyncIterator[GeminiLiveSession]:
        config = types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            system_instruction=instruction or None,
        )
        async with self.client.aio.live.connect(
            model=settings.model, config=config
        ) as session:
            logger.info("gemini_live_opened", extra={"model": settings.model})
            yield GeminiLiveSession(session)
        logger.info("gemini_live_closed", extra={"model": settings.model})
