"""
Purpose: Thin client wrapper around OpenAI chat completions, exposing the
same ModelProvider protocol as the Gemini adapter so the controllers do not
care which provider answers.

Mapping:
- Roles: model -> assistant; instruction -> leading system message.
- Parts: text, image/* -> image_url data URI, audio/* -> input_audio,
  anything else (PDF) -> file with inline file_data.
- Live audio is not offered through this adapter.

Testing: Mock SDK calls; assert payload mapping and error translation.
"""

from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from openai import OpenAI, OpenAIError

from ..errors import ConfigurationError, ProviderError
from ..models import GenerationSettings, ProviderRequest

logger = logging.getLogger(__name__)

_ROLE_MAP = {"model": "assistant", "user": "user"}


def _content_part(part: dict[str, Any]) -> dict[str, Any]:
    if "inline_data" not in part:
        return {"type": "text", "text": part.get("text", "")}
    blob = part["inline_data"]
    mime = blob["mime_type"]
    if mime.startswith("image/"):
        return {
            "type": "image_url",
            "image_url": {"url": f"data:{mime};base64,{blob['data']}"},
        }
    if mime.startswith("audio/"):
        fmt = "mp3" if mime.endswith(("mpeg", "mp3")) else "wav"
        return {"type": "input_audio", "input_audio": {"data": blob["data"], "format": fmt}}
    return {
        "type": "file",
        "file": {"filename": "document", "file_data": f"data:{mime};base64,{blob['data']}"},
    }


def to_messages(
    instruction: Optional[str], history: list[dict[str, str]]
) -> list[dict[str, Any]]:
    payload: list[dict[str, Any]] = []
    if instruction:
        payload.append({"role": "system", "content": instruction})
    for turn in history:
        payload.append(
            {"role": _ROLE_MAP.get(turn["role"], "user"), "content": turn["content"]}
        )
    return payload


def to_user_message(parts: list[dict[str, Any]]) -> dict[str, Any]:
    if len(parts) == 1 and "inline_data" not in parts[0]:
        return {"role": "user", "content": parts[0].get("text", "")}
    return {"role": "user", "content": [_content_part(p) for p in parts]}


def _flatten(message: dict[str, Any]) -> str:
    """Text-only rendering of a user turn for the retained chat history."""
    content = message["content"]
    if isinstance(content, str):
        return content
    return "\n".join(p["text"] for p in content if p.get("type") == "text")


class OpenAIChatHandle:
    def __init__(self, provider: "OpenAIProvider", messages, settings) -> None:
        self._provider = provider
        self._messages: list[dict[str, Any]] = messages
        self._settings = settings

    def send(self, parts: list[dict[str, Any]]) -> str:
        user_message = to_user_message(parts)
        reply = self._provider._complete(
            self._messages + [user_message], self._settings
        )
        self._messages.append({"role": "user", "content": _flatten(user_message)})
        self._messages.append({"role": "assistant", "content": reply})
        return reply


class OpenAIProvider:
    name = "openai"

    def __init__(self, api_key: Optional[str], *, client=None):
        if client is None:
            if not (api_key or "").strip():
                raise ConfigurationError("Missing OPENAI_API_KEY")
            try:
                client = OpenAI(api_key=api_key)
            except OpenAIError as e:
                raise ConfigurationError(f"Failed to initialize OpenAI client: {e}")
        self.client = client

    def _complete(
        self, messages: list[dict[str, Any]], settings: GenerationSettings
    ) -> str:
        kwargs: dict[str, Any] = {"model": settings.model, "messages": messages}
        if settings.temperature is not None:
            kwargs["temperature"] = settings.temperature
        try:
            cc = self.client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            logger.warning(
                "openai_completion_failed",
                extra={"model": settings.model, "err": str(exc)},
            )
            raise ProviderError(
                f"OpenAI completion failed: {exc}",
                provider="openai",
                status=getattr(exc, "status_code", None),
            ) from exc
        return cc.choices[0].message.content or ""

    def generate(self, request: ProviderRequest, settings: GenerationSettings) -> str:
        messages = to_messages(request.instruction, request.history)
        messages.append(to_user_message(request.parts))
        return self._complete(messages, settings)

    def create_chat_session(
        self,
        instruction: Optional[str],
        history: list[dict[str, str]],
        settings: GenerationSettings,
    ) -> OpenAIChatHandle:
        return OpenAIChatHandle(self, to_messages(instruction, history), settings)

    @asynccontextmanager
    async def open_streaming_session(
        self, instruction: Optional[str], settings: GenerationSettings
    ) -> AsyncIterator[Any]:
        raise ProviderError(
            "Live audio is not available with the OpenAI provider.", provider="openai"
        )
        yield  # pragma: no cover
