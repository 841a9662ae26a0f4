"""
Abstractions for pluggable services. Inversion of control: core depends
on interfaces, not concrete services. Enables fakes/mocks and provider swaps.
Protocols define what services or components can do,
without saying how they do it.

Common protocols:
- ModelProvider.generate(request, settings) -> str
- ModelProvider.create_chat_session(instruction, history, settings) -> handle
- ModelProvider.open_streaming_session(instruction, settings) -> async ctx
- KeyValueStore.get/set/delete/list_keys (string blobs only)
- AudioSource / AudioSink for the live-audio bridge

Testing: Use simple fake implementations to test the controllers without
network calls or audio hardware.
"""

from __future__ import annotations
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Mapping,
    Optional,
    Protocol,
)

import numpy as np

from .models import (
    Attachment,
    GenerationSettings,
    Persona,
    PcmChunk,
    ProviderRequest,
)


class ChatSessionHandle(Protocol):
    def send(self, parts: list[dict[str, Any]]) -> str: ...


class StreamingSession(Protocol):
    async def send_audio(self, chunk: PcmChunk) -> None: ...

    def receive(self) -> AsyncIterator[str]: ...


class ModelProvider(Protocol):
    name: str

    def generate(
        self, request: ProviderRequest, settings: GenerationSettings
    ) -> str: ...

    def create_chat_session(
        self,
        instruction: Optional[str],
        history: list[dict[str, str]],
        settings: GenerationSettings,
    ) -> ChatSessionHandle: ...

    def open_streaming_session(
        self, instruction: Optional[str], settings: GenerationSettings
    ) -> AsyncContextManager[StreamingSession]: ...


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def list_keys(self) -> list[str]: ...


class PromptFactory(Protocol):
    def persona_instruction(self, persona: Persona | str) -> str: ...

    def persona_instructions(self) -> Mapping[str, str]: ...

    def quiz_instruction(self) -> str: ...

    def prescription_prompt(self) -> str: ...

    def document_prompt(self) -> str: ...

    def mood_prompt(self) -> str: ...

    def transcription_prompt(self) -> str: ...

    def document_follow_up(self, *, extracted_text: str, user_text: str) -> str: ...

    def analysis_wrapper(self, *, file_name: str, extracted_text: str) -> str: ...


class SecurityGuard(Protocol):
    def validate_user_input(self, text: str, *, has_attachment: bool = False) -> None: ...

    def validate_attachment(self, attachment: Attachment) -> None: ...

    def sanitize_for_prompt(self, text: str) -> str: ...

    def sanitize_markup(self, markup: str) -> str: ...


class AudioSource(Protocol):
    sample_rate: int

    async def open(self) -> None: ...

    def frames(self) -> AsyncIterator[np.ndarray]: ...

    async def close(self) -> None: ...


class AudioSink(Protocol):
    sample_rate: int

    def open(self) -> None: ...

    def current_time(self) -> float: ...

    def play(self, samples: np.ndarray, start_at: float) -> None: ...

    def close(self) -> None: ...

