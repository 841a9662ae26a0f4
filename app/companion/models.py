"""
Canonical data shapes, shared truth for typing/validation between layers.

Typical contents:
- Message / Session (persona-scoped transcript, seed system message first).
- Attachment (base64 payload + MIME type, transient).
- GenerationSettings (model, temperature, safety, grounding, thinking).
- ProviderRequest (instruction, projected history, content parts).

Testing: Trivial; mostly types. Wire-shape helpers are covered by the
session store tests.
"""

from __future__ import annotations
import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Optional
from enum import Enum


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class Persona(str, Enum):
    FRIEND = "Friend"
    THERAPIST = "Therapist"
    DOCTOR = "Doctor"
    COUNSELOR = "Counselor"


def persona_key(persona) -> str:
    """Storage/lookup key for a Persona member or a plain persona name."""
    return str(getattr(persona, "value", persona))


class QuizStep(str, Enum):
    INITIAL = "initial"
    QUIZ = "quiz"
    ANALYSIS = "analysis"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    image: Optional[str] = None
    mood: Optional[str] = None
    pending: bool = False

    @classmethod
    def system(cls, instruction: str) -> "Message":
        return cls(role=Role.SYSTEM, content=instruction)

    @classmethod
    def placeholder(cls) -> "Message":
        """Loading marker shown while a provider call is outstanding."""
        return cls(role=Role.MODEL, content="", pending=True)

    def to_dict(self) -> dict[str, str]:
        data = {"role": self.role.value, "content": self.content}
        if self.image:
            data["image"] = self.image
        if self.mood:
            data["mood"] = self.mood
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        if not isinstance(data, dict):
            raise TypeError(f"Unsupported message type: {type(data)!r}")
        return cls(
            role=Role(data["role"]),
            content=str(data.get("content") or ""),
            image=data.get("image") or None,
            mood=data.get("mood") or None,
        )


@dataclass(frozen=True)
class Attachment:
    data: str
    mime_type: str
    name: str = "attachment"

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def size_bytes(self) -> int:
        try:
            return len(base64.b64decode(self.data, validate=True))
        except (binascii.Error, ValueError):
            # rough size for payloads that are not strict base64
            return (len(self.data) * 3) // 4

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str, name: str = "attachment"):
        return cls(
            data=base64.b64encode(raw).decode("ascii"),
            mime_type=mime_type,
            name=name,
        )


@dataclass(frozen=True)
class Session:
    persona: str
    instruction: str
    messages: tuple[Message, ...] = ()

    @classmethod
    def seeded(cls, persona: str, instruction: str) -> "Session":
        return cls(
            persona=persona,
            instruction=instruction,
            messages=(Message.system(instruction),),
        )

    @property
    def transcript(self) -> list[Message]:
        """Everything except the seed system message."""
        return [m for m in self.messages[1:] if m.role != Role.SYSTEM]

    @property
    def is_pending(self) -> bool:
        return bool(self.messages) and self.messages[-1].pending


@dataclass
class GenerationSettings:
    model: str
    temperature: Optional[float] = None
    relaxed_safety: bool = False
    use_search: bool = False
    thinking_budget: Optional[int] = None


@dataclass
class ProviderRequest:
    instruction: Optional[str]
    history: list[dict[str, str]] = field(default_factory=list)
    parts: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class QuizReply:
    step: QuizStep
    payload: str

    @property
    def is_terminal(self) -> bool:
        return self.step == QuizStep.ANALYSIS


@dataclass
class DocumentRecord:
    id: str
    name: str
    content: str
    timestamp: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentRecord":
        """Build from a stored entry; extra keys are ignored."""
        if not isinstance(data, dict):
            raise TypeError(f"Unsupported document record: {type(data)!r}")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            content=str(data["content"]),
            timestamp=int(data["timestamp"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PcmChunk:
    data: str
    mime_type: str
