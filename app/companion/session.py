"""
Purpose: Persona-scoped transcript state. Open (rehydrate or seed), append,
persist, clear. Persistence is best-effort: storage problems are logged and
the in-memory conversation carries on.

Invariant: a Session's first message is the persona's system instruction.
Sessions with no real exchange (<= 1 message) are never written.

Testing: InMemoryKeyValueStore + failing fakes; round-trip and isolation.
"""

from __future__ import annotations
import dataclasses
import json
import logging
from typing import Mapping, Optional

from .errors import PersistenceError
from .models import Message, Role, Session, persona_key
from .persistence.session_store import NamespacedStore

logger = logging.getLogger(__name__)

_STORE_ERRORS = (PersistenceError, OSError, ValueError, TypeError, KeyError)


def serialize(session: Session) -> str:
    return json.dumps(
        [m.to_dict() for m in session.messages if not m.pending],
        ensure_ascii=False,
    )


def deserialize(raw: str) -> list[Message]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("Stored transcript is not a list")
    return [Message.from_dict(item) for item in data]


class SessionManager:
    def __init__(
        self, namespace: NamespacedStore, instructions: Mapping[str, str]
    ) -> None:
        self.namespace = namespace
        self.instructions = {persona_key(k): v for k, v in instructions.items()}

    def instruction_for(self, persona) -> str:
        key = persona_key(persona)
        try:
            return self.instructions[key]
        except KeyError:
            raise ValueError(f"Unknown persona: {key!r}") from None

    def fresh(self, persona) -> Session:
        key = persona_key(persona)
        return Session.seeded(key, self.instruction_for(key))

    def _load(self, key: str) -> Optional[list[Message]]:
        try:
            raw = self.namespace.for_persona(key).load()
            if not raw:
                return None
            return deserialize(raw)
        except _STORE_ERRORS:
            logger.warning(
                "chat_history_load_failed", extra={"persona": key}, exc_info=True
            )
            return None

    def open(self, persona) -> Session:
        """Rehydrate the stored transcript for persona, or seed a fresh one."""
        key = persona_key(persona)
        instruction = self.instruction_for(key)
        messages = self._load(key)
        if not messages or len(messages) <= 1:
            return Session.seeded(key, instruction)
        if messages[0].role != Role.SYSTEM:
            messages.insert(0, Message.system(instruction))
        return Session(persona=key, instruction=instruction, messages=tuple(messages))

    def append(self, session: Session, message: Message) -> Session:
        if message.role == Role.SYSTEM:
            raise ValueError("Only the seed message may carry the system role.")
        updated = dataclasses.replace(
            session, messages=session.messages + (message,)
        )
        if len(updated.messages) > 1 and not message.pending:
            self.persist(updated)
        return updated

    def replace_pending(self, session: Session, message: Message) -> Session:
        """Swap the trailing loading placeholder for the final message."""
        if not session.is_pending:
            return self.append(session, message)
        updated = dataclasses.replace(
            session, messages=session.messages[:-1] + (message,)
        )
        if len(updated.messages) > 1:
            self.persist(updated)
        return updated

    def persist(self, session: Session) -> None:
        try:
            self.namespace.for_persona(session.persona).save(serialize(session))
        except _STORE_ERRORS:
            logger.warning(
                "chat_history_save_failed",
                extra={"persona": session.persona},
                exc_info=True,
            )

    def clear(self, persona) -> None:
        key = persona_key(persona)
        try:
            self.namespace.for_persona(key).delete()
        except _STORE_ERRORS:
            logger.warning(
                "chat_history_clear_failed", extra={"persona": key}, exc_info=True
            )

    def saved_histories(self) -> dict[str, list[Message]]:
        """Stored transcripts with a real exchange, keyed by persona name."""
        histories: dict[str, list[Message]] = {}
        try:
            personas = self.namespace.personas()
        except _STORE_ERRORS:
            logger.warning("chat_history_list_failed", exc_info=True)
            return histories
        for name in personas:
            messages = self._load(name)
            if messages and len(messages) > 1:
                histories[name] = [m for m in messages if m.role != Role.SYSTEM]
        return histories
