"""
Purpose: The single orchestration point for a persona chat. Owns the open
Session and the provider chat handle; centralizes "one-turn" logic so the UI
never touches prompts, providers or storage directly.

Key responsibilities:
- open(persona): rehydrate the persona transcript, drop any stale chat handle.
- send(text, attachment, mood_frame): validate input, tag mood, append the
  user turn, run the document flow when a file is attached, append the reply.
- Replace provider failures with a human-readable fallback reply so the
  conversation stays usable for the next turn.
- clear(persona) / saved_histories() / documents() for the history browser.

Testing: Pure unit tests with fakes: fake ModelProvider and an in-memory
key-value store. Verify transcript shape and error handling.
"""

from __future__ import annotations
import logging
from typing import Optional

from .errors import ProviderError
from .interfaces import ChatSessionHandle, ModelProvider, PromptFactory, SecurityGuard
from .models import (
    Attachment,
    GenerationSettings,
    Message,
    Persona,
    ProviderRequest,
    Role,
    Session,
    persona_key,
)
from .prompts import DefaultPromptFactory
from .services.documents import DocumentArchive, DocumentExtractor
from .services.interpreter import interpret_chat_reply
from .services.perception import TRANSCRIPTION_FAILED, analyze_mood, transcribe_audio
from .services.request_builder import build_request
from .services.security import DefaultSecurity
from .session import SessionManager

logger = logging.getLogger(__name__)

CHAT_FALLBACK = "I'm sorry, I encountered an error. Please try again."
DOCUMENT_FALLBACK = (
    "I'm sorry, I encountered an error analyzing the document. Please try again."
)


class CompanionChatController:
    def __init__(
        self,
        provider: ModelProvider,
        sessions: SessionManager,
        *,
        settings: GenerationSettings,
        vision_settings: Optional[GenerationSettings] = None,
        perception_settings: Optional[GenerationSettings] = None,
        archive: Optional[DocumentArchive] = None,
        prompts: Optional[PromptFactory] = None,
        security: Optional[SecurityGuard] = None,
    ):
        self.provider: ModelProvider = provider
        self.sessions = sessions
        self.settings = settings
        self.perception_settings = perception_settings or settings
        self.prompts: PromptFactory = prompts or DefaultPromptFactory()
        self.security: SecurityGuard = security or DefaultSecurity()
        self.extractor = DocumentExtractor(
            provider,
            vision_settings or settings,
            prompts=self.prompts,
            security=self.security,
        )
        self.archive = archive

        self.session: Optional[Session] = None
        self._chat: Optional[ChatSessionHandle] = None

    def is_ready(self) -> bool:
        """True if a persona session is open."""
        return self.session is not None

    @property
    def persona(self) -> Optional[str]:
        return self.session.persona if self.session else None

    def open(self, persona: Persona | str) -> Session:
        """Load (or seed) the persona transcript; the next send replays it."""
        self.session = self.sessions.open(persona)
        self._chat = None
        return self.session

    def history(self) -> list[Message]:
        """Visible transcript, without the system instruction."""
        return self.session.transcript if self.session else []

    def clear(self, persona: Persona | str) -> None:
        """Delete the stored history; resets the open session if it matches."""
        self.sessions.clear(persona)
        key = persona_key(persona)
        if self.session and self.session.persona == key:
            self.session = self.sessions.fresh(key)
            self._chat = None

    def saved_histories(self) -> dict[str, list[Message]]:
        return self.sessions.saved_histories()

    def documents(self):
        return self.archive.records() if self.archive else []

    def voice_to_text(
        self, audio_b64: str, mime_type: str = "audio/wav"
    ) -> Optional[str]:
        """Transcribe a voice note; None when there is nothing usable to send."""
        text = transcribe_audio(
            self.provider,
            audio_b64,
            mime_type,
            self.perception_settings,
            prompts=self.prompts,
        )
        if not text or text == TRANSCRIPTION_FAILED:
            return None
        return text

    def send(
        self,
        text: str,
        *,
        attachment: Optional[Attachment] = None,
        mood_frame: Optional[str] = None,
    ) -> Session:
        """
        Handle one user turn.
        Pattern:
        Validate and clean the input; tag the mood of the optional camera frame.
        Append the user turn (with the attachment preview as a data URI).
        With an attachment: extract the document, archive the analysis, show it
        as a model message, then ask the persona to answer the user's text
        in light of it. Without: send the text as-is.
        Returns the updated session.
        """
        if self.session is None:
            raise RuntimeError("Open a persona session before sending messages.")

        self.security.validate_user_input(text, has_attachment=attachment is not None)
        if attachment is not None:
            self.security.validate_attachment(attachment)
        user_text = self.security.sanitize_for_prompt(text)

        mood = None
        if mood_frame:
            mood = analyze_mood(
                self.provider,
                mood_frame,
                self.perception_settings,
                prompts=self.prompts,
            )

        prior_turns = self.session.messages
        self.session = self.sessions.append(
            self.session,
            Message(
                role=Role.USER,
                content=user_text,
                image=attachment.data_uri if attachment else None,
                mood=mood,
            ),
        )

        if attachment is None:
            request = build_request(
                user_text,
                instruction=self.session.instruction,
                prior_turns=prior_turns,
            )
            self._reply(request, CHAT_FALLBACK)
        else:
            self._reply_with_document(user_text, attachment, prior_turns)
        return self.session

    def _reply_with_document(
        self, user_text: str, attachment: Attachment, prior_turns
    ) -> None:
        self.session = self.sessions.append(self.session, Message.placeholder())
        try:
            extracted = self.extractor.extract(attachment)
        except ProviderError:
            logger.warning(
                "chat_document_extract_failed",
                extra={"persona": self.persona, "file": attachment.name},
                exc_info=True,
            )
            self._settle(DOCUMENT_FALLBACK)
            return

        if self.archive is not None:
            self.archive.save(attachment.name, extracted)
        self._settle(
            self.prompts.analysis_wrapper(
                file_name=attachment.name, extracted_text=extracted
            )
        )

        follow_up = self.prompts.document_follow_up(
            extracted_text=extracted, user_text=user_text
        )
        request = build_request(
            follow_up, instruction=self.session.instruction, prior_turns=prior_turns
        )
        self._reply(request, DOCUMENT_FALLBACK)

    def _reply(self, request: ProviderRequest, fallback: str) -> None:
        self.session = self.sessions.append(self.session, Message.placeholder())
        try:
            if self._chat is None:
                self._chat = self.provider.create_chat_session(
                    request.instruction, request.history, self.settings
                )
            reply = interpret_chat_reply(self._chat.send(request.parts))
        except ProviderError:
            logger.warning(
                "chat_reply_failed", extra={"persona": self.persona}, exc_info=True
            )
            reply = fallback
        self._settle(reply)

    def _settle(self, content: str) -> None:
        self.session = self.sessions.replace_pending(
            self.session, Message(role=Role.MODEL, content=content)
        )
