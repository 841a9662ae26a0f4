"""Facade over the prompt modules: DefaultPromptFactory."""

from __future__ import annotations
from typing import Mapping

from ..models import Persona
from . import documents as _documents
from . import personas as _personas
from . import quiz as _quiz
from .perception import MOOD_PROMPT, TRANSCRIPTION_PROMPT


class DefaultPromptFactory:
    # PERSONA CHAT
    def persona_instruction(self, persona: Persona | str) -> str:
        return _personas.persona_instruction(persona)

    def persona_instructions(self) -> Mapping[str, str]:
        return {p.value: text for p, text in _personas.PERSONA_INSTRUCTIONS.items()}

    # QUIZ
    def quiz_instruction(self) -> str:
        return _quiz.build_quiz_system()

    # DOCUMENTS
    def prescription_prompt(self) -> str:
        return _documents.prescription_prompt()

    def document_prompt(self) -> str:
        return _documents.document_prompt()

    def document_follow_up(self, *, extracted_text: str, user_text: str) -> str:
        return _documents.document_follow_up(
            extracted_text=extracted_text, user_text=user_text
        )

    def analysis_wrapper(self, *, file_name: str, extracted_text: str) -> str:
        return _documents.analysis_wrapper(
            file_name=file_name, extracted_text=extracted_text
        )

    # PERCEPTION
    def mood_prompt(self) -> str:
        return MOOD_PROMPT

    def transcription_prompt(self) -> str:
        return TRANSCRIPTION_PROMPT
