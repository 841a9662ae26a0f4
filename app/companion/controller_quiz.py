"""
Controller for the self-assessment quiz. A small state machine over one
provider chat handle:

initial -> quiz       first submission (start)
quiz -> quiz          every non-terminal reply (next question)
quiz -> analysis      reply carrying the analysis marker; terminal

Quiz transcripts live in memory only.
"""

from __future__ import annotations
import logging
from typing import Optional

from .errors import ProviderError
from .interfaces import ChatSessionHandle, ModelProvider, PromptFactory, SecurityGuard
from .models import GenerationSettings, Message, QuizReply, QuizStep, Role
from .prompts import DefaultPromptFactory
from .prompts.quiz import DEFAULT_ANSWER
from .services.interpreter import interpret_quiz_reply, quick_replies
from .services.request_builder import build_request
from .services.security import DefaultSecurity

logger = logging.getLogger(__name__)

START_FALLBACK = "Sorry, I couldn't start the quiz. Please try again."
ANSWER_FALLBACK = "Sorry, an error occurred. Please try again."


class AssessmentQuizController:
    def __init__(
        self,
        provider: ModelProvider,
        settings: GenerationSettings,
        *,
        prompts: Optional[PromptFactory] = None,
        security: Optional[SecurityGuard] = None,
    ):
        self.provider: ModelProvider = provider
        self.settings = settings
        self.prompts: PromptFactory = prompts or DefaultPromptFactory()
        self.security: SecurityGuard = security or DefaultSecurity()
        self.reset()

    def reset(self) -> None:
        """Back to the initial step with an empty transcript."""
        self.step = QuizStep.INITIAL
        self.messages: list[Message] = []
        self.analysis: str = ""
        self._chat: Optional[ChatSessionHandle] = None

    @property
    def finished(self) -> bool:
        return self.step == QuizStep.ANALYSIS

    def start(self, problem: str) -> QuizReply:
        """Describe the initial problem; the screener replies with question one."""
        if self.step != QuizStep.INITIAL:
            raise ValueError("The assessment has already started.")
        self.security.validate_user_input(problem)
        problem = self.security.sanitize_for_prompt(problem)

        self.step = QuizStep.QUIZ
        self.messages = [Message(role=Role.USER, content=problem)]
        return self._exchange(problem, START_FALLBACK)

    def answer(self, text: str) -> QuizReply:
        if self.step == QuizStep.ANALYSIS:
            logger.debug("quiz_answer_after_analysis_ignored")
            return QuizReply(step=QuizStep.ANALYSIS, payload=self.analysis)
        if self.step == QuizStep.INITIAL:
            return self.start(text)

        answer = self.security.sanitize_for_prompt(text) or DEFAULT_ANSWER
        self.security.validate_user_input(answer)
        self.messages.append(Message(role=Role.USER, content=answer))
        return self._exchange(answer, ANSWER_FALLBACK)

    def quick_replies(self) -> list[str]:
        """Options offered by the latest question, if any."""
        if self.finished or not self.messages:
            return []
        last = self.messages[-1]
        if last.role != Role.MODEL:
            return []
        return quick_replies(last.content)

    def _exchange(self, text: str, fallback: str) -> QuizReply:
        request = build_request(
            text,
            instruction=self.prompts.quiz_instruction(),
            prior_turns=self.messages[:-1],
        )
        try:
            if self._chat is None:
                self._chat = self.provider.create_chat_session(
                    request.instruction, request.history, self.settings
                )
            raw = self._chat.send(request.parts)
        except ProviderError:
            logger.warning("quiz_exchange_failed", exc_info=True)
            self.messages.append(Message(role=Role.MODEL, content=fallback))
            return QuizReply(step=QuizStep.QUIZ, payload=fallback)

        reply = interpret_quiz_reply(raw)
        if reply.is_terminal:
            self.step = QuizStep.ANALYSIS
            self.analysis = reply.payload
        else:
            self.messages.append(Message(role=Role.MODEL, content=reply.payload))
        return reply
