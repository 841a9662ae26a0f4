"""
Purpose: Read provider output for application-level transitions.

Quiz replies: a reply starting with the analysis marker ends the quiz; the
remainder (trimmed) is the analysis payload. Anything else, including
malformed or empty output, is the next question and keeps the quiz going.
Chat replies pass through verbatim. Model markup is untrusted: rendering
code must sanitize it (see security.sanitize_markup).
"""

from __future__ import annotations
import re

from ..models import QuizReply, QuizStep
from ..prompts.quiz import ANALYSIS_MARKER

_OPTION_LINE = re.compile(r"^\s*[A-Da-d]\)")
_OPTION_PREFIX = re.compile(r"^\s*[A-Da-d]\)\s*")
_YES_NO_LINE = re.compile(r"^\s*(Yes|No)\b", re.IGNORECASE)


def interpret_quiz_reply(text: str) -> QuizReply:
    raw = text or ""
    if raw.startswith(ANALYSIS_MARKER):
        return QuizReply(
            step=QuizStep.ANALYSIS, payload=raw[len(ANALYSIS_MARKER):].strip()
        )
    return QuizReply(step=QuizStep.QUIZ, payload=raw)


def interpret_chat_reply(text: str) -> str:
    return text or ""


def quick_replies(question: str) -> list[str]:
    """Answer options offered by a multiple-choice or yes/no question."""
    replies = []
    for line in (question or "").split("\n"):
        if _OPTION_LINE.match(line) or _YES_NO_LINE.match(line):
            replies.append(_OPTION_PREFIX.sub("", line))
    return replies
