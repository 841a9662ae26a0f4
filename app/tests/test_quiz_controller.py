import pytest

from companion.controller_quiz import (
    ANSWER_FALLBACK,
    START_FALLBACK,
    AssessmentQuizController,
)
from companion.errors import ProviderError
from companion.models import QuizStep, Role
from companion.prompts.quiz import DEFAULT_ANSWER

from conftest import FakeProvider


def make_quiz(replies, settings):
    provider = FakeProvider(replies)
    return provider, AssessmentQuizController(provider, settings)


def test_full_quiz_flow_reaches_analysis(settings, prompts):
    provider, quiz = make_quiz(
        [
            "Q1: Do you sleep well?\nYes\nNo",
            "Q2: How is your appetite?\nA) Good\nB) Poor",
            "ANALYSIS_COMPLETE: I'm an AI, not a doctor. Summary...",
        ],
        settings,
    )
    assert quiz.step == QuizStep.INITIAL

    first = quiz.start("I can't sleep")
    assert first.step == QuizStep.QUIZ
    assert quiz.quick_replies() == ["Yes", "No"]

    quiz.answer("No")
    assert quiz.quick_replies() == ["Good", "Poor"]

    final = quiz.answer("Poor")
    assert final.is_terminal
    assert quiz.finished
    assert quiz.analysis == "I'm an AI, not a doctor. Summary..."
    assert quiz.quick_replies() == []

    assert len(provider.chats) == 1
    chat = provider.chats[0]
    assert chat.instruction == prompts.quiz_instruction()
    assert chat.history == []
    assert [p[0]["text"] for p in chat.sent] == ["I can't sleep", "No", "Poor"]
    assert [m.role for m in quiz.messages] == [
        Role.USER,
        Role.MODEL,
        Role.USER,
        Role.MODEL,
        Role.USER,
    ]


def test_answers_after_analysis_do_not_call_provider(settings):
    provider, quiz = make_quiz(["ANALYSIS_COMPLETE: done"], settings)
    quiz.start("stress")
    reply = quiz.answer("one more")
    assert reply.payload == "done"
    assert len(provider.chats[0].sent) == 1


def test_empty_answer_uses_default(settings):
    provider, quiz = make_quiz(["Q1?", "Q2?"], settings)
    quiz.start("worried")
    quiz.answer("   ")
    assert provider.chats[0].sent[-1] == [{"text": DEFAULT_ANSWER}]


def test_answer_in_initial_step_starts_quiz(settings):
    _, quiz = make_quiz(["Q1?"], settings)
    reply = quiz.answer("I feel low")
    assert reply.step == QuizStep.QUIZ
    assert quiz.messages[0].content == "I feel low"


def test_start_twice_is_rejected(settings):
    _, quiz = make_quiz(["Q1?"], settings)
    quiz.start("x")
    with pytest.raises(ValueError):
        quiz.start("y")


def test_empty_problem_is_rejected(settings):
    provider, quiz = make_quiz([], settings)
    with pytest.raises(ValueError):
        quiz.start("  ")
    assert provider.chats == []
    assert quiz.step == QuizStep.INITIAL


def test_provider_failure_uses_fallbacks_and_stays_in_quiz(settings):
    provider, quiz = make_quiz(
        [ProviderError("boom"), ProviderError("boom"), "Q1?"], settings
    )
    assert quiz.start("anxious").payload == START_FALLBACK
    assert quiz.answer("hello").payload == ANSWER_FALLBACK
    assert quiz.step == QuizStep.QUIZ
    assert quiz.answer("again").payload == "Q1?"


def test_reset_drops_transcript_and_handle(settings):
    provider, quiz = make_quiz(["Q1?", "Q1 again?"], settings)
    quiz.start("x")
    quiz.reset()
    assert quiz.step == QuizStep.INITIAL
    assert quiz.messages == []
    quiz.start("y")
    assert len(provider.chats) == 2
