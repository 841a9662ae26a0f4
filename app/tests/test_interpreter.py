from companion.models import QuizStep
from companion.services.interpreter import (
    interpret_chat_reply,
    interpret_quiz_reply,
    quick_replies,
)


def test_marker_ends_quiz_with_trimmed_payload():
    reply = interpret_quiz_reply("ANALYSIS_COMPLETE:  Summary here \n")
    assert reply.step == QuizStep.ANALYSIS
    assert reply.is_terminal
    assert reply.payload == "Summary here"


def test_marker_must_lead_the_reply():
    text = "Before we finish... ANALYSIS_COMPLETE: nope"
    reply = interpret_quiz_reply(text)
    assert reply.step == QuizStep.QUIZ
    assert reply.payload == text


def test_empty_or_missing_reply_stays_in_quiz():
    assert interpret_quiz_reply("").step == QuizStep.QUIZ
    assert interpret_quiz_reply(None).payload == ""


def test_chat_reply_is_verbatim():
    assert interpret_chat_reply("<b>hi</b> ANALYSIS_COMPLETE:") == "<b>hi</b> ANALYSIS_COMPLETE:"
    assert interpret_chat_reply(None) == ""


def test_quick_replies_for_multiple_choice():
    question = "How often?\nA) Never\nB) Sometimes\n  c) Often\nD)Always"
    assert quick_replies(question) == ["Never", "Sometimes", "Often", "Always"]


def test_quick_replies_for_yes_no():
    assert quick_replies("Do you sleep well?\nYes\nNo") == ["Yes", "No"]


def test_open_question_has_no_quick_replies():
    assert quick_replies("Tell me about your week.") == []


def test_words_starting_with_no_are_not_options():
    question = "Now, think about last week.\nNot really sure?\nNo.\nyes"
    assert quick_replies(question) == ["No.", "yes"]
