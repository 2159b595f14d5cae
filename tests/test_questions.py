import json

import pytest

from teamsurvey.errors import ValidationFailed
from teamsurvey.questions import (
    answers_from_form,
    build_qa_responses,
    describe_question_type,
    parse_questions,
    question_count,
    validate_answers,
)

QUESTIONS = [
    {"id": "q1", "text": "Rate us", "type": "rating", "scale": 5, "required": True},
    {"id": "q2", "text": "Pick one", "type": "multiple_choice", "options": ["Red", "Blue"], "required": True},
    {"id": "q3", "text": "Happy?", "type": "yes_no"},
    {"id": "q4", "text": "Comments", "type": "text"},
]


def test_parse_questions_assigns_ids_and_default_scale():
    raw = json.dumps([
        {"text": "Rate the office", "type": "rating"},
        {"text": "Thoughts?", "type": "text", "required": True},
    ])
    questions = parse_questions(raw)
    assert [q["id"] for q in questions] == ["q1", "q2"]
    assert questions[0]["scale"] == 5
    assert questions[1]["required"] is True


def test_parse_questions_accepts_wrapped_object():
    raw = json.dumps({"questions": [{"id": "mood", "text": "Mood?", "type": "yes_no"}]})
    assert parse_questions(raw) == [{"id": "mood", "text": "Mood?", "type": "yes_no", "required": False}]


def test_parse_questions_rejects_bad_json():
    with pytest.raises(ValidationFailed) as exc:
        parse_questions("[{not json")
    assert exc.value.message.startswith("Questions are not valid JSON")


def test_parse_questions_collects_errors_per_question():
    raw = json.dumps([
        {"text": "", "type": "text"},
        {"text": "Pick", "type": "multiple_choice", "options": ["only one"]},
        {"text": "What?", "type": "slider"},
    ])
    with pytest.raises(ValidationFailed) as exc:
        parse_questions(raw)
    assert exc.value.message == "Invalid questions"
    assert {detail.split(":")[0] for detail in exc.value.details} == {"Question 1", "Question 2", "Question 3"}


def test_parse_questions_rejects_duplicate_ids():
    raw = json.dumps([
        {"id": "a", "text": "One", "type": "text"},
        {"id": "a", "text": "Two", "type": "text"},
    ])
    with pytest.raises(ValidationFailed) as exc:
        parse_questions(raw)
    assert exc.value.details == ["a"]


def test_question_count_handles_legacy_shapes():
    assert question_count(None) == 0
    assert question_count(QUESTIONS) == 4
    assert question_count({"questions": QUESTIONS[:2]}) == 2
    assert question_count("garbage") == 0


@pytest.mark.parametrize(
    "question, label",
    [
        ({"type": "rating", "scale": 10}, "Rating (1-10 scale)"),
        ({"type": "rating"}, "Rating (1-5 scale)"),
        ({"type": "text"}, "Text Response"),
        ({"type": "multiple_choice"}, "Multiple Choice"),
        ({"type": "yes_no"}, "Yes/No"),
    ],
)
def test_describe_question_type(question, label):
    assert describe_question_type(question) == label


def test_validate_answers_coerces_form_strings():
    cleaned = validate_answers(
        QUESTIONS, {"q1": "4", "q2": "Blue", "q3": "YES", "q4": "  fine  ", "unknown": "dropped"}
    )
    assert cleaned == {"q1": 4, "q2": "Blue", "q3": "yes", "q4": "fine"}


def test_validate_answers_skips_blank_optional_answers():
    assert validate_answers(QUESTIONS, {"q1": 3, "q2": "Red", "q4": "   "}) == {"q1": 3, "q2": "Red"}


def test_validate_answers_reports_every_problem():
    with pytest.raises(ValidationFailed) as exc:
        validate_answers(QUESTIONS, {"q1": "9", "q3": "maybe"})
    assert exc.value.message == "Please answer all required questions before submitting."
    assert exc.value.details == [
        "Question 1 must be between 1 and 5",
        "Question 2 is required",
        "Question 3 must be yes or no",
    ]


def test_validate_answers_rejects_unknown_option():
    with pytest.raises(ValidationFailed) as exc:
        validate_answers(QUESTIONS, {"q1": 1, "q2": "Green"})
    assert exc.value.details == ["Question 2 is not one of the offered options"]


def test_build_qa_responses_keeps_question_order():
    qa = build_qa_responses(QUESTIONS[:2], {"q2": "Red", "q1": 5}, "guest@example.com")
    assert qa == {
        "email": "guest@example.com",
        "responses": [
            {"questionId": "q1", "question": "Rate us", "answer": 5, "type": "rating"},
            {"questionId": "q2", "question": "Pick one", "answer": "Red", "type": "multiple_choice"},
        ],
    }


def test_answers_from_form_reads_prefixed_fields():
    form = {"q_q1": "5", "q_q4": "hi", "csrf": "x"}
    assert answers_from_form(QUESTIONS, form) == {"q1": "5", "q2": None, "q3": None, "q4": "hi"}


@pytest.mark.parametrize("value", [4.9, True, "4.5", "four", "²", [4]])
def test_validate_answers_rejects_non_integer_ratings(value):
    with pytest.raises(ValidationFailed) as exc:
        validate_answers(QUESTIONS, {"q1": value, "q2": "Red"})
    assert exc.value.details == ["Question 1 must be a whole number"]


@pytest.mark.parametrize("value", [4, 4.0, " 4 "])
def test_validate_answers_accepts_integral_ratings(value):
    assert validate_answers(QUESTIONS, {"q1": value, "q2": "Red"})["q1"] == 4
