"""Survey question authoring and answer validation.

Questions are stored as a JSON list on the survey row. Each element looks like::

    {"id": "q1", "text": "How do you rate ...", "type": "rating",
     "scale": 5, "required": true}

Supported types are ``rating``, ``text``, ``multiple_choice`` (needs
``options``) and ``yes_no``. Answers arrive keyed by question id, either from
an HTML form (all strings) or a JSON body.
"""
import json
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from teamsurvey.errors import ValidationFailed

QUESTION_TYPES = ("rating", "text", "multiple_choice", "yes_no")
DEFAULT_SCALE = 5
YES_NO_VALUES = ("yes", "no")


class Question(BaseModel):
    id: Optional[str] = None
    text: str = Field(min_length=1)
    type: Literal["rating", "text", "multiple_choice", "yes_no"]
    scale: Optional[int] = Field(default=None, ge=2, le=10)
    required: bool = False
    options: Optional[list[str]] = None

    @model_validator(mode="after")
    def _check_type_fields(self):
        if self.type == "rating" and self.scale is None:
            self.scale = DEFAULT_SCALE
        if self.type == "multiple_choice":
            options = [option.strip() for option in (self.options or []) if option.strip()]
            if len(options) < 2:
                raise ValueError("multiple_choice questions need at least two options")
            self.options = options
        return self


def parse_questions(raw: str) -> list[dict]:
    """Validate an authored JSON question list and fill in missing ids."""
    try:
        data = json.loads(raw) if raw and raw.strip() else []
    except json.JSONDecodeError as exc:
        raise ValidationFailed(f"Questions are not valid JSON: {exc.msg}") from exc
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        raise ValidationFailed("Questions must be a JSON list")

    questions = []
    errors = []
    for index, item in enumerate(data, start=1):
        try:
            question = Question.model_validate(item)
        except ValidationError as exc:
            errors.extend(f"Question {index}: {err['msg']}" for err in exc.errors())
            continue
        if not question.id:
            question.id = f"q{index}"
        questions.append(question.model_dump(exclude_none=True))
    if errors:
        raise ValidationFailed("Invalid questions", details=errors)

    ids = [q["id"] for q in questions]
    duplicates = sorted({qid for qid in ids if ids.count(qid) > 1})
    if duplicates:
        raise ValidationFailed("Duplicate question ids", details=duplicates)
    return questions


def question_count(questions: Any) -> int:
    if not questions:
        return 0
    if isinstance(questions, list):
        return len(questions)
    if isinstance(questions, dict) and isinstance(questions.get("questions"), list):
        return len(questions["questions"])
    return 0


def describe_question_type(question: Mapping) -> str:
    qtype = question.get("type")
    if qtype == "rating":
        return f"Rating (1-{question.get('scale') or DEFAULT_SCALE} scale)"
    if qtype == "text":
        return "Text Response"
    if qtype == "multiple_choice":
        return "Multiple Choice"
    if qtype == "yes_no":
        return "Yes/No"
    return qtype or "Unknown"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _whole_number(value: Any) -> int:
    # bool is an int subclass; 4.9 must not truncate to 4
    if isinstance(value, bool):
        raise ValueError("must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    raise ValueError("must be a whole number")


def _coerce_answer(question: Mapping, value: Any) -> Any:
    qtype = question.get("type")
    if qtype == "rating":
        scale = question.get("scale") or DEFAULT_SCALE
        rating = _whole_number(value)
        if not 1 <= rating <= scale:
            raise ValueError(f"must be between 1 and {scale}")
        return rating
    if qtype == "multiple_choice":
        if value not in (question.get("options") or []):
            raise ValueError("is not one of the offered options")
        return value
    if qtype == "yes_no":
        answer = str(value).strip().lower()
        if answer not in YES_NO_VALUES:
            raise ValueError("must be yes or no")
        return answer
    return str(value).strip()


def validate_answers(questions: list[dict], answers: Mapping[str, Any]) -> dict:
    """Return cleaned answers keyed by question id, or raise ValidationFailed.

    Answers for unknown question ids are dropped.
    """
    cleaned = {}
    errors = []
    for index, question in enumerate(questions or [], start=1):
        qid = question.get("id")
        value = answers.get(qid)
        if _is_blank(value):
            if question.get("required"):
                errors.append(f"Question {index} is required")
            continue
        try:
            cleaned[qid] = _coerce_answer(question, value)
        except ValueError as exc:
            errors.append(f"Question {index} {exc}")
    if errors:
        raise ValidationFailed("Please answer all required questions before submitting.", details=errors)
    return cleaned


def build_qa_responses(questions: list[dict], answers: Mapping[str, Any], email: Optional[str]) -> dict:
    return {
        "email": email,
        "responses": [
            {
                "questionId": question.get("id"),
                "question": question.get("text"),
                "answer": answers.get(question.get("id")),
                "type": question.get("type"),
            }
            for question in questions or []
        ],
    }


def answers_from_form(questions: list[dict], form: Mapping[str, Any]) -> dict:
    """Pick ``q_<id>`` fields out of a submitted survey form."""
    return {question["id"]: form.get(f"q_{question['id']}") for question in questions or [] if "id" in question}
