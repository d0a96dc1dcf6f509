"""Question variants used by forms.

Every question type is its own Pydantic model tagged by ``type`` and
carries the ``correct_answer`` shape that belongs to that type:

* ``single-choice``: one option index,
* ``multi-choice``: a set of option indices (stored sorted, no duplicates),
* ``free-text``: a list of accepted answer strings.

``correct_answer`` left as ``None`` marks an ungraded question.  A free-text
question with no non-blank accepted answer is ungraded too, so its key is
stored as ``None`` rather than ``[]``.
``Question`` is the discriminated union accepted by the API and read back
from the JSON column on :class:`quizforms.models.Form`.
"""

import uuid
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

SINGLE_CHOICE = "single-choice"
MULTI_CHOICE = "multi-choice"
FREE_TEXT = "free-text"
QUESTION_TYPES = (SINGLE_CHOICE, MULTI_CHOICE, FREE_TEXT)
CHOICE_TYPES = (SINGLE_CHOICE, MULTI_CHOICE)

# Value a client sends for a single-choice question with nothing selected.
NO_SELECTION = -1


class _QuestionBase(BaseModel):
    id: str
    content: str = ""
    points: int = Field(default=1, ge=0)
    order: int = Field(default=0, ge=0)


class SingleChoiceQuestion(_QuestionBase):
    type: Literal["single-choice"] = SINGLE_CHOICE
    options: List[str] = Field(default_factory=list)
    correct_answer: Optional[int] = Field(default=None, ge=0)


class MultiChoiceQuestion(_QuestionBase):
    type: Literal["multi-choice"] = MULTI_CHOICE
    options: List[str] = Field(default_factory=list)
    correct_answer: Optional[List[int]] = None

    @field_validator("correct_answer")
    @classmethod
    def _as_sorted_set(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return None
        if any(index < 0 for index in value):
            raise ValueError("option indices must be zero or greater")
        return sorted(set(value))


class FreeTextQuestion(_QuestionBase):
    type: Literal["free-text"] = FREE_TEXT
    correct_answer: Optional[List[str]] = None

    @field_validator("correct_answer")
    @classmethod
    def _blank_key_is_ungraded(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None or not any(answer.strip() for answer in value):
            return None
        return value


Question = Annotated[
    Union[SingleChoiceQuestion, MultiChoiceQuestion, FreeTextQuestion],
    Field(discriminator="type"),
]

_question_list = TypeAdapter(List[Question])


def parse_questions(raw: Any) -> list:
    """Validate stored or submitted question dicts, sorted by ``order``."""
    questions = _question_list.validate_python(raw or [])
    return sorted(questions, key=lambda q: q.order)


def dump_questions(questions: list) -> list[dict]:
    """Serialize questions for the JSON column."""
    return [q.model_dump(mode="json") for q in questions]


def renumber(questions: list) -> list:
    """Return copies of ``questions`` with dense zero-based ``order``.

    The input sequence is taken as the desired order.
    """
    return [q.model_copy(update={"order": i}) for i, q in enumerate(questions)]


def new_question_id() -> str:
    return f"q_{uuid.uuid4().hex[:12]}"


def question_options(question) -> list[str]:
    """Option labels of a choice question, ``[]`` for free-text."""
    return list(getattr(question, "options", None) or [])
