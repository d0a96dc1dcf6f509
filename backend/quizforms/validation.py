"""Checks a form must pass before it is saved.

Explicit saves surface the first problem to the caller; autosave uses
:func:`find_problem` to skip incomplete drafts quietly.
"""

from quizforms.questions import CHOICE_TYPES, MULTI_CHOICE, SINGLE_CHOICE


class FormValidationError(ValueError):
    """A form is not complete enough to be saved."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def as_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


def _check_question(position: int, question) -> None:
    label = f"Question {position + 1}"
    if not question.content.strip():
        raise FormValidationError(
            "question_content_required", f"{label} has no content"
        )
    if question.type not in CHOICE_TYPES:
        return
    if not question.options:
        raise FormValidationError(
            "question_options_required",
            f"{label} needs at least one option",
        )
    for number, option in enumerate(question.options, start=1):
        if not str(option).strip():
            raise FormValidationError(
                "question_option_blank",
                f"{label} has an empty option (option {number})",
            )
    key = question.correct_answer
    if key is None:
        return
    indices = [key] if question.type == SINGLE_CHOICE else key
    if any(i >= len(question.options) for i in indices):
        raise FormValidationError(
            "question_answer_out_of_range",
            f"{label} marks an option that does not exist as correct",
        )
    if question.type == MULTI_CHOICE and len(set(indices)) != len(indices):
        raise FormValidationError(
            "question_answer_out_of_range",
            f"{label} repeats a correct option",
        )


def validate_questions(questions: list) -> None:
    if not questions:
        raise FormValidationError(
            "form_questions_required", "Add at least one question"
        )
    seen = set()
    for position, question in enumerate(questions):
        if question.id in seen:
            raise FormValidationError(
                "question_duplicate_id",
                f"Question id {question.id!r} is used more than once",
            )
        seen.add(question.id)
        _check_question(position, question)


def validate_form(title: str, questions: list) -> None:
    """Raise :class:`FormValidationError` for the first problem found."""
    if not (title or "").strip():
        raise FormValidationError("form_title_required", "Enter a form title")
    validate_questions(questions)


def find_problem(title: str, questions: list) -> FormValidationError | None:
    try:
        validate_form(title, questions)
    except FormValidationError as exc:
        return exc
    return None
