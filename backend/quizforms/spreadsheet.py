"""Question import/export as CSV spreadsheets.

One row per question::

    No. | Question | Type | Option A | Option B | ... | Correct answer | Points

Correct answers are written as option letters (``A`` is the first
option) for single-choice, comma-separated letters for multi-choice and
comma-separated accepted answers for free-text.  ``decode_row`` undoes
``encode_row`` up to surrounding whitespace.

Imports are all-or-nothing: any malformed row rejects the whole file.
"""

import csv
import io
from datetime import datetime
from typing import Any, Mapping, Optional

from quizforms.matching import coerce_index, coerce_index_set
from quizforms.reporting import format_duration
from quizforms.questions import (
    FREE_TEXT,
    MULTI_CHOICE,
    SINGLE_CHOICE,
    FreeTextQuestion,
    MultiChoiceQuestion,
    SingleChoiceQuestion,
    new_question_id,
    question_options,
)

INDEX_COLUMN = "No."
CONTENT_COLUMN = "Question"
TYPE_COLUMN = "Type"
OPTION_PREFIX = "Option "
ANSWER_COLUMN = "Correct answer"
NO_CORRECT_OPTION = "-"
POINTS_COLUMN = "Points"

MIN_OPTION_COLUMNS = 4
DEFAULT_POINTS = 1

TYPE_LABELS = {
    SINGLE_CHOICE: "Single choice",
    MULTI_CHOICE: "Multiple choice",
    FREE_TEXT: "Text",
}


class SpreadsheetError(ValueError):
    """The uploaded file cannot be turned into questions."""


def index_to_letter(index: int) -> str:
    """0 -> ``A``, 25 -> ``Z``, 26 -> ``AA``."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def letter_to_index(letters: str) -> Optional[int]:
    letters = letters.strip().upper()
    if not letters or not all("A" <= ch <= "Z" for ch in letters):
        return None
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - 64)
    return index - 1


def option_column(index: int) -> str:
    return f"{OPTION_PREFIX}{index_to_letter(index)}"


def label_to_type(label: Optional[str]) -> str:
    normalized = (label or "").strip().lower()
    if normalized in TYPE_LABELS:
        return normalized
    if "multi" in normalized or "checkbox" in normalized:
        return MULTI_CHOICE
    if "text" in normalized:
        return FREE_TEXT
    return SINGLE_CHOICE


def encode_answer(question) -> str:
    key = question.correct_answer
    if key is None:
        return ""
    if question.type == SINGLE_CHOICE:
        return index_to_letter(key)
    if question.type == MULTI_CHOICE:
        if not key:
            return NO_CORRECT_OPTION
        return ", ".join(index_to_letter(i) for i in sorted(key))
    return ", ".join(key)


def decode_answer(value: Any, question_type: str, option_count: int) -> Any:
    """Parse a correct-answer cell; raises ``ValueError`` when malformed."""
    text = "" if value is None else str(value).strip()
    if not text:
        return None
    if question_type == MULTI_CHOICE and text == NO_CORRECT_OPTION:
        return []
    parts = [p.strip() for p in text.split(",") if p.strip()]
    if question_type == FREE_TEXT:
        return parts
    indices = []
    for part in parts:
        index = letter_to_index(part)
        if index is None:
            raise ValueError(f"{part!r} is not an option letter")
        if index >= option_count:
            raise ValueError(f"option {part} does not exist")
        indices.append(index)
    if question_type == SINGLE_CHOICE:
        if len(indices) != 1:
            raise ValueError("single-choice questions take exactly one letter")
        return indices[0]
    return sorted(set(indices))


def _decode_points(value: Any) -> int:
    text = "" if value is None else str(value).strip()
    if not text:
        return DEFAULT_POINTS
    points = coerce_index(text)
    if points is None:
        raise ValueError(f"points must be a whole number, got {text!r}")
    return points


def _row_options(row: Mapping[str, Any]) -> list[str]:
    columns = sorted(
        (letter_to_index(name[len(OPTION_PREFIX):]), name)
        for name in row
        if name and name.startswith(OPTION_PREFIX)
        and letter_to_index(name[len(OPTION_PREFIX):]) is not None
    )
    options = []
    for _, name in columns:
        value = row.get(name)
        if value is not None and str(value).strip():
            options.append(str(value).strip())
    return options


def encode_row(question, position: int, option_columns: int = MIN_OPTION_COLUMNS) -> dict:
    options = question_options(question)
    row = {
        INDEX_COLUMN: position + 1,
        CONTENT_COLUMN: question.content,
        TYPE_COLUMN: TYPE_LABELS[question.type],
    }
    for i in range(max(option_columns, len(options))):
        row[option_column(i)] = options[i] if i < len(options) else ""
    row[ANSWER_COLUMN] = encode_answer(question)
    row[POINTS_COLUMN] = question.points
    return row


def decode_row(row: Mapping[str, Any], order: int, question_id: Optional[str] = None):
    """Build a question from one spreadsheet row."""
    question_type = label_to_type(row.get(TYPE_COLUMN))
    fields = {
        "id": question_id or new_question_id(),
        "content": str(row.get(CONTENT_COLUMN) or "").strip(),
        "points": _decode_points(row.get(POINTS_COLUMN)),
        "order": order,
    }
    if question_type == FREE_TEXT:
        answer = decode_answer(row.get(ANSWER_COLUMN), FREE_TEXT, 0)
        return FreeTextQuestion(correct_answer=answer, **fields)
    options = _row_options(row)
    answer = decode_answer(row.get(ANSWER_COLUMN), question_type, len(options))
    if question_type == MULTI_CHOICE:
        return MultiChoiceQuestion(options=options, correct_answer=answer, **fields)
    return SingleChoiceQuestion(options=options, correct_answer=answer, **fields)


def _fieldnames(option_columns: int) -> list[str]:
    return (
        [INDEX_COLUMN, CONTENT_COLUMN, TYPE_COLUMN]
        + [option_column(i) for i in range(option_columns)]
        + [ANSWER_COLUMN, POINTS_COLUMN]
    )


def write_questions_csv(questions: list) -> str:
    option_columns = max(
        [MIN_OPTION_COLUMNS] + [len(question_options(q)) for q in questions]
    )
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_fieldnames(option_columns))
    writer.writeheader()
    for position, question in enumerate(questions):
        writer.writerow(encode_row(question, position, option_columns))
    return buf.getvalue()


def read_questions_csv(text: str) -> list:
    """Parse an uploaded CSV into questions with dense ``order``."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    fieldnames = [name.strip() for name in reader.fieldnames or []]
    if CONTENT_COLUMN not in fieldnames:
        raise SpreadsheetError(f"The file has no {CONTENT_COLUMN!r} column")
    reader.fieldnames = fieldnames

    questions = []
    # line 1 is the header
    for line, row in enumerate(reader, start=2):
        if not str(row.get(CONTENT_COLUMN) or "").strip():
            continue
        try:
            questions.append(decode_row(row, order=len(questions)))
        except ValueError as exc:
            raise SpreadsheetError(f"Row {line}: {exc}") from exc
    if not questions:
        raise SpreadsheetError("No valid questions were found in the file")
    return questions


TEMPLATE_QUESTIONS = [
    SingleChoiceQuestion(
        id="template-1",
        content="What is the capital of Vietnam?",
        options=["Hanoi", "Ho Chi Minh City", "Da Nang", "Hue"],
        correct_answer=0,
        points=1,
        order=0,
    ),
    MultiChoiceQuestion(
        id="template-2",
        content="Select the even numbers:",
        options=["2", "3", "4", "5"],
        correct_answer=[0, 2],
        points=2,
        order=1,
    ),
    FreeTextQuestion(
        id="template-3",
        content="How many provinces does Vietnam have?",
        correct_answer=["63"],
        points=1,
        order=2,
    ),
]


def template_csv() -> str:
    return write_questions_csv(TEMPLATE_QUESTIONS)


def _render_answer(question, value: Any) -> str:
    if value is None:
        return ""
    if question.type == SINGLE_CHOICE:
        index = coerce_index(value)
        return index_to_letter(index) if index is not None else ""
    if question.type == MULTI_CHOICE:
        indices = coerce_index_set(value)
        return ", ".join(index_to_letter(i) for i in sorted(indices or []))
    return value.strip() if isinstance(value, str) else ""


def write_submissions_csv(questions: list, submissions: list) -> str:
    """One row per submission with each answer rendered as text."""
    fieldnames = ["Submitted at", "Submitter", "Score", "Max score", "Time spent"]
    fieldnames += [f"{i + 1}. {q.content}" for i, q in enumerate(questions)]
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(fieldnames)
    for submission in submissions:
        submitted_at = submission.submitted_at
        answers = submission.answers if isinstance(submission.answers, Mapping) else {}
        writer.writerow(
            [
                submitted_at.isoformat() if isinstance(submitted_at, datetime) else "",
                submission.submitter_name or submission.submitter_identity,
                submission.score,
                submission.max_score,
                "" if submission.time_spent is None else format_duration(submission.time_spent),
            ]
            + [_render_answer(q, answers.get(q.id)) for q in questions]
        )
    return buf.getvalue()
