"""Decide whether one submitted answer is correct for one question.

Answers arrive from untrusted clients and may be stale or malformed, so
nothing here raises.  A value that does not have the shape a question
type expects is graded as unanswered.
"""

import math
from typing import Any, Optional

from quizforms.questions import (
    FREE_TEXT,
    MULTI_CHOICE,
    SINGLE_CHOICE,
    question_options,
)

CORRECT = "correct"
INCORRECT = "incorrect"
UNANSWERED = "unanswered"
UNGRADED = "ungraded"

VERDICTS = (CORRECT, INCORRECT, UNANSWERED, UNGRADED)


def normalize_text(value: str) -> str:
    """Normalization shared by free-text matching and reporting."""
    return value.strip().casefold()


def coerce_index(value: Any) -> Optional[int]:
    """Return ``value`` as a non-negative option index, or ``None``.

    Integers, integral floats and numeric strings are accepted so that
    ``1``, ``1.0`` and ``"1"`` all mean the second option.  Booleans,
    negative numbers (including the ``-1`` no-selection sentinel) and
    anything else yield ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, (float, str)):
        try:
            as_float = float(value)
        except ValueError:
            return None
        if not math.isfinite(as_float) or not as_float.is_integer():
            return None
        number = int(as_float)
    else:
        return None
    return number if number >= 0 else None


def coerce_index_set(value: Any) -> Optional[set[int]]:
    """Return a multi-choice answer as a set of indices, or ``None``."""
    if not isinstance(value, (list, tuple, set, frozenset)):
        return None
    indices = set()
    for item in value:
        index = coerce_index(item)
        if index is None:
            return None
        indices.add(index)
    return indices


def selected_indices(question, submitted: Any) -> set[int]:
    """Option indices a submission selected, ignoring malformed input."""
    if question.type == SINGLE_CHOICE:
        index = coerce_index(submitted)
        if index is None or index >= len(question_options(question)):
            return set()
        return {index}
    if question.type == MULTI_CHOICE:
        indices = coerce_index_set(submitted) or set()
        return {i for i in indices if i < len(question_options(question))}
    return set()


def _grade_single_choice(question, submitted: Any) -> str:
    index = coerce_index(submitted)
    if index is None:
        return UNANSWERED
    if index >= len(question.options):
        return INCORRECT
    return CORRECT if index == question.correct_answer else INCORRECT


def _grade_multi_choice(question, submitted: Any) -> str:
    indices = coerce_index_set(submitted)
    if indices is None:
        return UNANSWERED
    return CORRECT if indices == set(question.correct_answer) else INCORRECT


def _grade_free_text(question, submitted: Any) -> str:
    if not isinstance(submitted, str):
        return UNANSWERED
    answer = normalize_text(submitted)
    accepted = {normalize_text(text) for text in question.correct_answer}
    return CORRECT if answer in accepted else INCORRECT


_GRADERS = {
    SINGLE_CHOICE: _grade_single_choice,
    MULTI_CHOICE: _grade_multi_choice,
    FREE_TEXT: _grade_free_text,
}


def grade(question, submitted: Any) -> str:
    """Return the verdict for ``submitted`` against ``question``.

    ``None`` stands for "not present in the answers mapping".  Questions
    without a correct answer are ``ungraded`` whatever was submitted.
    """
    if question.correct_answer is None:
        return UNGRADED
    if submitted is None:
        return UNANSWERED
    return _GRADERS[question.type](question, submitted)
