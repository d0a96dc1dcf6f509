"""Aggregate statistics over the submissions of one form.

Everything here is a read-only derivation; correctness decisions come
from :mod:`quizforms.matching` so reports always agree with scores.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from quizforms.matching import CORRECT, grade, normalize_text, selected_indices
from quizforms.questions import FREE_TEXT, MULTI_CHOICE, SINGLE_CHOICE
from quizforms.scoring import max_score


@dataclass
class OptionTally:
    index: int
    label: str
    count: int
    is_correct: bool


@dataclass
class TextAnswerGroup:
    label: str
    count: int
    is_correct: bool


@dataclass
class QuestionReport:
    question_id: str
    content: str
    type: str
    points: int
    graded: bool
    correct_count: int
    correct_rate: float
    options: list[OptionTally] = field(default_factory=list)
    text_answers: list[TextAnswerGroup] = field(default_factory=list)


@dataclass
class FormReport:
    submission_count: int
    average_score: float
    average_time_spent: float
    max_score: int
    questions: list[QuestionReport]


def _answers_of(submission) -> Mapping:
    answers = getattr(submission, "answers", None)
    return answers if isinstance(answers, Mapping) else {}


def _mean(values: list) -> float:
    return sum(values) / len(values) if values else 0.0


def _correct_indices(question) -> set[int]:
    if question.correct_answer is None:
        return set()
    if question.type == SINGLE_CHOICE:
        return {question.correct_answer}
    return set(question.correct_answer)


def option_tallies(question, answers: list[Any]) -> list[OptionTally]:
    counts = [0] * len(question.options)
    for answer in answers:
        for index in selected_indices(question, answer):
            counts[index] += 1
    correct = _correct_indices(question)
    return [
        OptionTally(index=i, label=label, count=counts[i], is_correct=i in correct)
        for i, label in enumerate(question.options)
    ]


def text_answer_groups(question, answers: list[Any]) -> list[TextAnswerGroup]:
    """Group free-text answers by their normalized value.

    The label of a group is the first trimmed spelling seen.  Blank and
    non-string answers are left out.
    """
    accepted = {normalize_text(a) for a in question.correct_answer or []}
    groups: dict[str, TextAnswerGroup] = {}
    for answer in answers:
        if not isinstance(answer, str) or not answer.strip():
            continue
        key = normalize_text(answer)
        group = groups.get(key)
        if group is None:
            group = TextAnswerGroup(
                label=answer.strip(), count=0, is_correct=key in accepted
            )
            groups[key] = group
        group.count += 1
    return sorted(groups.values(), key=lambda g: (-g.count, g.label))


def question_report(question, submissions: list) -> QuestionReport:
    answers = [_answers_of(s).get(question.id) for s in submissions]
    correct_count = sum(1 for a in answers if grade(question, a) == CORRECT)
    rate = correct_count / len(submissions) * 100 if submissions else 0.0
    report = QuestionReport(
        question_id=question.id,
        content=question.content,
        type=question.type,
        points=question.points,
        graded=question.correct_answer is not None,
        correct_count=correct_count,
        correct_rate=round(rate, 2),
    )
    if question.type in (SINGLE_CHOICE, MULTI_CHOICE):
        report.options = option_tallies(question, answers)
    elif question.type == FREE_TEXT:
        report.text_answers = text_answer_groups(question, answers)
    return report


def build_report(questions, submissions) -> FormReport:
    questions = list(questions)
    submissions = list(submissions)
    times = [s.time_spent for s in submissions if s.time_spent is not None]
    return FormReport(
        submission_count=len(submissions),
        average_score=round(_mean([s.score or 0 for s in submissions]), 2),
        average_time_spent=round(_mean(times), 2),
        max_score=max_score(questions),
        questions=[question_report(q, submissions) for q in questions],
    )


def format_duration(seconds: Optional[float]) -> str:
    """Render seconds as ``m:ss`` for exports."""
    if not seconds:
        return "0:00"
    whole = int(round(seconds))
    return f"{whole // 60}:{whole % 60:02d}"
