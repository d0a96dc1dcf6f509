"""Score a set of answers against a form's questions.

Scores are all-or-nothing per question and always recomputed from the
raw answers; a client-supplied score is never trusted.  The functions
here are pure so a stored submission can be re-scored for auditing.
"""

from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple

from quizforms.matching import CORRECT, grade


class Score(NamedTuple):
    total: int
    max: int


@dataclass(frozen=True)
class QuestionResult:
    """Outcome for one question of a submission."""

    question_id: str
    verdict: str
    points: int
    awarded: int


def _answer_map(answers: Any) -> Mapping:
    return answers if isinstance(answers, Mapping) else {}


def max_score(questions) -> int:
    """Sum of points over all questions, ungraded ones included."""
    return sum(q.points for q in questions)


def grade_answers(questions, answers: Any) -> list[QuestionResult]:
    """Grade every question, in the order given."""
    answers = _answer_map(answers)
    results = []
    for question in questions:
        verdict = grade(question, answers.get(question.id))
        awarded = question.points if verdict == CORRECT else 0
        results.append(
            QuestionResult(
                question_id=question.id,
                verdict=verdict,
                points=question.points,
                awarded=awarded,
            )
        )
    return results


def score_answers(questions, answers: Any) -> Score:
    questions = list(questions)
    total = sum(r.awarded for r in grade_answers(questions, answers))
    return Score(total=total, max=max_score(questions))


def score(form, answers: Any) -> Score:
    """Score ``answers`` for a stored :class:`~quizforms.models.Form`."""
    return score_answers(form.question_list(), answers)
