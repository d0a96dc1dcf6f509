import pathlib
import sys

# Allow importing the quizforms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from quizforms.matching import CORRECT, UNANSWERED, UNGRADED
from quizforms.models import Form
from quizforms.questions import (
    FreeTextQuestion,
    MultiChoiceQuestion,
    SingleChoiceQuestion,
    dump_questions,
)
from quizforms.scoring import Score, grade_answers, max_score, score, score_answers


def _form(questions):
    return Form(id=1, owner_id=1, title="Quiz", questions=dump_questions(questions))


def _single_and_text_form():
    return _form(
        [
            SingleChoiceQuestion(
                id="q1", content="Pick", options=["A", "B"], correct_answer=0,
                points=2, order=0,
            ),
            FreeTextQuestion(
                id="q2", content="Answer?", correct_answer=["42"], points=3, order=1
            ),
        ]
    )


def test_all_correct_scores_full_marks():
    assert score(_single_and_text_form(), {"q1": 0, "q2": " 42 "}) == Score(5, 5)


def test_all_wrong_scores_zero():
    assert score(_single_and_text_form(), {"q1": 1, "q2": "43"}) == Score(0, 5)


def test_multi_choice_scenario():
    q = MultiChoiceQuestion(
        id="m", content="Pick", options=["a", "b", "c", "d"], correct_answer=[0, 2],
        points=4,
    )
    assert score_answers([q], {"m": [2, 0]}) == Score(4, 4)
    assert score_answers([q], {"m": [0]}) == Score(0, 4)


def test_ungraded_question_counts_towards_max_only():
    questions = [
        SingleChoiceQuestion(id="a", content="x", options=["1"], correct_answer=0, points=1),
        FreeTextQuestion(id="b", content="y", points=5),
    ]
    assert max_score(questions) == 6
    assert score_answers(questions, {"a": 0, "b": "whatever"}) == Score(1, 6)


def test_unknown_ids_and_bad_payloads_are_ignored():
    form = _single_and_text_form()
    assert score(form, {"q1": 0, "zzz": 5}) == Score(2, 5)
    assert score(form, ["not", "a", "mapping"]) == Score(0, 5)
    assert score(form, None) == Score(0, 5)


def test_grade_answers_reports_each_question():
    form = _single_and_text_form()
    form.questions.append(
        FreeTextQuestion(id="q3", content="z", points=1, order=2).model_dump()
    )
    results = grade_answers(form.question_list(), {"q1": 0})
    assert [r.question_id for r in results] == ["q1", "q2", "q3"]
    assert [r.verdict for r in results] == [CORRECT, UNANSWERED, UNGRADED]
    assert [r.awarded for r in results] == [2, 0, 0]


def test_total_never_exceeds_max():
    form = _single_and_text_form()
    for answers in ({}, {"q1": 0}, {"q1": 0, "q2": "42"}, {"q1": 1, "q2": "42"}):
        result = score(form, answers)
        assert 0 <= result.total <= result.max
