"""Submission rules bound to one database session.

:class:`QuizService` ties the eligibility checks, scoring and storage
together.  Route handlers get one per request through
:func:`get_quiz_service`; tests construct it directly around their own
session.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quizforms.auth import submitter_identity
from quizforms.crud import (
    DuplicateSubmissionError,
    create_submission,
    get_submissions_by_form,
    has_submission,
)
from quizforms.database import get_session
from quizforms.guard import (
    ALREADY_SUBMITTED,
    GuardDecision,
    SubmissionBlocked,
    blocked,
    evaluate,
    needs_submission_lookup,
)
from quizforms.models import Form, Submission, User
from quizforms.reporting import FormReport, build_report
from quizforms.scoring import QuestionResult, Score, grade_answers, score_answers

logger = logging.getLogger(__name__)


@dataclass
class GradedSubmission:
    submission: Submission
    results: list[QuestionResult]


def _identity(user: Optional[User]) -> Optional[str]:
    return str(user.id) if user is not None else None


class QuizService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def eligibility(
        self,
        form: Form,
        user: Optional[User],
        time_remaining: Optional[int] = None,
    ) -> GuardDecision:
        """Run the guard, querying prior submissions only when needed."""
        identity = _identity(user)
        decision = evaluate(form, identity)
        if not decision.allowed:
            return decision
        prior = False
        if needs_submission_lookup(form, identity):
            prior = await has_submission(self.db, form.id, identity)
        return evaluate(
            form,
            identity,
            has_prior_submission=prior,
            time_remaining=time_remaining,
        )

    async def submit(
        self,
        form: Form,
        user: Optional[User],
        answers: Any,
        time_spent: Optional[int] = None,
    ) -> GradedSubmission:
        """Check eligibility, score and store one submission.

        Raises :class:`SubmissionBlocked` when the guard refuses, including
        when a concurrent submit won the race for a one-submission form.
        """
        decision = await self.eligibility(form, user)
        if not decision.allowed:
            raise SubmissionBlocked(decision)

        questions = form.question_list()
        known_ids = {q.id for q in questions}
        raw = answers if isinstance(answers, Mapping) else {}
        kept = {qid: value for qid, value in raw.items() if qid in known_ids}

        results = grade_answers(questions, kept)
        total = score_answers(questions, kept)
        identity = submitter_identity(user)
        form_id = form.id
        uniqueness_key = None
        if needs_submission_lookup(form, _identity(user)):
            uniqueness_key = f"{form_id}:{identity}"

        submission = Submission(
            form_id=form_id,
            submitter_identity=identity,
            submitter_name=user.email if user is not None else "Anonymous",
            answers=kept,
            score=total.total,
            max_score=total.max,
            time_spent=time_spent,
            uniqueness_key=uniqueness_key,
        )
        try:
            submission = await create_submission(self.db, submission)
        except DuplicateSubmissionError:
            logger.info(
                "Rejected duplicate submission for form %s by %s", form_id, identity
            )
            raise SubmissionBlocked(blocked(ALREADY_SUBMITTED))
        logger.info(
            "Recorded submission %s for form %s: %s/%s",
            submission.id,
            form_id,
            total.total,
            total.max,
        )
        return GradedSubmission(submission=submission, results=results)

    def rescore(self, form: Form, submission: Submission) -> Score:
        """Recompute a stored submission's score from its raw answers."""
        return score_answers(form.question_list(), submission.answers)

    def results(self, form: Form, submission: Submission) -> list[QuestionResult]:
        return grade_answers(form.question_list(), submission.answers)

    async def report(self, form: Form) -> FormReport:
        submissions = await get_submissions_by_form(self.db, form.id)
        return build_report(form.question_list(), submissions)


async def get_quiz_service(db: AsyncSession = Depends(get_session)) -> QuizService:
    return QuizService(db)
