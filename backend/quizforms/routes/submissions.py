"""Routes for submitting answers and reading them back."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from quizforms.database import get_session
from quizforms.auth import get_current_user, get_optional_user, submitter_identity
from quizforms.models import Form, User
from quizforms.crud import get_submissions_by_form, get_latest_submission
from quizforms.guard import SubmissionBlocked
from quizforms.schemas import (
    SubmissionCreate,
    SubmissionRead,
    SubmissionResult,
    QuestionResultRead,
)
from quizforms.service import QuizService, get_quiz_service
from quizforms.spreadsheet import write_submissions_csv
from quizforms.routes.forms import (
    blocked_exception,
    csv_response,
    get_existing_form,
    get_owned_form,
)

router = APIRouter(prefix="/forms", tags=["submissions"])


def _result(submission, results) -> SubmissionResult:
    return SubmissionResult(
        **SubmissionRead.model_validate(submission).model_dump(),
        results=[QuestionResultRead.model_validate(r) for r in results],
    )


@router.post("/{form_id}/submissions", response_model=SubmissionResult)
async def submit_answers(
    data: SubmissionCreate,
    form: Form = Depends(get_existing_form),
    user: User | None = Depends(get_optional_user),
    service: QuizService = Depends(get_quiz_service),
):
    """Grade and store the learner's answers.

    The score is always computed here from the raw answers.
    """
    try:
        graded = await service.submit(form, user, data.answers, data.time_spent)
    except SubmissionBlocked as exc:
        raise blocked_exception(exc.decision)
    return _result(graded.submission, graded.results)


@router.get("/{form_id}/submissions", response_model=list[SubmissionRead])
async def list_submissions(
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
):
    submissions = await get_submissions_by_form(db, form.id)
    return [SubmissionRead.model_validate(s) for s in submissions]


@router.get("/{form_id}/submissions/mine", response_model=SubmissionResult)
async def my_submission(
    form: Form = Depends(get_existing_form),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    service: QuizService = Depends(get_quiz_service),
):
    submission = await get_latest_submission(
        db, form.id, submitter_identity(current_user)
    )
    if not submission:
        raise HTTPException(
            status_code=404,
            detail={"code": "submission_not_found", "message": "No submission yet"},
        )
    return _result(submission, service.results(form, submission))


@router.get("/{form_id}/submissions/export")
async def export_submissions(
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
):
    submissions = await get_submissions_by_form(db, form.id)
    content = write_submissions_csv(form.question_list(), submissions)
    return csv_response(content, f"form-{form.id}-submissions.csv")
