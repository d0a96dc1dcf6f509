from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quizforms.database import get_session
from quizforms.models import Form
from quizforms.crud import get_submissions_by_form
from quizforms.schemas import FormReportRead, AuditEntryRead
from quizforms.service import QuizService, get_quiz_service
from quizforms.routes.forms import get_owned_form

router = APIRouter(prefix="/forms", tags=["reports"])


@router.get("/{form_id}/report", response_model=FormReportRead)
async def form_report(
    form: Form = Depends(get_owned_form),
    service: QuizService = Depends(get_quiz_service),
):
    report = await service.report(form)
    return FormReportRead.model_validate(report)


@router.get("/{form_id}/audit", response_model=list[AuditEntryRead])
async def audit_scores(
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
    service: QuizService = Depends(get_quiz_service),
):
    """Compare stored scores with a fresh grading of the stored answers."""
    entries = []
    for submission in await get_submissions_by_form(db, form.id):
        fresh = service.rescore(form, submission)
        entries.append(
            AuditEntryRead(
                submission_id=submission.id,
                stored_score=submission.score,
                recomputed_score=fresh.total,
                max_score=fresh.max,
                matches=fresh.total == submission.score,
            )
        )
    return entries
