"""Routes for authoring forms and opening them for learners."""

import logging

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from quizforms.database import get_session
from quizforms.auth import get_current_user, get_optional_user
from quizforms.models import Form, User, PUBLISHED
from quizforms.crud import (
    create_form,
    get_form,
    get_forms_by_owner,
    get_published_forms,
    save_form,
    update_form_silent,
    delete_form,
)
from quizforms.guard import LOGIN_REQUIRED, GuardDecision
from quizforms.questions import dump_questions, renumber
from quizforms.schemas import (
    FormWrite,
    FormStatusUpdate,
    FormRead,
    FormSummary,
    QuestionView,
    FormTakeRead,
    AutosaveResult,
    QuestionImportResult,
    EligibilityRead,
)
from quizforms.service import QuizService, get_quiz_service
from quizforms.spreadsheet import (
    SpreadsheetError,
    read_questions_csv,
    template_csv,
    write_questions_csv,
)
from quizforms.validation import (
    FormValidationError,
    find_problem,
    validate_form,
    validate_questions,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/forms", tags=["forms"])

CSV_MEDIA_TYPE = "text/csv"


async def get_owned_form(
    form_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Form:
    """Load a form the caller owns; other people's forms look missing."""
    form = await get_form(db, form_id)
    if not form or form.owner_id != current_user.id:
        raise HTTPException(
            status_code=404,
            detail={"code": "form_not_found", "message": "Form not found"},
        )
    return form


async def get_existing_form(form_id: int, db: AsyncSession = Depends(get_session)) -> Form:
    form = await get_form(db, form_id)
    if not form:
        raise HTTPException(
            status_code=404,
            detail={"code": "form_not_found", "message": "Form not found"},
        )
    return form


def blocked_exception(decision: GuardDecision) -> HTTPException:
    """Translate a blocked guard decision into an HTTP error."""
    detail = {"code": decision.reason, "message": decision.message}
    if decision.redirect_to:
        detail["redirect_to"] = decision.redirect_to
    code = (
        status.HTTP_401_UNAUTHORIZED
        if decision.reason == LOGIN_REQUIRED
        else status.HTTP_403_FORBIDDEN
    )
    return HTTPException(status_code=code, detail=detail)


def csv_response(content: str, filename: str) -> PlainTextResponse:
    return PlainTextResponse(
        content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _ordered(questions: list) -> list:
    return renumber(sorted(questions, key=lambda q: q.order))


def _apply(form: Form, data: FormWrite, questions: list) -> None:
    form.title = data.title.strip()
    form.description = data.description
    form.status = data.status
    form.questions = dump_questions(questions)
    form.require_login = data.require_login
    form.one_submission_only = data.one_submission_only
    form.enable_timer = data.enable_timer
    form.timer_minutes = data.timer_minutes


def _summary(form: Form) -> FormSummary:
    questions = form.question_list()
    return FormSummary(
        id=form.id,
        title=form.title,
        description=form.description,
        status=form.status,
        question_count=len(questions),
        total_points=sum(q.points for q in questions),
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


def _take_view(form: Form, decision: GuardDecision) -> FormTakeRead:
    return FormTakeRead(
        id=form.id,
        title=form.title,
        description=form.description,
        require_login=form.require_login,
        one_submission_only=form.one_submission_only,
        enable_timer=form.enable_timer,
        timer_minutes=form.timer_minutes,
        auto_submit=decision.auto_submit,
        questions=[
            QuestionView(**q.model_dump(exclude={"correct_answer"}))
            for q in form.question_list()
        ],
    )


def _validated(data: FormWrite) -> list:
    questions = _ordered(data.questions)
    try:
        validate_form(data.title, questions)
    except FormValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.as_detail())
    return questions


@router.post("/", response_model=FormRead)
async def create_form_route(
    data: FormWrite,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    questions = _validated(data)
    form = Form(owner_id=current_user.id, title=data.title)
    _apply(form, data, questions)
    form = await create_form(db, form)
    logger.info("User %s created form %s", current_user.email, form.id)
    return FormRead.model_validate(form)


@router.get("/", response_model=list[FormSummary])
async def my_forms(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    forms = await get_forms_by_owner(db, current_user.id)
    return [_summary(f) for f in forms]


@router.get("/published", response_model=list[FormSummary])
async def published_forms(db: AsyncSession = Depends(get_session)):
    forms = await get_published_forms(db)
    return [_summary(f) for f in forms]


@router.get("/questions/template")
async def question_template():
    """Sample spreadsheet showing one question of each type."""
    return csv_response(template_csv(), "questions-template.csv")


@router.get("/{form_id}", response_model=FormRead)
async def read_form(form: Form = Depends(get_owned_form)):
    return FormRead.model_validate(form)


@router.put("/{form_id}", response_model=FormRead)
async def save_form_route(
    data: FormWrite,
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
):
    """Explicit save; validation and storage errors reach the caller."""
    questions = _validated(data)
    _apply(form, data, questions)
    form = await save_form(db, form)
    return FormRead.model_validate(form)


@router.put("/{form_id}/autosave", response_model=AutosaveResult)
async def autosave_form(
    data: FormWrite,
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
):
    """Background save from the editor.

    Incomplete drafts are skipped and storage failures are logged; neither
    is reported as an error.
    """
    questions = _ordered(data.questions)
    problem = find_problem(data.title, questions)
    if problem:
        logger.debug("Skipping autosave of form %s: %s", form.id, problem.code)
        return AutosaveResult(saved=False, reason=problem.code)
    _apply(form, data, questions)
    if not await update_form_silent(db, form):
        return AutosaveResult(saved=False, reason="storage_error")
    return AutosaveResult(saved=True, updated_at=form.updated_at)


@router.put("/{form_id}/status", response_model=FormRead)
async def set_form_status(
    data: FormStatusUpdate,
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
):
    if data.status == PUBLISHED:
        try:
            validate_form(form.title, form.question_list())
        except FormValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.as_detail())
    form.status = data.status
    form = await save_form(db, form)
    logger.info("Form %s is now %s", form.id, form.status)
    return FormRead.model_validate(form)


@router.delete("/{form_id}")
async def delete_form_route(
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
):
    """Delete a form together with every submission it received."""
    form_id = form.id
    removed = await delete_form(db, form)
    logger.info("Deleted form %s and %s submissions", form_id, removed)
    return {"status": "ok", "submissions_deleted": removed}


@router.get("/{form_id}/eligibility", response_model=EligibilityRead)
async def form_eligibility(
    time_remaining: int | None = None,
    form: Form = Depends(get_existing_form),
    user: User | None = Depends(get_optional_user),
    service: QuizService = Depends(get_quiz_service),
):
    """Guard decision for the caller; ``time_remaining`` is the learner's
    locally tracked countdown, if any."""
    decision = await service.eligibility(form, user, time_remaining)
    return EligibilityRead.model_validate(decision)


@router.get("/{form_id}/take", response_model=FormTakeRead)
async def take_form(
    time_remaining: int | None = None,
    form: Form = Depends(get_existing_form),
    user: User | None = Depends(get_optional_user),
    service: QuizService = Depends(get_quiz_service),
):
    """Learner view of a form, without correct answers.

    Login-only forms are gated here as well as on submit, so anonymous
    visitors never see the questions.
    """
    decision = await service.eligibility(form, user, time_remaining)
    if not decision.allowed:
        raise blocked_exception(decision)
    return _take_view(form, decision)


@router.get("/{form_id}/questions/export")
async def export_questions(form: Form = Depends(get_owned_form)):
    return csv_response(
        write_questions_csv(form.question_list()), f"form-{form.id}-questions.csv"
    )


@router.post("/{form_id}/questions/import", response_model=QuestionImportResult)
async def import_questions(
    file: UploadFile = File(...),
    replace: bool = False,
    form: Form = Depends(get_owned_form),
    db: AsyncSession = Depends(get_session),
):
    """Add questions from a CSV upload; ``replace=true`` drops existing ones.

    The whole file is rejected if any row is malformed.
    """
    raw = await file.read()
    try:
        imported = read_questions_csv(raw.decode("utf-8"))
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=400,
            detail={"code": "spreadsheet_invalid", "message": "The file must be UTF-8 CSV"},
        )
    except SpreadsheetError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "spreadsheet_invalid", "message": str(exc)},
        )

    existing = [] if replace else form.question_list()
    questions = renumber(existing + imported)
    try:
        validate_questions(questions)
    except FormValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.as_detail())
    form.questions = dump_questions(questions)
    form = await save_form(db, form)
    logger.info("Imported %s questions into form %s", len(imported), form.id)
    return QuestionImportResult(imported=len(imported), form=FormRead.model_validate(form))
