"""Asynchronous CRUD helpers for the application's data models.

Each function in this module encapsulates a specific database operation
using SQLModel and SQLAlchemy.  Centralizing the logic keeps route
handlers light and makes behavior easier to test.  Every read may be
stale by the time a later write happens; the submissions table relies on
a unique column rather than on read-then-write checks.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete

from quizforms.models import User, Form, Submission, PUBLISHED
from quizforms.auth import get_password_hash

logger = logging.getLogger(__name__)


class DuplicateSubmissionError(Exception):
    """The store already holds a submission for this form and learner."""


async def create_user(db: AsyncSession, user: User) -> User:
    """Create a new user, hashing the password if needed."""

    if not user.password_hash.startswith("$2b$"):
        user.password_hash = get_password_hash(user.password_hash)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Return a user by email or ``None`` if not found."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()



async def create_form(db: AsyncSession, form: Form) -> Form:
    db.add(form)
    await db.commit()
    await db.refresh(form)
    return form


async def get_form(db: AsyncSession, form_id: int) -> Form | None:
    result = await db.execute(select(Form).where(Form.id == form_id))
    return result.scalar_one_or_none()


async def get_forms_by_owner(db: AsyncSession, owner_id: int) -> list[Form]:
    """Owner's forms, most recently updated first."""
    result = await db.execute(
        select(Form)
        .where(Form.owner_id == owner_id)
        .order_by(Form.updated_at.desc(), Form.id.desc())
    )
    return result.scalars().all()


async def get_published_forms(db: AsyncSession) -> list[Form]:
    """Published forms, newest first."""
    result = await db.execute(
        select(Form)
        .where(Form.status == PUBLISHED)
        .order_by(Form.created_at.desc(), Form.id.desc())
    )
    return result.scalars().all()


async def save_form(db: AsyncSession, form: Form) -> Form:
    """Persist changes to a form and bump ``updated_at``."""

    form.updated_at = datetime.utcnow()
    db.add(form)
    await db.commit()
    await db.refresh(form)
    return form


async def update_form_silent(db: AsyncSession, form: Form) -> bool:
    """Autosave variant of :func:`save_form`.

    Storage failures are logged and reported as ``False`` instead of
    being raised so background saves never interrupt editing.
    """
    form_id = form.id
    try:
        await save_form(db, form)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Autosave of form %s failed", form_id)
        return False
    return True


async def delete_form(db: AsyncSession, form: Form) -> int:
    """Delete a form and all of its submissions; returns submissions removed."""

    result = await db.execute(delete(Submission).where(Submission.form_id == form.id))
    await db.delete(form)
    await db.commit()
    return result.rowcount or 0


async def has_submission(db: AsyncSession, form_id: int, identity: str) -> bool:
    result = await db.execute(
        select(Submission.id)
        .where(
            Submission.form_id == form_id,
            Submission.submitter_identity == identity,
        )
        .limit(1)
    )
    return result.first() is not None


async def create_submission(db: AsyncSession, submission: Submission) -> Submission:
    """Insert a submission.

    Raises :class:`DuplicateSubmissionError` when the unique key of a
    one-submission form is already taken.
    """
    key = submission.uniqueness_key
    db.add(submission)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateSubmissionError(key) from exc
    await db.refresh(submission)
    return submission



async def get_submissions_by_form(db: AsyncSession, form_id: int) -> list[Submission]:
    """All submissions for a form, newest first."""
    result = await db.execute(
        select(Submission)
        .where(Submission.form_id == form_id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    return result.scalars().all()


async def get_latest_submission(
    db: AsyncSession, form_id: int, identity: str
) -> Submission | None:
    result = await db.execute(
        select(Submission)
        .where(
            Submission.form_id == form_id,
            Submission.submitter_identity == identity,
        )
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .limit(1)
    )
    return result.scalars().first()
