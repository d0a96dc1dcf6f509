"""Database models used by the quiz forms service.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic).
Forms keep their questions embedded as a JSON document; submissions live
in their own table keyed to the form they answer.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON

from quizforms.questions import parse_questions

DRAFT = "draft"
PUBLISHED = "published"
FORM_STATUSES = (DRAFT, PUBLISHED)


class User(SQLModel, table=True):
    """Registered account; owns forms and can take login-only quizzes."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    password_hash: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Form(SQLModel, table=True):
    """A quiz: ordered questions plus the policies applied to takers."""
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)
    title: str
    description: str = ""
    status: str = DRAFT  # 'draft' or 'published'
    questions: List[Dict[str, Any]] = Field(
        sa_column=Column(JSON), default_factory=list
    )
    require_login: bool = False
    one_submission_only: bool = False
    enable_timer: bool = False
    timer_minutes: int = 30
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def question_list(self) -> list:
        """Typed questions sorted by ``order``."""
        return parse_questions(self.questions)


class Submission(SQLModel, table=True):
    """One learner's completed attempt; never updated after insert."""
    id: Optional[int] = Field(default=None, primary_key=True)
    form_id: int = Field(foreign_key="form.id", index=True)
    submitter_identity: str = Field(index=True)  # user id or "anonymous"
    submitter_name: Optional[str] = None
    answers: Dict[str, Any] = Field(sa_column=Column(JSON), default_factory=dict)
    score: int = 0
    max_score: int = 0
    time_spent: Optional[int] = None  # seconds
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    # "<form_id>:<identity>" on one-submission forms, NULL otherwise, so the
    # database rejects a second row for the same learner.
    uniqueness_key: Optional[str] = Field(default=None, unique=True)
