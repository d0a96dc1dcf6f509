"""Schemas for creating, editing and taking forms."""

from typing import List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from quizforms.questions import Question

FormStatus = Literal["draft", "published"]


class FormWrite(BaseModel):
    """Full form payload used by create, save and autosave."""

    title: str = ""
    description: str = ""
    status: FormStatus = "draft"
    questions: List[Question] = Field(default_factory=list)
    require_login: bool = False
    one_submission_only: bool = False
    enable_timer: bool = False
    timer_minutes: int = Field(default=30, ge=1, le=180)


class FormStatusUpdate(BaseModel):
    status: FormStatus


class FormRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    title: str
    description: str
    status: FormStatus
    questions: List[Question]
    require_login: bool
    one_submission_only: bool
    enable_timer: bool
    timer_minutes: int
    created_at: datetime
    updated_at: datetime


class FormSummary(BaseModel):
    id: int
    title: str
    description: str
    status: FormStatus
    question_count: int
    total_points: int
    created_at: datetime
    updated_at: datetime


class QuestionView(BaseModel):
    """A question as shown to learners, without its correct answer."""

    id: str
    type: str
    content: str
    options: List[str] = Field(default_factory=list)
    points: int
    order: int


class FormTakeRead(BaseModel):
    id: int
    title: str
    description: str
    require_login: bool
    one_submission_only: bool
    enable_timer: bool
    timer_minutes: int
    auto_submit: bool = False
    questions: List[QuestionView]


class AutosaveResult(BaseModel):
    saved: bool
    reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class QuestionImportResult(BaseModel):
    imported: int
    form: FormRead
