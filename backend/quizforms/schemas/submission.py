"""Schemas for learner submissions and eligibility answers."""

from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class SubmissionCreate(BaseModel):
    """Raw answers from a learner; any score sent along is ignored."""

    answers: Dict[str, Any] = Field(default_factory=dict)
    time_spent: Optional[int] = Field(default=None, ge=0)


class QuestionResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: str
    verdict: str
    points: int
    awarded: int


class SubmissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    form_id: int
    submitter_identity: str
    submitter_name: Optional[str] = None
    answers: Dict[str, Any]
    score: int
    max_score: int
    time_spent: Optional[int] = None
    submitted_at: datetime


class SubmissionResult(SubmissionRead):
    results: List[QuestionResultRead]


class EligibilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    allowed: bool
    reason: Optional[str] = None
    auto_submit: bool = False
    redirect_to: Optional[str] = None
