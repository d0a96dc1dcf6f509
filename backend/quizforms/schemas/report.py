from typing import List
from pydantic import BaseModel, ConfigDict


class OptionTallyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: int
    label: str
    count: int
    is_correct: bool


class TextAnswerGroupRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    count: int
    is_correct: bool


class QuestionReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: str
    content: str
    type: str
    points: int
    graded: bool
    correct_count: int
    correct_rate: float
    options: List[OptionTallyRead]
    text_answers: List[TextAnswerGroupRead]


class FormReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_count: int
    average_score: float
    average_time_spent: float
    max_score: int
    questions: List[QuestionReportRead]


class AuditEntryRead(BaseModel):
    submission_id: int
    stored_score: int
    recomputed_score: int
    max_score: int
    matches: bool
