"""Convenience imports for all schema classes used by the API."""

from .user import UserCreate, UserResponse, UserLogin, Token
from .form import (
    FormWrite,
    FormStatusUpdate,
    FormRead,
    FormSummary,
    QuestionView,
    FormTakeRead,
    AutosaveResult,
    QuestionImportResult,
)
from .submission import (
    SubmissionCreate,
    SubmissionRead,
    SubmissionResult,
    QuestionResultRead,
    EligibilityRead,
)
from .report import (
    FormReportRead,
    QuestionReportRead,
    OptionTallyRead,
    TextAnswerGroupRead,
    AuditEntryRead,
)

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserLogin",
    "Token",
    "FormWrite",
    "FormStatusUpdate",
    "FormRead",
    "FormSummary",
    "QuestionView",
    "FormTakeRead",
    "AutosaveResult",
    "QuestionImportResult",
    "SubmissionCreate",
    "SubmissionRead",
    "SubmissionResult",
    "QuestionResultRead",
    "EligibilityRead",
    "FormReportRead",
    "QuestionReportRead",
    "OptionTallyRead",
    "TextAnswerGroupRead",
    "AuditEntryRead",
]
