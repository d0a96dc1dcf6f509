"""Eligibility rules applied before a learner sees or submits a form.

The checks always run in the same order and stop at the first failure:

1. the form must be published,
2. login-only forms need an authenticated learner,
3. one-submission forms reject learners who already submitted,
4. a timed attempt whose countdown reached zero is auto-submitted.

Blocking is not an error; callers get a :class:`GuardDecision` naming
the reason and render it.  The prior-submission lookup in step 3 is a
read, so callers must not treat it as a lock (see
:meth:`quizforms.service.QuizService.submit`).
"""

from dataclasses import dataclass
from typing import Optional

from quizforms.models import PUBLISHED

NOT_PUBLISHED = "not-published"
LOGIN_REQUIRED = "login-required"
ALREADY_SUBMITTED = "already-submitted"
BLOCK_REASONS = (NOT_PUBLISHED, LOGIN_REQUIRED, ALREADY_SUBMITTED)

LOGIN_PATH = "/login"

MESSAGES = {
    NOT_PUBLISHED: "This form is not available",
    LOGIN_REQUIRED: "Log in to take this form",
    ALREADY_SUBMITTED: "This form accepts only one submission and you have already submitted",
}


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    reason: Optional[str] = None
    auto_submit: bool = False
    redirect_to: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        return MESSAGES.get(self.reason)


ALLOWED = GuardDecision(allowed=True)


class SubmissionBlocked(Exception):
    """Raised where a blocked decision has to abort a submit call."""

    def __init__(self, decision: GuardDecision):
        super().__init__(decision.message or decision.reason)
        self.decision = decision
        self.reason = decision.reason


def blocked(reason: str, redirect_to: Optional[str] = None) -> GuardDecision:
    return GuardDecision(allowed=False, reason=reason, redirect_to=redirect_to)


def login_redirect(form_id) -> str:
    return f"{LOGIN_PATH}?next=/forms/{form_id}/take"


def evaluate(
    form,
    identity: Optional[str],
    *,
    has_prior_submission: bool = False,
    time_remaining: Optional[int] = None,
) -> GuardDecision:
    """Apply the eligibility rules to already-loaded facts.

    ``identity`` is the authenticated learner id or ``None`` when
    anonymous.  ``time_remaining`` is the attempt's countdown in seconds
    when one is running.
    """
    if form.status != PUBLISHED:
        return blocked(NOT_PUBLISHED)
    if form.require_login and identity is None:
        return blocked(LOGIN_REQUIRED, redirect_to=login_redirect(form.id))
    if form.one_submission_only and has_prior_submission:
        return blocked(ALREADY_SUBMITTED)
    if form.enable_timer and time_remaining is not None and time_remaining <= 0:
        return GuardDecision(allowed=True, auto_submit=True)
    return ALLOWED


def needs_submission_lookup(form, identity: Optional[str]) -> bool:
    """Whether step 3 has to query prior submissions.

    Anonymous learners share one identity and cannot be told apart, so
    the one-submission rule only applies to authenticated learners.
    """
    return bool(form.one_submission_only) and identity is not None
