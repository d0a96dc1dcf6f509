"""One learner's attempt at one form, as seen from the learner's side.

The attempt moves through these states::

    not-started -> blocked
    not-started -> awaiting-start -> in-progress      (timed forms)
    not-started -> in-progress                         (untimed forms)
    in-progress -> timed-out -> submitted | blocked
    in-progress -> submitted | blocked

Submitting is idempotent: a second call while the first is in flight
waits for the same request, and a call after success returns the stored
result.  A timed form whose start marker is already stored resumes
straight into ``in-progress`` (and submits at once if time ran out
while the learner was away).
"""

import asyncio
import logging
import math
import time
from collections.abc import MutableMapping
from typing import Any, Callable, Optional

from quizforms.guard import SubmissionBlocked
from quizforms.timer import ExamTimer

logger = logging.getLogger(__name__)

NOT_STARTED = "not-started"
AWAITING_START = "awaiting-start"
IN_PROGRESS = "in-progress"
TIMED_OUT = "timed-out"
SUBMITTED = "submitted"
BLOCKED = "blocked"


class AttemptStateError(RuntimeError):
    """The requested action is not possible in the attempt's state."""


class QuizAttempt:
    def __init__(
        self,
        client,
        form_id: int,
        storage: Optional[MutableMapping] = None,
        *,
        clock: Callable[[], float] = time.time,
        autorun: bool = True,
    ):
        self.client = client
        self.form_id = form_id
        self.storage = storage if storage is not None else {}
        self.clock = clock
        self.autorun = autorun
        self.state = NOT_STARTED
        self.form: Optional[dict] = None
        self.answers: dict[str, Any] = {}
        self.result: Optional[dict] = None
        self.blocked_reason: Optional[str] = None
        self.redirect_to: Optional[str] = None
        self.timer: Optional[ExamTimer] = None
        self._opened_at: Optional[float] = None
        self._pending: Optional[asyncio.Task] = None
        self._runner: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self.state in (TIMED_OUT, SUBMITTED, BLOCKED)

    def _block(self, exc: SubmissionBlocked) -> None:
        self.state = BLOCKED
        self.blocked_reason = exc.reason
        self.redirect_to = exc.decision.redirect_to
        if self.timer is not None:
            self.timer.finalize()

    async def open(self) -> str:
        """Load the form and decide where the attempt starts."""
        if self.state != NOT_STARTED:
            return self.state
        try:
            self.form = await self.client.take(self.form_id)
        except SubmissionBlocked as exc:
            self._block(exc)
            logger.info("Attempt at form %s blocked: %s", self.form_id, exc.reason)
            return self.state
        self._opened_at = self.clock()

        if not self.form.get("enable_timer"):
            self.state = IN_PROGRESS
            return self.state
        self.timer = ExamTimer(
            self.form_id,
            self.form["timer_minutes"],
            self.storage,
            on_time_up=self._on_time_up,
            clock=self.clock,
        )
        if self.timer.has_started():
            await self._start_timer()
        else:
            self.state = AWAITING_START
        return self.state

    async def start(self) -> str:
        """Begin a timed attempt the learner confirmed."""
        if self.state != AWAITING_START:
            raise AttemptStateError(f"cannot start an attempt that is {self.state}")
        await self._start_timer()
        return self.state

    async def _start_timer(self) -> None:
        self.state = IN_PROGRESS
        await self.timer.initialize()
        if self.autorun and not self.timer.expired and not self.timer.finalized:
            self._runner = asyncio.create_task(self.timer.run())

    def remaining(self) -> Optional[int]:
        return self.timer.remaining() if self.timer is not None else None

    def answer(self, question_id: str, value: Any) -> None:
        if self.state != IN_PROGRESS:
            raise AttemptStateError(f"cannot answer an attempt that is {self.state}")
        self.answers[question_id] = value

    def time_spent(self) -> int:
        if self.timer is not None and self.timer.started_at is not None:
            elapsed = self.clock() - self.timer.started_at
            return max(0, min(self.timer.duration, math.floor(elapsed)))
        if self._opened_at is None:
            return 0
        return max(0, math.floor(self.clock() - self._opened_at))

    async def submit(self) -> dict:
        """Send the answers once; repeated calls share the same outcome."""
        if self.state == SUBMITTED:
            return self.result
        if self.state not in (IN_PROGRESS, TIMED_OUT):
            raise AttemptStateError(f"cannot submit an attempt that is {self.state}")
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._send())
        pending = self._pending
        try:
            return await asyncio.shield(pending)
        finally:
            if pending.done() and self.state != SUBMITTED:
                # failed sends may be retried
                self._pending = None

    async def _send(self) -> dict:
        try:
            result = await self.client.submit(
                self.form_id, dict(self.answers), self.time_spent()
            )
        except SubmissionBlocked as exc:
            self._block(exc)
            raise
        self.result = result
        self.state = SUBMITTED
        if self.timer is not None:
            self.timer.finalize()
        logger.info(
            "Submitted form %s: %s/%s",
            self.form_id,
            result.get("score"),
            result.get("max_score"),
        )
        return result

    async def _on_time_up(self) -> None:
        if self.state != IN_PROGRESS:
            return
        self.state = TIMED_OUT
        try:
            await self.submit()
        except SubmissionBlocked as exc:
            logger.info("Auto-submit of form %s blocked: %s", self.form_id, exc.reason)
        except Exception:
            logger.exception("Auto-submit of form %s failed", self.form_id)

    def abandon(self) -> None:
        """Leave without submitting; the countdown keeps running in storage."""
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()
        self._runner = None
        self.answers.clear()
