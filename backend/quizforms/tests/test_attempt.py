import asyncio
import json
import pathlib
import sys

import pytest

# Allow importing the quizforms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from quizforms.attempt import (
    AWAITING_START,
    BLOCKED,
    IN_PROGRESS,
    SUBMITTED,
    AttemptStateError,
    QuizAttempt,
)
from quizforms.guard import ALREADY_SUBMITTED, LOGIN_REQUIRED, SubmissionBlocked, blocked
from quizforms.timer import storage_key


class FakeClock:
    def __init__(self, now=5_000.0):
        self.now = now

    def __call__(self):
        return self.now


class StubClient:
    def __init__(self, form=None, take_error=None, submit_error=None):
        self.form = form or {"id": 1, "enable_timer": False, "timer_minutes": 30}
        self.take_error = take_error
        self.submit_error = submit_error
        self.submits = []

    async def take(self, form_id):
        if self.take_error:
            raise self.take_error
        return self.form

    async def submit(self, form_id, answers, time_spent=None):
        self.submits.append((answers, time_spent))
        await asyncio.sleep(0)
        if self.submit_error:
            error, self.submit_error = self.submit_error, None
            raise error
        return {"id": len(self.submits), "score": 1, "max_score": 1}


def test_untimed_attempt_submits_once():
    async def run():
        client = StubClient()
        attempt = QuizAttempt(client, 1)
        assert await attempt.open() == IN_PROGRESS
        attempt.answer("q1", 0)
        first, second = await asyncio.gather(attempt.submit(), attempt.submit())
        assert first == second
        assert await attempt.submit() == first
        assert len(client.submits) == 1
        assert attempt.state == SUBMITTED
        with pytest.raises(AttemptStateError):
            attempt.answer("q1", 1)

    asyncio.run(run())


def test_blocked_on_open():
    async def run():
        error = SubmissionBlocked(blocked(LOGIN_REQUIRED, "/login?next=/forms/1/take"))
        attempt = QuizAttempt(StubClient(take_error=error), 1)
        assert await attempt.open() == BLOCKED
        assert attempt.blocked_reason == LOGIN_REQUIRED
        assert attempt.redirect_to == "/login?next=/forms/1/take"
        with pytest.raises(AttemptStateError):
            await attempt.submit()

    asyncio.run(run())


def test_failed_submit_can_be_retried():
    async def run():
        client = StubClient(submit_error=ConnectionError("offline"))
        attempt = QuizAttempt(client, 1)
        await attempt.open()
        with pytest.raises(ConnectionError):
            await attempt.submit()
        assert attempt.state == IN_PROGRESS
        result = await attempt.submit()
        assert result["id"] == 2
        assert attempt.state == SUBMITTED

    asyncio.run(run())


def test_already_submitted_rejection_blocks_attempt():
    async def run():
        client = StubClient(submit_error=SubmissionBlocked(blocked(ALREADY_SUBMITTED)))
        attempt = QuizAttempt(client, 1)
        await attempt.open()
        with pytest.raises(SubmissionBlocked):
            await attempt.submit()
        assert attempt.state == BLOCKED
        assert attempt.blocked_reason == ALREADY_SUBMITTED

    asyncio.run(run())


def test_timed_attempt_waits_for_start_then_records_time_spent():
    async def run():
        clock = FakeClock()
        storage = {}
        client = StubClient(form={"id": 2, "enable_timer": True, "timer_minutes": 1})
        attempt = QuizAttempt(client, 2, storage, clock=clock, autorun=False)
        assert await attempt.open() == AWAITING_START
        with pytest.raises(AttemptStateError):
            attempt.answer("q", 1)
        await attempt.start()
        assert attempt.state == IN_PROGRESS
        assert storage_key(2) in storage
        clock.now += 42.5
        assert attempt.remaining() == 18
        await attempt.submit()
        assert client.submits == [({}, 42)]
        assert storage_key(2) not in storage

    asyncio.run(run())


def test_reload_after_deadline_auto_submits_once():
    async def run():
        clock = FakeClock()
        storage = {
            storage_key(3): json.dumps({"started_at": clock.now - 90, "duration": 60})
        }
        client = StubClient(form={"id": 3, "enable_timer": True, "timer_minutes": 1})
        attempt = QuizAttempt(client, 3, storage, clock=clock)
        await attempt.open()
        assert attempt.state == SUBMITTED
        assert client.submits == [({}, 60)]
        await attempt.timer.initialize()
        await attempt.timer.tick()
        assert len(client.submits) == 1

    asyncio.run(run())


def test_running_countdown_submits_answers_when_time_is_up():
    async def run():
        clock = FakeClock()
        client = StubClient(form={"id": 4, "enable_timer": True, "timer_minutes": 1})
        attempt = QuizAttempt(client, 4, {}, clock=clock, autorun=False)
        await attempt.open()
        await attempt.start()
        attempt.answer("q1", "hello")

        async def fast_sleep(seconds):
            clock.now += 30

        await attempt.timer.run(sleep=fast_sleep)
        assert attempt.state == SUBMITTED
        assert client.submits == [({"q1": "hello"}, 60)]

    asyncio.run(run())
