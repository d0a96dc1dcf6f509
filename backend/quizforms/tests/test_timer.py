import asyncio
import json
import pathlib
import sys

import pytest

# Allow importing the quizforms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from quizforms.timer import ExamTimer, FileStorage, storage_key


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_first_start_writes_marker_and_counts_down():
    async def run():
        clock = FakeClock()
        storage = {}
        started = []
        timer = ExamTimer(5, 1, storage, on_start=lambda: started.append(True), clock=clock)
        assert not timer.has_started()
        assert await timer.initialize() == 60
        assert json.loads(storage[storage_key(5)]) == {"started_at": clock.now, "duration": 60}
        assert started == [True]
        clock.now += 20.7
        assert timer.remaining() == 40

    asyncio.run(run())


def test_reload_resumes_from_stored_start():
    async def run():
        clock = FakeClock()
        storage = {}
        await ExamTimer(5, 10, storage, clock=clock).initialize()
        clock.now += 125
        reloaded = ExamTimer(5, 10, storage, clock=clock)
        assert reloaded.has_started()
        assert await reloaded.initialize() == 600 - 125

    asyncio.run(run())


def test_expired_marker_fires_time_up_exactly_once():
    async def run():
        clock = FakeClock()
        storage = {
            storage_key(3): json.dumps({"started_at": clock.now - 90, "duration": 60})
        }
        calls = []

        async def on_time_up():
            calls.append(clock.now)

        timer = ExamTimer(3, 1, storage, on_time_up, clock=clock)
        assert await timer.initialize() == 0
        assert await timer.initialize() == 0
        await timer.tick()
        assert calls == [clock.now]
        assert timer.expired

    asyncio.run(run())


def test_run_ticks_until_time_up_then_finalize_clears_marker():
    async def run():
        clock = FakeClock()
        storage = {}
        calls = []
        timer = ExamTimer(9, 1, storage, lambda: calls.append(1), clock=clock)

        async def fake_sleep(seconds):
            clock.now += 15

        await timer.run(sleep=fake_sleep)
        assert calls == [1]
        assert clock.now == 1_000_000.0 + 60
        timer.finalize()
        assert storage_key(9) not in storage
        assert timer.finalized

    asyncio.run(run())


def test_unreadable_marker_is_replaced():
    async def run():
        clock = FakeClock()
        storage = {storage_key(1): "not json"}
        timer = ExamTimer(1, 2, storage, clock=clock)
        assert not timer.has_started()
        assert await timer.initialize() == 120
        assert json.loads(storage[storage_key(1)])["started_at"] == clock.now

    asyncio.run(run())


@pytest.mark.parametrize(
    "marker",
    [
        '{"started_at": NaN, "duration": 120}',
        '{"started_at": Infinity, "duration": 120}',
        '{"started_at": 1000000.0, "duration": Infinity}',
    ],
)
def test_non_finite_marker_is_replaced(marker):
    async def run():
        clock = FakeClock()
        storage = {storage_key(1): marker}
        timer = ExamTimer(1, 2, storage, clock=clock)
        assert not timer.has_started()
        assert await timer.initialize() == 120
        assert timer.remaining() == 120

    asyncio.run(run())


def test_file_storage_persists_between_instances(tmp_path):
    path = str(tmp_path / "timers.json")
    FileStorage(path)["exam-start-1"] = "x"
    storage = FileStorage(path)
    assert dict(storage) == {"exam-start-1": "x"}
    assert storage.pop("exam-start-1") == "x"
    assert len(FileStorage(path)) == 0
