"""Exam countdown that survives page reloads.

The start instant and duration of an attempt are written to a key-value
store local to the learner's device (browser local storage, a JSON file
for the CLI client, a dict in tests).  Remaining time is always
recomputed from the wall clock, never carried in memory across
restarts.  Once started the countdown cannot be paused.

The stored marker is not authoritative: whoever controls the store can
move the start instant.  Enforcing time limits server side is out of
scope.
"""

import asyncio
import inspect
import json
import logging
import math
import os
import time
from collections.abc import MutableMapping
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

Callback = Callable[[], Union[None, Awaitable[None]]]


def storage_key(form_id) -> str:
    return f"exam-start-{form_id}"


class FileStorage(MutableMapping):
    """String key-value store persisted as a JSON object on disk."""

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding="utf-8") as fh:
            return json.load(fh)

    def _dump(self, data: dict) -> None:
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(data, fh)

    def __getitem__(self, key):
        return self._load()[key]

    def __setitem__(self, key, value):
        data = self._load()
        data[key] = value
        self._dump(data)

    def __delitem__(self, key):
        data = self._load()
        del data[key]
        self._dump(data)

    def __iter__(self):
        return iter(self._load())

    def __len__(self):
        return len(self._load())


async def _call(callback: Optional[Callback]) -> None:
    if callback is None:
        return
    result = callback()
    if inspect.isawaitable(result):
        await result


class ExamTimer:
    """Countdown for one timed attempt at one form.

    ``on_time_up`` runs at most once per timer, however many times
    :meth:`initialize` or :meth:`tick` are called after expiry.
    """

    def __init__(
        self,
        form_id,
        timer_minutes: int,
        storage: MutableMapping,
        on_time_up: Optional[Callback] = None,
        *,
        on_start: Optional[Callback] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.form_id = form_id
        self.duration = int(timer_minutes) * 60
        self.storage = storage
        self.clock = clock
        self._on_time_up = on_time_up
        self._on_start = on_start
        self._started_at: Optional[float] = None
        self._initialized = False
        self._fired = False
        self._finalized = False

    @property
    def key(self) -> str:
        return storage_key(self.form_id)

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def expired(self) -> bool:
        return self._fired

    def _read_marker(self) -> Optional[dict[str, Any]]:
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        try:
            marker = json.loads(raw)
            if not math.isfinite(float(marker["started_at"])):
                raise ValueError("start time is not a finite number")
            int(marker["duration"])
        except (TypeError, ValueError, KeyError, OverflowError):
            logger.warning("Discarding unreadable timer marker for form %s", self.form_id)
            return None
        return marker

    def has_started(self) -> bool:
        """Whether a start marker for this form is already stored."""
        return self._read_marker() is not None

    def remaining(self) -> int:
        """Seconds left, recomputed from the stored start instant."""
        if self._started_at is None:
            return self.duration
        elapsed = math.floor(self.clock() - self._started_at)
        return max(0, self.duration - elapsed)

    async def initialize(self) -> int:
        """Start or resume the countdown; returns the seconds left."""
        if self._finalized or self._initialized:
            return self.remaining()
        self._initialized = True

        marker = self._read_marker()
        if marker is None:
            self._started_at = self.clock()
            self.storage[self.key] = json.dumps(
                {"started_at": self._started_at, "duration": self.duration}
            )
            logger.info("Exam timer started for form %s", self.form_id)
            await _call(self._on_start)
        else:
            self._started_at = float(marker["started_at"])
            self.duration = int(marker["duration"])

        left = self.remaining()
        if left <= 0:
            await self._time_up()
        return left

    async def tick(self) -> int:
        """Advance one step of the countdown; returns the seconds left."""
        if self._finalized or self._fired or not self._initialized:
            return self.remaining()
        left = self.remaining()
        if left <= 0:
            await self._time_up()
        return left

    async def run(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> None:
        """Tick once per second until time is up or the attempt is final."""
        await self.initialize()
        while not (self._finalized or self._fired):
            await sleep(1)
            await self.tick()

    async def _time_up(self) -> None:
        if self._fired or self._finalized:
            return
        self._fired = True
        logger.info("Exam time is up for form %s", self.form_id)
        await _call(self._on_time_up)

    def finalize(self) -> None:
        """Stop for good and forget the stored start instant."""
        self._finalized = True
        self.storage.pop(self.key, None)
