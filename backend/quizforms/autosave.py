"""Debounced background saving for the form editor."""

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

AUTOSAVE_DELAY_SECONDS = float(os.getenv("AUTOSAVE_DELAY_SECONDS", "1"))


class DebouncedSaver:
    """Run ``save(payload)`` once edits have been quiet for ``delay`` seconds.

    Each :meth:`schedule` call replaces the waiting save. Nothing is
    scheduled until :meth:`mark_initialized` has been called, so loading
    an existing form never writes its half-built state back. A save that
    already started is never cancelled; its failures are logged and
    dropped.
    """

    def __init__(
        self,
        save: Callable[[Any], Awaitable[Any]],
        delay: float = AUTOSAVE_DELAY_SECONDS,
    ):
        self.save = save
        self.delay = delay
        self.initialized = False
        self.saves = 0
        self.failures = 0
        self._timer: Optional[asyncio.Task] = None
        self._payload: Any = None
        self._in_flight: set[asyncio.Task] = set()

    def mark_initialized(self) -> None:
        self.initialized = True

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def schedule(self, payload: Any) -> bool:
        """Queue ``payload`` for saving; returns ``False`` before initialization."""
        if not self.initialized:
            return False
        self._cancel_timer()
        self._payload = payload
        self._timer = asyncio.create_task(self._wait_then_save())
        return True

    def _cancel_timer(self) -> None:
        if self.pending:
            self._timer.cancel()
        self._timer = None

    async def _wait_then_save(self) -> None:
        await asyncio.sleep(self.delay)
        task = asyncio.current_task()
        self._timer = None
        self._in_flight.add(task)
        try:
            await self._save_latest()
        finally:
            self._in_flight.discard(task)

    async def _save_latest(self) -> None:
        payload, self._payload = self._payload, None
        if payload is None:
            return
        try:
            await self.save(payload)
            self.saves += 1
        except Exception:
            self.failures += 1
            logger.exception("Autosave failed")

    def cancel(self) -> None:
        """Drop the waiting save, e.g. before an explicit save."""
        self._cancel_timer()
        self._payload = None

    async def wait_in_flight(self) -> None:
        """Wait for saves that have already started to finish."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight)

    async def flush(self) -> None:
        """Save the latest payload now instead of waiting for the delay."""
        self._cancel_timer()
        await self.wait_in_flight()
        await self._save_latest()
