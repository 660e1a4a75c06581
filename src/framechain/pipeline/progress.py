"""Throttled progress reporting for pipeline runs."""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from framechain.config.schema import RunConfig


ProgressCallback = Callable[[str, int], None]

INIT_MESSAGE = "Actions initialization"
RUNNING_MESSAGE = "Actions are running"
COMMIT_MESSAGE = "Committing handled objects"
FINAL_MESSAGE = "Finalizing"


class Throttle:
    """Deliver calls at most once per `interval` seconds.

    The first call goes through immediately. A call inside the window is held
    as pending, newer calls replacing older ones, and is delivered by the next
    call after the window or by `flush()`.
    """

    def __init__(
        self,
        callback: ProgressCallback,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._clock = clock
        self._last_invoked: float | None = None
        self._pending: tuple[str, int] | None = None

    @property
    def pending(self) -> tuple[str, int] | None:
        return self._pending

    def __call__(self, message: str, progress: int) -> None:
        now = self._clock()
        if self._last_invoked is None or now - self._last_invoked >= self._interval:
            self._pending = None
            self._invoke(message, progress, now)
            return
        self._pending = (message, progress)

    def remaining(self) -> float:
        """Seconds until the current window closes."""

        if self._last_invoked is None:
            return 0.0
        elapsed = self._clock() - self._last_invoked
        return max(0.0, self._interval - elapsed)

    def flush(self) -> None:
        """Deliver the held trailing call, if any."""

        if self._pending is None:
            return
        message, progress = self._pending
        self._pending = None
        self._invoke(message, progress, self._clock())

    def _invoke(self, message: str, progress: int, now: float) -> None:
        self._last_invoked = now
        self._callback(message, progress)


class ProgressReporter:
    """Stage-aware progress sink for one run."""

    def __init__(
        self,
        on_progress: ProgressCallback,
        config: RunConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._throttle = Throttle(on_progress, config.progress_interval, clock=clock)

    def report(self, message: str, progress: int) -> None:
        self._throttle(message, progress)

    async def pause(self, message: str, progress: int, duration: float) -> None:
        """Deliver a staged message, then sleep out the rest of `duration`.

        A held update from the previous stage is delivered first, once its
        window closes, so the observer sees it before the staged message.
        The staged message itself is delivered within one window.
        """

        started = self._clock()
        await self._drain()
        self.report(message, progress)
        await self._drain()
        elapsed = self._clock() - started
        await asyncio.sleep(max(0.0, duration - elapsed))

    async def _drain(self) -> None:
        if self._throttle.pending is None:
            return
        await asyncio.sleep(self._throttle.remaining())
        self._throttle.flush()

    def finish(self) -> None:
        self._throttle(FINAL_MESSAGE, 100)
        self._throttle.flush()
