"""
Cancellable timers over an injectable scheduler.
Voice sessions own their timers so tests can drive them with a fake clock.
"""

import asyncio
import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay in seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class CancellableTimer:
    """
    One-shot timer with start, reset and cancel.

    Every start bumps a generation counter; a callback scheduled by an
    earlier generation is dropped even if its handle could not be cancelled.
    """

    def __init__(
        self,
        duration_ms: int,
        callback: Callable[[], None],
        scheduler: Optional[Scheduler] = None
    ):
        if duration_ms <= 0:
            raise ValueError("Timer duration must be positive")

        self.duration_ms = duration_ms
        self._callback = callback
        self._scheduler = scheduler or LoopScheduler()
        self._handle: Optional[Cancellable] = None
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self):
        """Arm the timer, discarding any pending deadline."""
        self.cancel()
        generation = self._generation
        self._handle = self._scheduler.call_later(
            self.duration_ms / 1000,
            lambda: self._fire(generation)
        )

    def reset(self):
        """Push the deadline out by a full duration."""
        self.start()

    def cancel(self):
        """Disarm the timer. Safe to call when not armed."""
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int):
        if generation != self._generation:
            logger.debug("Dropping stale timer callback")
            return

        self._handle = None
        self._generation += 1
        self._callback()
