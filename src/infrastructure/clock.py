# src/infrastructure/clock.py

import asyncio
import logging
import time
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class TickSubscription:
    """Handle for a recurring tick callback. cancel() is idempotent."""

    def __init__(self, callback: TickCallback):
        self.callback = callback
        self.active = True
        self._task: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._task is not None and not self._task.done():
            self._task.cancel()


class TickScheduler(Protocol):
    def subscribe(self, callback: TickCallback) -> TickSubscription:
        ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class AsyncioTickScheduler:
    """
    Delivers one tick per interval on the running event loop.
    Deadlines are computed from a monotonic clock so a slow
    callback does not drift the schedule.
    """

    def __init__(self, interval: float = 1.0, clock: Optional[MonotonicClock] = None):
        self.interval = interval
        self.clock = clock or MonotonicClock()

    def subscribe(self, callback: TickCallback) -> TickSubscription:
        subscription = TickSubscription(callback)
        loop = asyncio.get_running_loop()
        subscription._task = loop.create_task(self._run(subscription))
        return subscription

    async def _run(self, subscription: TickSubscription) -> None:
        next_at = self.clock.now() + self.interval
        while subscription.active:
            await asyncio.sleep(max(0.0, next_at - self.clock.now()))
            if not subscription.active:
                break
            try:
                subscription.callback()
            except Exception:
                logger.exception("Tick callback failed; stopping subscription.")
                subscription.active = False
                return
            next_at += self.interval


class ManualTickScheduler:
    """
    Virtual clock for tests: ticks are delivered only when
    advance() is called.
    """

    def __init__(self):
        self.subscriptions: List[TickSubscription] = []
        self.elapsed = 0

    def subscribe(self, callback: TickCallback) -> TickSubscription:
        subscription = TickSubscription(callback)
        self.subscriptions.append(subscription)
        return subscription

    def advance(self, seconds: int = 1) -> None:
        for _ in range(seconds):
            self.elapsed += 1
            for subscription in list(self.subscriptions):
                if subscription.active:
                    subscription.callback()

    @property
    def active_count(self) -> int:
        return sum(1 for item in self.subscriptions if item.active)
