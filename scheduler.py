# Filename: scheduler.py

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("Scheduler")


class PeriodicTask:
    """
    Runs an async action every `interval` seconds on the running event loop.

    Ticks never overlap. The schedule is fixed-rate: the next tick is due
    `interval` after the previous one started, and a tick that overran is
    followed immediately by the next one (missed slots are dropped, not replayed).
    stop() cancels the wait between ticks but lets an in-flight tick finish;
    start() before that tick ends keeps the same loop going.
    """

    def __init__(self, name: str, action: Callable[[], Awaitable[Any]], interval: float,
                 run_immediately: bool = True,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.name = name
        self.action = action
        self.interval = interval
        self.run_immediately = run_immediately
        self._clock = clock
        self._sleep = sleep

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._in_tick = False
        self.tick_count = 0
        self.error_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Start the schedule. Returns False if it was already running."""
        if self._running:
            logger.info(f"[{self.name}] already running")
            return False

        self._running = True
        if self._task is not None and not self._task.done() and self._in_tick:
            # Stopped mid-tick and not exited yet: the same loop carries on
            logger.info(f"[{self.name}] resumed")
            return True

        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"[{self.name}] started with {self.interval}s interval")
        return True

    def stop(self):
        if not self._running:
            return
        self._running = False
        if self._task is not None and not self._in_tick:
            self._task.cancel()
        logger.info(f"[{self.name}] stopped")

    async def wait_stopped(self):
        """Wait for the loop to exit after stop(), including any in-flight tick."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        if self._task is task:
            self._task = None

    async def tick(self) -> bool:
        """Run the action once. Errors are logged and never escape."""
        self._in_tick = True
        try:
            await self.action()
            return True
        except Exception:
            self.error_count += 1
            logger.exception(f"[{self.name}] tick failed")
            return False
        finally:
            self._in_tick = False
            self.tick_count += 1

    async def _run(self):
        next_due = self._clock()
        if not self.run_immediately:
            next_due += self.interval

        while self._running:
            delay = next_due - self._clock()
            if delay > 0:
                await self._sleep(delay)
                if not self._running:
                    break

            await self.tick()

            next_due += self.interval
            now = self._clock()
            if next_due < now:
                # Overran its slot: run again right away
                next_due = now
