"""UpdateScheduler: Fast and slow periodic cadences as cancellable tasks.

Each cadence is a single asyncio task that sleeps for its interval, then
awaits its callback. Ticks of the same cadence therefore never overlap.
A failing tick is logged and the cadence carries on. Both cadences are
started together and cancelled together; after :meth:`stop` returns no
scheduled task is left running.

.. code-block:: python

    scheduler = UpdateScheduler(
        fast_interval=1.0,
        slow_interval=10.0,
        on_fast=refresh_watched_pairs,
        on_slow=prune_cache,
    )
    scheduler.start()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class UpdateScheduler:
    """Drives the fast and slow cadences of an oracle.

    :ivar fast_interval: Seconds between fast ticks.
    :ivar slow_interval: Seconds between slow ticks.
    """

    def __init__(
        self,
        fast_interval: float,
        slow_interval: float,
        on_fast: TickCallback,
        on_slow: TickCallback,
    ) -> None:
        """Initialize the scheduler.

        :param fast_interval: Seconds between fast ticks.
        :param slow_interval: Seconds between slow ticks.
        :param on_fast: Coroutine function run on every fast tick.
        :param on_slow: Coroutine function run on every slow tick.
        :raises ValueError: If an interval is not positive.
        """
        if fast_interval <= 0 or slow_interval <= 0:
            raise ValueError("intervals must be positive")

        self.fast_interval = fast_interval
        self.slow_interval = slow_interval
        self._callbacks: dict[str, tuple[float, TickCallback]] = {
            "fast": (fast_interval, on_fast),
            "slow": (slow_interval, on_slow),
        }
        self._tasks: dict[str, asyncio.Task] = {}
        self.tick_counts: dict[str, int] = {"fast": 0, "slow": 0}

    @property
    def is_running(self) -> bool:
        """True while the cadence tasks are alive."""
        return bool(self._tasks)

    def start(self) -> None:
        """Start both cadences. Calling again while running is a no-op."""
        if self._tasks:
            return

        for name, (interval, callback) in self._callbacks.items():
            self._tasks[name] = asyncio.create_task(
                self._run_cadence(name, interval, callback),
                name=f"update-scheduler-{name}",
            )
        logger.info(
            f"Scheduler started (fast={self.fast_interval}s, "
            f"slow={self.slow_interval}s)"
        )

    async def stop(self) -> None:
        """Cancel both cadences and wait until they have exited."""
        if not self._tasks:
            return

        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Scheduler stopped")

    async def _run_cadence(
        self, name: str, interval: float, callback: TickCallback
    ) -> None:
        """Sleep-then-tick loop for one cadence."""
        while True:
            await asyncio.sleep(interval)
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[{name}] Scheduled tick failed: {e}")
            self.tick_counts[name] += 1
