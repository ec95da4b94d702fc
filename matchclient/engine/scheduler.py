"""
Poll scheduler: three repeating refresh loops plus the low-time watchdog.

Loops never share state with each other; they only call into the session they drive.
Each loop awaits its own tick before sleeping again, so a loop never overlaps itself.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from matchclient.core.models import Milliseconds

logger = logging.getLogger(__name__)


class PollTarget(Protocol):
    def render(self) -> None:
        """Display-only refresh. Must not do network I/O."""
        ...

    async def refresh_details_and_clock(self) -> None: ...

    async def refresh_moves(self) -> None: ...

    def active_remaining_ms(self) -> Optional[Milliseconds]:
        """Extrapolated time of the side to move, None unless the game is ongoing."""
        ...


@dataclass(frozen=True)
class PollIntervals:
    fast_s: float = 0.1
    medium_s: float = 1.0
    slow_s: float = 1.5
    watchdog_s: float = 0.1
    watchdog_cooldown_s: float = 1.5


class ScheduledTask:
    """Handle on one deferred callback. Scheduling again replaces the pending one."""

    def __init__(self) -> None:
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def replace(self, delay_s: float, callback: Callable[[], None]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay_s, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()


class PollScheduler:
    def __init__(self, target: PollTarget, intervals: PollIntervals = PollIntervals()) -> None:
        self.target = target
        self.intervals = intervals
        self.armed = True
        self.forced_refreshes = 0
        self._rearm = ScheduledTask()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._repeat("fast", self.intervals.fast_s, self._render)),
            asyncio.create_task(
                self._repeat("medium", self.intervals.medium_s, self.target.refresh_details_and_clock)
            ),
            asyncio.create_task(
                self._repeat("slow", self.intervals.slow_s, self.target.refresh_moves)
            ),
            asyncio.create_task(
                self._repeat("watchdog", self.intervals.watchdog_s, self.watchdog_tick)
            ),
        ]

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        # a watchdog cancelled mid-refresh re-arms in its finally block
        self._rearm.cancel()

    async def watchdog_tick(self) -> bool:
        """Force one refresh when the side to move ran out of time. Returns True if it fired."""
        if not self.armed:
            return False
        remaining = self.target.active_remaining_ms()
        if remaining is None or remaining > 0:
            return False

        self.armed = False
        self.forced_refreshes += 1
        logger.info("Clock reached zero, forcing a refresh")
        try:
            await self.target.refresh_details_and_clock()
        finally:
            self._rearm.replace(self.intervals.watchdog_cooldown_s, self._arm)
        return True

    # --- Internal helpers ---
    def _arm(self) -> None:
        self.armed = True

    async def _render(self) -> None:
        self.target.render()

    async def _repeat(
        self, name: str, interval_s: float, tick: Callable[[], Awaitable[object]]
    ) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                await tick()
            except Exception:
                # a broken tick must not end the loop; the next tick tries again
                logger.exception("%s tick failed", name)
