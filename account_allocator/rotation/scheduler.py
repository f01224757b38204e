"""
Rotation Scheduler — runs a partial rotation on a cron schedule.

Accepts a preset ("daily", "weekly", "monthly") or any cron expression.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from croniter import croniter

from account_allocator.errors import AllocatorError, InvalidArgumentError
from account_allocator.models.distribution import Distribution
from account_allocator.rotation.engine import RotationEngine, RotationType

logger = logging.getLogger(__name__)

SCHEDULE_PRESETS = {
    "daily": "0 0 * * *",
    "weekly": "0 0 * * 0",
    "monthly": "0 0 1 * *",
}


def resolve_schedule(schedule: str) -> str:
    """Map a preset to its cron expression and check that it parses."""
    expression = SCHEDULE_PRESETS.get(schedule, schedule)
    try:
        croniter(expression, datetime.utcnow())
    except (ValueError, KeyError):
        raise InvalidArgumentError(f"Invalid rotation schedule: {schedule}")
    return expression


class RotationScheduler:

    def __init__(
        self,
        rotation_engine: RotationEngine,
        schedule: str = "weekly",
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.rotation_engine = rotation_engine
        self.expression = resolve_schedule(schedule)
        self._clock = clock
        self._running = False
        self.last_run_at: Optional[datetime] = None
        self.last_distribution_id: Optional[str] = None
        self.last_error: Optional[str] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    def next_run(self, after: Optional[datetime] = None) -> datetime:
        """Next fire time strictly after `after` (defaults to now)."""
        return croniter(self.expression, after or self._clock()).get_next(datetime)

    async def run_once(self) -> Distribution:
        """Run one scheduled partial rotation."""
        distribution = await self.rotation_engine.execute_rotation(
            RotationType.PARTIAL.value
        )
        self.last_run_at = self._clock()
        self.last_distribution_id = distribution.id
        self.last_error = None
        logger.info(
            "Scheduled rotation produced distribution %s", distribution.id
        )
        return distribution

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Sleep until each fire time, rotate, repeat until stop_event is set.
        A failed rotation is logged and the next fire time still runs.
        """
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                now = self._clock()
                delay = (self.next_run(now) - now).total_seconds()
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    try:
                        await self.run_once()
                    except AllocatorError as e:
                        self.last_error = str(e)
                        logger.error("Scheduled rotation failed: %s", e)
        finally:
            self._running = False

    def start(self) -> asyncio.Task:
        """Launch run_async as a background task on the running loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._stop_event = asyncio.Event()
        self._running = True
        self._task = asyncio.create_task(self.run_async(self._stop_event))
        logger.info("Rotation scheduler started (%s)", self.expression)
        return self._task

    async def stop(self) -> None:
        """Signal the background task to stop and wait for it."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Rotation scheduler stopped")
