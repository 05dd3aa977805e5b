# =============================================================================
# Alarm Service
# =============================================================================
# Named, repeating timers on top of asyncio.
#
#   alarms = AlarmService()
#   alarms.on_fire(handle_alarm)        # async callback(name)
#   alarms.create("syncAlarm", 5)       # fires every 5 minutes
#   alarms.clear_all()
#
# Each alarm is one background task sleeping in a loop. Fire callbacks run
# in their own tasks, so a callback may clear or re-create the very alarm
# that fired without cancelling itself.
# =============================================================================

import asyncio
import logging
from typing import Awaitable, Callable


logger = logging.getLogger(__name__)

# Type for the callback function
AlarmCallback = Callable[[str], Awaitable[None]]


class AlarmService:
    """
    Periodic named alarms.

    Creating an alarm with a name that already exists replaces it.

    Attributes:
        minute: Length of one period unit in seconds. Only tests shorten it.
    """

    def __init__(self, minute: float = 60.0) -> None:
        self.minute = minute
        self._alarms: dict[str, float] = {}          # name -> period (minutes)
        self._tasks: dict[str, asyncio.Task] = {}    # name -> timer task
        self._dispatches: set[asyncio.Task] = set()  # running callbacks
        self._callbacks: list[AlarmCallback] = []

    def on_fire(self, callback: AlarmCallback) -> None:
        """Register a callback invoked with the alarm name on every firing."""
        self._callbacks.append(callback)

    def create(self, name: str, period_minutes: float) -> None:
        """
        Arm a repeating alarm firing every `period_minutes`.

        Must be called from within a running event loop.
        """
        self.clear(name)
        self._alarms[name] = period_minutes
        self._tasks[name] = asyncio.create_task(
            self._run(name, period_minutes),
            name=f"alarm-{name}",
        )
        logger.debug(f"Alarm '{name}' created with a {period_minutes} minute period")

    def clear(self, name: str) -> bool:
        """
        Disarm one alarm.

        Returns:
            True if an alarm with that name existed.
        """
        task = self._tasks.pop(name, None)
        existed = self._alarms.pop(name, None) is not None
        if task:
            task.cancel()
        if existed:
            logger.debug(f"Alarm '{name}' cleared")
        return existed

    def clear_all(self) -> None:
        """Disarm every alarm."""
        for name in list(self._alarms):
            self.clear(name)

    def get_all(self) -> dict[str, float]:
        """Return the armed alarms as {name: period in minutes}."""
        return dict(self._alarms)

    async def close(self) -> None:
        """Disarm everything and wait briefly for running callbacks."""
        self.clear_all()
        if self._dispatches:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._dispatches, return_exceptions=True),
                    timeout=2.0,
                )
            except asyncio.TimeoutError:
                logger.warning("Alarm callbacks did not finish in time")

    async def _run(self, name: str, period_minutes: float) -> None:
        try:
            while True:
                await asyncio.sleep(period_minutes * self.minute)
                logger.debug(f"Alarm '{name}' fired")
                task = asyncio.create_task(self._dispatch(name), name=f"alarm-fire-{name}")
                self._dispatches.add(task)
                task.add_done_callback(self._dispatches.discard)
        except asyncio.CancelledError:
            pass

    async def _dispatch(self, name: str) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(name)
            except Exception as e:
                logger.error(f"Error in alarm callback for '{name}': {e}")
