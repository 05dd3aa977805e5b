# =============================================================================
# Sync Scheduler
# =============================================================================
# Owns the single periodic auto-sync alarm.
#
# States:
#
#     IDLE ----configure (auto-sync on)----> ARMED
#     ARMED ---configure (auto-sync off)---> IDLE
#     ARMED ---alarm fires-----------------> RUNNING --configure--> ARMED/IDLE
#     any -----manual sync-----------------> RUNNING --configure--> ARMED/IDLE
#
# Rules:
#   - configure() always clears every alarm before (maybe) arming a new one,
#     so there is never more than one, and never one with a stale period.
#   - The alarm is cleared while a sync runs and recomputed from the current
#     settings when it ends, whatever the outcome.
#   - A lock makes sure only one sync (auto or manual) runs at a time. A
#     manual sync waits for a running auto-sync; an alarm firing while a
#     sync runs is skipped.
# =============================================================================

import asyncio
import logging
from enum import Enum, auto
from typing import Awaitable, Callable, TypeVar

from ticket_folders.config import TicketSettings
from ticket_folders.errors import ConfigurationError
from ticket_folders.sync.alarms import AlarmService


logger = logging.getLogger(__name__)

T = TypeVar("T")

ALARM_NAME = "syncAlarm"


class SchedulerState(Enum):
    """Current state of the scheduler."""
    IDLE = auto()       # No alarm armed
    ARMED = auto()      # Periodic alarm scheduled
    RUNNING = auto()    # A sync is in progress, alarm cleared


class SyncScheduler:
    """
    Periodic auto-sync driven by the current settings.

    Usage:
        >>> scheduler = SyncScheduler(alarms, store.settings, service.auto_sync_open_folders)
        >>> await scheduler.configure()
        >>> moved = await scheduler.run_manual(service.sync_everything)

    Attributes:
        alarms: Alarm service holding the single sync alarm.
        settings_source: Returns a fresh settings snapshot on every call.
        auto_sync: Routine run on every alarm firing.
    """

    def __init__(
        self,
        alarms: AlarmService,
        settings_source: Callable[[], TicketSettings],
        auto_sync: Callable[[], Awaitable[object]],
    ) -> None:
        self.alarms = alarms
        self.settings_source = settings_source
        self.auto_sync = auto_sync
        self._lock = asyncio.Lock()
        # State to return to once no sync is running
        self._resting = SchedulerState.IDLE

    @property
    def state(self) -> SchedulerState:
        """Current SchedulerState."""
        if self._lock.locked():
            return SchedulerState.RUNNING
        return self._resting

    async def configure(self) -> None:
        """
        Recompute the alarm from the current settings.

        While a sync is running this is a no-op: the running sync
        reconfigures from the then-current settings when it ends.
        """
        if self._lock.locked():
            logger.debug("Sync in progress, alarm will be re-evaluated when it ends.")
            return
        self._configure()

    async def alarm_fired(self, name: str) -> None:
        """Alarm callback: run the auto-sync routine, then re-arm."""
        if name != ALARM_NAME:
            return
        if self._lock.locked():
            logger.info("Sync already in progress, skipping this auto-sync run.")
            return

        async with self._lock:
            logger.info(f"Alarm '{name}' triggered.")
            self.alarms.clear(ALARM_NAME)
            try:
                await self.auto_sync()
            except Exception as e:
                logger.error(f"Error during auto-sync: {e}")
            finally:
                self._configure()

    async def run_manual(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run a manual sync with the alarm paused.

        Waits for a running sync to finish first. The alarm is recomputed
        afterwards even if the operation raised; the exception is passed on
        to the caller.
        """
        async with self._lock:
            logger.info("Pausing auto-sync alarm during manual sync.")
            self.alarms.clear(ALARM_NAME)
            try:
                return await operation()
            finally:
                logger.info("Re-evaluating and re-enabling auto-sync alarm.")
                self._configure()

    def _configure(self) -> None:
        """Clear all alarms, then arm one if auto-sync is enabled."""
        self.alarms.clear_all()
        self._resting = SchedulerState.IDLE

        try:
            settings = self.settings_source()
        except ConfigurationError as e:
            logger.error(f"Error setting up alarm: {e}")
            return

        logger.info(
            f"Configuring alarm. Period: {settings.auto_sync_minutes} mins, "
            f"AutoSync: {settings.auto_sync_enabled}"
        )
        if not settings.auto_sync_enabled:
            logger.info("AutoSync is disabled, alarm not created.")
            return

        self.alarms.create(ALARM_NAME, settings.auto_sync_minutes)
        self._resting = SchedulerState.ARMED
        logger.info(
            f"Alarm '{ALARM_NAME}' created with a "
            f"{settings.auto_sync_minutes} minute period."
        )
