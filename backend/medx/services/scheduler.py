import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from datetime import datetime
from medx.core.config import settings
from medx.models.medication import Medication
from medx.models.preferences import NotificationPreferences, PreferenceGate
from medx.services.classifier import dose_events
from medx.services.dispatcher import DispatchOutcome, DispatchResult, NotificationDispatcher
from medx.services.profile_source import ProfileSource

logger = logging.getLogger(__name__)


Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]
PermissionProbe = Callable[[str], Awaitable[bool]]
Snapshot = Tuple[List[Medication], NotificationPreferences]


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class TickReport:
    started_at: datetime
    processed: int = 0
    dispatched: int = 0
    suppressed: int = 0
    failed: int = 0
    skipped: int = 0
    results: List[DispatchResult] = field(default_factory=list)

    def record(self, result: DispatchResult) -> None:
        self.results.append(result)
        if result.outcome == DispatchOutcome.DELIVERED:
            self.dispatched += 1
        elif result.outcome == DispatchOutcome.SUPPRESSED:
            self.suppressed += 1
        elif result.outcome == DispatchOutcome.FAILED:
            self.failed += 1


#------This Function checks the native permission through the dispatcher---------
def _dispatcher_permission(dispatcher: NotificationDispatcher) -> PermissionProbe:
    async def probe(user_uid: str) -> bool:
        if dispatcher.native is None:
            return False
        return await dispatcher.native.probe(user_uid)
    return probe


class ReminderScheduler:
    """Periodic reminder loop for one user.

    Runs while permission is granted, at least one of reminders or missed
    dose alerts is enabled and the user has a valid medication. Every tick
    reloads the medication and preference snapshot from the profile source.
    """

    def __init__(
        self,
        user_uid: str,
        profiles: ProfileSource,
        dispatcher: NotificationDispatcher,
        permission_probe: Optional[PermissionProbe] = None,
        interval: Optional[float] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self.user_uid = user_uid
        self.profiles = profiles
        self.dispatcher = dispatcher
        self.permission_probe = permission_probe or _dispatcher_permission(dispatcher)
        self.interval = interval or settings.poll_interval_seconds
        self.clock = clock or datetime.now
        self._sleep = sleep or asyncio.sleep
        self.gate = PreferenceGate()
        self.state = SchedulerState.STOPPED
        self.last_report: Optional[TickReport] = None
        self._task: Optional[asyncio.Task] = None
        self._tick_in_progress = False
        self._permission_notice_sent = False
        self.on_stop: Optional[Callable[["ReminderScheduler"], None]] = None

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

#------This Function loads the current medication and preference snapshot---------
    async def _load_snapshot(self) -> Snapshot:
        medications = await self.profiles.get_medications(self.user_uid)
        preferences = await self.profiles.get_preferences(self.user_uid)
        self.gate.replace(preferences)
        return medications, preferences

#------This Function evaluates the start conditions---------
    async def _should_run(self, medications: List[Medication]) -> bool:
        if not self.gate.any_enabled():
            logger.debug(f"Reminders and missed dose alerts disabled for user {self.user_uid}")
            return False
        if not medications:
            logger.debug(f"No valid medications for user {self.user_uid}")
            return False
        try:
            granted = await self.permission_probe(self.user_uid)
        except Exception as e:
            logger.warning(f"Permission probe failed for user {self.user_uid}: {str(e)}")
            granted = False
        if not granted:
            logger.debug(f"Notification permission not granted for user {self.user_uid}")
            await self._notify_permission_needed()
        else:
            self._permission_notice_sent = False
        return granted

#------This Function tells the user once that notifications are unavailable---------
    async def _notify_permission_needed(self) -> None:
        if self._permission_notice_sent:
            return
        result = await self.dispatcher.fallback.deliver(
            self.user_uid,
            "Notifications unavailable",
            "Allow notifications on your device to receive medication reminders.",
            {"type": "permission"},
        )
        if result.ok:
            self._permission_notice_sent = True
        else:
            logger.warning(f"Could not show permission notice to user {self.user_uid}: {result.describe()}")

#------This Function starts the reminder loop---------
    async def start(self) -> bool:
        await self._cancel_task()
        self.state = SchedulerState.STOPPED

        try:
            snapshot = await self._load_snapshot()
        except Exception as e:
            logger.error(f"Could not load profile for user {self.user_uid}: {str(e)}")
            return False

        if not await self._should_run(snapshot[0]):
            return False

        self.state = SchedulerState.RUNNING
        logger.info(
            f"Starting medication reminders for user {self.user_uid} "
            f"({len(snapshot[0])} medication(s), every {self.interval}s)"
        )
        await self.tick(snapshot)
        self._task = asyncio.create_task(self._run())
        return True

#------This Function cancels the running loop task---------
    async def _cancel_task(self) -> bool:
        task, self._task = self._task, None
        if task is None:
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

#------This Function stops the reminder loop---------
    async def stop(self) -> None:
        self.state = SchedulerState.STOPPED
        if await self._cancel_task():
            logger.info(f"Stopped medication reminders for user {self.user_uid}")
        self._stopped()

    def _stopped(self) -> None:
        if self.on_stop is not None:
            self.on_stop(self)

#------This Function starts or stops the loop from the current state---------
    async def refresh(self) -> bool:
        try:
            medications, _ = await self._load_snapshot()
        except Exception as e:
            logger.error(f"Could not load profile for user {self.user_uid}: {str(e)}")
            return self.is_running

        if await self._should_run(medications):
            return await self.start()
        await self.stop()
        return False

#------This Function runs the periodic loop---------
    async def _run(self) -> None:
        while True:
            try:
                await self._sleep(self.interval)

                try:
                    snapshot = await self._load_snapshot()
                except Exception as e:
                    logger.error(f"Could not load profile for user {self.user_uid}, skipping tick: {str(e)}")
                    continue

                if not await self._should_run(snapshot[0]):
                    logger.info(f"Reminder conditions no longer met for user {self.user_uid}, stopping")
                    self.state = SchedulerState.STOPPED
                    self._task = None
                    self._stopped()
                    return

                await self.tick(snapshot)

            except asyncio.CancelledError:
                logger.debug(f"Reminder loop cancelled for user {self.user_uid}")
                raise
            except Exception as e:
                logger.error(f"Error in reminder loop for user {self.user_uid}: {e}", exc_info=True)

#------This Function runs one classify and dispatch pass---------
    async def tick(self, snapshot: Optional[Snapshot] = None) -> Optional[TickReport]:
        if self._tick_in_progress:
            logger.debug(f"Previous tick still running for user {self.user_uid}, skipping")
            return None

        self._tick_in_progress = True
        try:
            medications, preferences = snapshot or await self._load_snapshot()
            now = self.clock()
            report = TickReport(started_at=now)

            for medication in medications:
                report.processed += 1
                try:
                    events = dose_events(medication, now, preferences)
                    if not events:
                        report.skipped += 1
                    for event in events:
                        for kind in sorted(event.kinds, key=lambda k: k.value, reverse=True):
                            report.record(
                                await self.dispatcher.dispatch(self.user_uid, medication, event, kind, now)
                            )
                    if preferences.reminder_notifications and medication.stock is not None:
                        stock = await self.dispatcher.notify_low_stock(self.user_uid, medication, now)
                        if stock.outcome != DispatchOutcome.SKIPPED:
                            report.record(stock)
                except Exception as e:
                    report.failed += 1
                    logger.error(f"Error processing medication {medication.name}: {str(e)}")

            logger.debug(
                f"Tick for user {self.user_uid}: processed={report.processed} "
                f"dispatched={report.dispatched} suppressed={report.suppressed} failed={report.failed}"
            )
            self.last_report = report
            return report
        finally:
            self._tick_in_progress = False

#------This Function runs a manual check regardless of loop state---------
    async def trigger_check(self) -> Optional[TickReport]:
        logger.info(f"Manual trigger: checking medications for user {self.user_uid}")
        return await self.tick()

    def status(self) -> dict:
        report = self.last_report
        return {
            "state": self.state.value,
            "interval_seconds": self.interval,
            "last_tick": report.started_at.isoformat() if report else None,
            "last_dispatched": report.dispatched if report else 0,
        }


class SchedulerRegistry:
    """Holds one reminder scheduler per user while that user's loop is running."""

    def __init__(self, factory: Callable[[str], ReminderScheduler]):
        self._factory = factory
        self._schedulers: Dict[str, ReminderScheduler] = {}

    def __len__(self) -> int:
        return len(self._schedulers)

    def get(self, user_uid: str) -> ReminderScheduler:
        scheduler = self._schedulers.get(user_uid)
        if scheduler is None:
            scheduler = self._factory(user_uid)
            scheduler.on_stop = self.release
            self._schedulers[user_uid] = scheduler
        return scheduler

#------This Function forgets a scheduler that is no longer running---------
    def release(self, scheduler: ReminderScheduler) -> None:
        if scheduler.is_running:
            return
        if self._schedulers.get(scheduler.user_uid) is scheduler:
            del self._schedulers[scheduler.user_uid]

    async def refresh(self, user_uid: str) -> bool:
        scheduler = self.get(user_uid)
        running = await scheduler.refresh()
        self.release(scheduler)
        return running

    async def trigger_check(self, user_uid: str) -> Optional[TickReport]:
        scheduler = self.get(user_uid)
        try:
            return await scheduler.trigger_check()
        finally:
            self.release(scheduler)

    def status(self, user_uid: str) -> dict:
        scheduler = self._schedulers.get(user_uid)
        if scheduler is None:
            return {"state": SchedulerState.STOPPED.value, "interval_seconds": settings.poll_interval_seconds, "last_tick": None, "last_dispatched": 0}
        return scheduler.status()

    async def stop_all(self) -> None:
        for scheduler in list(self._schedulers.values()):
            await scheduler.stop()
        self._schedulers.clear()
