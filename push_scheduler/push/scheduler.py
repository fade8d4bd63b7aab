import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from push_scheduler import timeutil
from push_scheduler.errors import DispatchFailed, NotFound
from push_scheduler.push.dispatcher import Dispatcher
from push_scheduler.push.models import Schedule
from push_scheduler.store import ScheduleStore

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    started_at: datetime
    checked: int = 0
    due: int = 0
    dispatched: int = 0
    failed: int = 0


class SchedulerLoop:
    """
    Periodic scan of all schedules. Each cycle re-reads the whole store,
    dispatches every unsent schedule whose time has come and flips its `sent`
    flag. Cycles never overlap.
    """

    def __init__(
        self,
        store: ScheduleStore,
        dispatcher: Dispatcher,
        interval_seconds: float = 60,
        clock: Callable[[], datetime] = timeutil.now,
        display_offset_minutes: int = timeutil.IST_OFFSET_MINUTES,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.display_offset_minutes = display_offset_minutes
        self._cycle_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_cycle(self) -> Optional[CycleReport]:
        """One scan. Returns None if another cycle is still in progress."""
        if self._cycle_lock.locked():
            logger.warning("Previous schedule check still running, skipping tick")
            return None

        async with self._cycle_lock:
            now = self.clock()
            logger.info(
                "⏰ Checking schedules at (UTC): %s | (local): %s",
                timeutil.format_canonical(now),
                timeutil.to_display(now, self.display_offset_minutes),
            )
            report = CycleReport(started_at=now)

            try:
                all_schedules = await self.store.list_all()
            except Exception:
                logger.exception("Error checking schedules, cycle aborted")
                return report

            for schedule in all_schedules:
                report.checked += 1
                try:
                    await self._process(schedule, now, report)
                except Exception:
                    report.failed += 1
                    logger.exception("Unexpected error while processing schedule %s", schedule.id)

            logger.info(
                "Schedule check done: checked=%d due=%d dispatched=%d failed=%d",
                report.checked, report.due, report.dispatched, report.failed,
            )
            return report

    async def _process(self, schedule: Schedule, now: datetime, report: CycleReport) -> None:
        if schedule.sent:
            logger.debug("📌 Schedule [%s] -> scheduled(UTC): %s, sent: True", schedule.id, schedule.time)
            return
        due_at = timeutil.to_comparable(schedule.time)
        logger.debug(
            "📌 Schedule [%s] -> scheduled(UTC): %s, scheduled(local): %s, sent: False",
            schedule.id,
            schedule.time,
            timeutil.to_display(due_at, self.display_offset_minutes),
        )
        if due_at > now:
            return

        report.due += 1
        logger.info("🚀 Sending notification for schedule [%s] (time %s)", schedule.id, schedule.time)
        try:
            await self.dispatcher.dispatch(
                schedule.title, schedule.body, schedule.topic, schedule.image
            )
        except DispatchFailed as e:
            report.failed += 1
            logger.warning("Dispatch of schedule %s failed, will retry next cycle: %s", schedule.id, e.reason)
            return
        report.dispatched += 1

        try:
            marked = await self.store.update_fields(
                schedule.id,
                {"sent": True},
                expect={
                    "sent": False,
                    "time": schedule.time,
                    "title": schedule.title,
                    "body": schedule.body,
                    "topic": schedule.topic,
                    "image": schedule.image,
                },
            )
        except NotFound:
            logger.info("Schedule %s was deleted while being dispatched", schedule.id)
            return
        if not marked:
            logger.info("Schedule %s was edited while being dispatched, keeping the edit", schedule.id)

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.run_cycle()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("Push scheduler started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Stop scheduling new cycles; an in-flight cycle is allowed to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Push scheduler stopped")
