import logging
from typing import Any, Dict, List, Optional

from databases import Database
from sqlalchemy import delete, insert, select, update

from push_scheduler.db import history, schedules
from push_scheduler.errors import NotFound, StoreUnavailable
from push_scheduler.push.models import HistoryEntry, Schedule

logger = logging.getLogger(__name__)


def _row_to_schedule(row) -> Schedule:
    return Schedule(
        id=row["id"],
        title=row["title"],
        body=row["body"],
        topic=row["topic"],
        image=row["image"],
        time=row["time"],
        sent=bool(row["sent"]),
    )


def _row_to_history(row) -> HistoryEntry:
    return HistoryEntry(
        id=row["id"],
        title=row["title"],
        body=row["body"],
        topic=row["topic"],
        image=row["image"],
        time_utc=row["time_utc"],
        time_local=row["time_local"],
        type=row["type"],
        message_id=row["message_id"],
    )


# -------------------------
# Schedules
# -------------------------

class ScheduleStore:
    """
    Schedule records keyed by id. Every call is a fresh read/write against
    the database; nothing is cached between calls.
    """

    def __init__(self, database: Database):
        self.database = database

    async def put(self, schedule: Schedule) -> None:
        """Insert or overwrite the record stored under schedule.id."""
        values = schedule.model_dump()
        try:
            async with self.database.transaction():
                await self.database.execute(
                    delete(schedules).where(schedules.c.id == schedule.id)
                )
                await self.database.execute(insert(schedules).values(**values))
        except Exception as e:
            logger.exception("Failed to store schedule %s", schedule.id)
            raise StoreUnavailable(str(e)) from e

    async def get(self, schedule_id: str) -> Schedule:
        try:
            row = await self.database.fetch_one(
                select(schedules).where(schedules.c.id == schedule_id)
            )
        except Exception as e:
            logger.exception("Failed to fetch schedule %s", schedule_id)
            raise StoreUnavailable(str(e)) from e
        if row is None:
            raise NotFound(schedule_id)
        return _row_to_schedule(row)

    async def update_fields(
        self,
        schedule_id: str,
        fields: Dict[str, Any],
        expect: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Atomically update some columns of one record.

        With `expect`, the write only happens when every expected column still
        holds the given value; returns False (nothing written) otherwise.
        Raises NotFound when the id does not exist.
        """
        try:
            async with self.database.transaction():
                row = await self.database.fetch_one(
                    select(schedules)
                    .where(schedules.c.id == schedule_id)
                    .with_for_update()
                )
                if row is None:
                    raise NotFound(schedule_id)
                if expect:
                    current = _row_to_schedule(row).model_dump()
                    if any(current.get(k) != v for k, v in expect.items()):
                        return False
                await self.database.execute(
                    update(schedules)
                    .where(schedules.c.id == schedule_id)
                    .values(**fields)
                )
                return True
        except NotFound:
            raise
        except Exception as e:
            logger.exception("Failed to update schedule %s", schedule_id)
            raise StoreUnavailable(str(e)) from e

    async def remove(self, schedule_id: str) -> None:
        try:
            async with self.database.transaction():
                row = await self.database.fetch_one(
                    select(schedules.c.id).where(schedules.c.id == schedule_id)
                )
                if row is None:
                    raise NotFound(schedule_id)
                await self.database.execute(
                    delete(schedules).where(schedules.c.id == schedule_id)
                )
        except NotFound:
            raise
        except Exception as e:
            logger.exception("Failed to delete schedule %s", schedule_id)
            raise StoreUnavailable(str(e)) from e

    async def list_all(self) -> List[Schedule]:
        try:
            rows = await self.database.fetch_all(select(schedules))
        except Exception as e:
            logger.exception("Failed to list schedules")
            raise StoreUnavailable(str(e)) from e
        return [_row_to_schedule(r) for r in rows]


# -------------------------
# History (append-only)
# -------------------------

class HistoryLog:
    def __init__(self, database: Database):
        self.database = database

    async def append(self, entry: HistoryEntry) -> str:
        try:
            await self.database.execute(insert(history).values(**entry.model_dump()))
        except Exception as e:
            logger.exception("Failed to append %s history entry %s", entry.type, entry.id)
            raise StoreUnavailable(str(e)) from e
        return entry.id

    async def list_recent(self) -> List[HistoryEntry]:
        """All entries, latest first."""
        try:
            rows = await self.database.fetch_all(
                select(history).order_by(history.c.seq.desc())
            )
        except Exception as e:
            logger.exception("Failed to list history")
            raise StoreUnavailable(str(e)) from e
        return [_row_to_history(r) for r in rows]
