import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, Request

from push_scheduler import timeutil
from push_scheduler.errors import NotFound
from push_scheduler.push.dispatcher import Dispatcher
from push_scheduler.push.models import (
    HistoryEntry,
    Schedule,
    ScheduleBulkRequest,
    ScheduleRequest,
    SendNowRequest,
)
from push_scheduler.settings import Settings
from push_scheduler.store import HistoryLog, ScheduleStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push"])


# -------------------------
# Dependencies (komponenty z app.state)
# -------------------------

def get_schedule_store(request: Request) -> ScheduleStore:
    return request.app.state.schedule_store


def get_history_log(request: Request) -> HistoryLog:
    return request.app.state.history_log


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _topic(topic, settings: Settings) -> str:
    return (topic or "").strip() or settings.DEFAULT_TOPIC


def _build_schedule(schedule_id: str, req: ScheduleRequest, time: str, settings: Settings) -> Schedule:
    return Schedule(
        id=schedule_id,
        title=req.title,
        body=req.body,
        topic=_topic(req.topic, settings),
        image=req.image or None,
        time=time,
        sent=False,
    )


def _scheduled_entry(schedule: Schedule, settings: Settings) -> HistoryEntry:
    return HistoryEntry(
        id=uuid.uuid4().hex,
        title=schedule.title,
        body=schedule.body,
        topic=schedule.topic,
        image=schedule.image,
        time_utc=schedule.time,
        time_local=timeutil.to_display(
            timeutil.to_comparable(schedule.time), settings.DISPLAY_UTC_OFFSET_MINUTES
        ),
        type="scheduled",
    )


# -------------------------
# Send immediately
# -------------------------

@router.post("/send-notification", summary="Wyślij powiadomienie natychmiast")
async def send_notification(
    req: SendNowRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_app_settings),
):
    result = await dispatcher.dispatch(req.title, req.body, _topic(req.topic, settings), req.image or None)
    return {"success": True, "response": result.message_id}


# -------------------------
# History
# -------------------------

@router.get("/history", response_model=List[HistoryEntry], summary="Historia (najnowsze pierwsze)")
async def list_history(history_log: HistoryLog = Depends(get_history_log)):
    return await history_log.list_recent()


# -------------------------
# Schedules
# -------------------------

@router.get("/schedule", response_model=List[Schedule], summary="Wszystkie harmonogramy (pending + sent)")
async def list_schedules(store: ScheduleStore = Depends(get_schedule_store)):
    return await store.list_all()


@router.post("/schedule", summary="Zaplanuj nowe powiadomienie")
async def create_schedule(
    req: ScheduleRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    history_log: HistoryLog = Depends(get_history_log),
    settings: Settings = Depends(get_app_settings),
):
    normalized_time = timeutil.normalize(req.time)  # always UTC
    schedule = _build_schedule(uuid.uuid4().hex, req, normalized_time, settings)

    await store.put(schedule)
    await history_log.append(_scheduled_entry(schedule, settings))

    return {"success": True, "schedule": schedule}


@router.post("/schedule/bulk", summary="Zaplanuj wiele powiadomień naraz")
async def create_schedules_bulk(
    req: ScheduleBulkRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    history_log: HistoryLog = Depends(get_history_log),
    settings: Settings = Depends(get_app_settings),
):
    """
    Wszystkie czasy są normalizowane przed zapisem: pierwszy błędny element
    przerywa cały batch i nic nie zostaje zapisane.
    """
    created = [
        _build_schedule(uuid.uuid4().hex, it, timeutil.normalize(it.time), settings)
        for it in req.items
    ]

    async with store.database.transaction():
        for schedule in created:
            await store.put(schedule)
            await history_log.append(_scheduled_entry(schedule, settings))

    return {"success": True, "schedules": created}


@router.get("/schedule/{schedule_id}", response_model=Schedule, summary="Pobierz harmonogram po ID")
async def get_schedule(schedule_id: str, store: ScheduleStore = Depends(get_schedule_store)):
    return await store.get(schedule_id)


@router.put("/schedule/{schedule_id}", summary="Edytuj harmonogram (resetuje sent)")
async def update_schedule(
    schedule_id: str,
    req: ScheduleRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    history_log: HistoryLog = Depends(get_history_log),
    settings: Settings = Depends(get_app_settings),
):
    normalized_time = timeutil.normalize(req.time)
    schedule = _build_schedule(schedule_id, req, normalized_time, settings)

    fields = schedule.model_dump(exclude={"id"})
    async with store.database.transaction():
        await store.update_fields(schedule_id, fields)
        await history_log.append(_scheduled_entry(schedule, settings))

    return {"success": True, "schedule": schedule}


@router.delete("/schedule/{schedule_id}", summary="Usuń harmonogram (idempotentnie)")
async def delete_schedule(schedule_id: str, store: ScheduleStore = Depends(get_schedule_store)):
    try:
        await store.remove(schedule_id)
    except NotFound:
        return {"success": True, "deleted": False}
    return {"success": True, "deleted": True}
