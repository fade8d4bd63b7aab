import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from push_scheduler.db import create_tables, make_database
from push_scheduler.errors import (
    DispatchFailed,
    InvalidTimeFormat,
    NotFound,
    StoreUnavailable,
)
from push_scheduler.logging_config import configure_logging
from push_scheduler.push.dispatcher import Dispatcher, PushTransport
from push_scheduler.push.fcm import FcmTransport
from push_scheduler.push.routes import router as push_router
from push_scheduler.push.scheduler import SchedulerLoop
from push_scheduler.settings import Settings, get_settings
from push_scheduler.store import HistoryLog, ScheduleStore

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return _error(400, "; ".join(parts) or "Invalid request")

    @app.exception_handler(InvalidTimeFormat)
    async def invalid_time_handler(request: Request, exc: InvalidTimeFormat):
        return _error(400, str(exc))

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return _error(404, str(exc))

    @app.exception_handler(DispatchFailed)
    async def dispatch_failed_handler(request: Request, exc: DispatchFailed):
        return _error(502, exc.reason)

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
        return _error(503, f"Store unavailable: {exc}")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[PushTransport] = None,
) -> FastAPI:
    """
    Build the API with its process-scoped components (database, stores,
    dispatcher, scheduler loop). Nothing connects until startup.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    database = make_database(settings.DATABASE_URL)
    schedule_store = ScheduleStore(database)
    history_log = HistoryLog(database)
    if transport is None:
        transport = FcmTransport(
            sa_b64=settings.FIREBASE_SA_B64,
            project_id=settings.FIREBASE_PROJECT_ID,
            timeout=settings.FCM_TIMEOUT_SECONDS,
        )
    dispatcher = Dispatcher(transport, history_log, settings.DISPLAY_UTC_OFFSET_MINUTES)
    scheduler = SchedulerLoop(
        schedule_store,
        dispatcher,
        interval_seconds=settings.SCHEDULER_INTERVAL_SECONDS,
        display_offset_minutes=settings.DISPLAY_UTC_OFFSET_MINUTES,
    )

    app = FastAPI(title="Push Scheduler - API")
    app.state.settings = settings
    app.state.database = database
    app.state.schedule_store = schedule_store
    app.state.history_log = history_log
    app.state.dispatcher = dispatcher
    app.state.scheduler = scheduler

    # rate-limiter (per klient)
    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(push_router)

    @app.on_event("startup")
    async def startup():
        create_tables(settings.DATABASE_URL)
        await database.connect()
        logger.info("✅ Connected to the database")
        if settings.SCHEDULER_ENABLED:
            scheduler.start()

    @app.on_event("shutdown")
    async def shutdown():
        await scheduler.stop()
        await database.disconnect()
        logger.info("✅ Disconnected from the database")

    # prosty healthcheck
    @app.get("/health")
    async def health():
        return {"status": "ok", "scheduler_running": scheduler.is_running}

    return app
