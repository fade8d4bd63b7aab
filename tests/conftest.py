from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from push_scheduler.application import create_app
from push_scheduler.db import create_tables, make_database
from push_scheduler.settings import Settings
from push_scheduler.store import HistoryLog, ScheduleStore


class FakeTransport:
    """Records sends instead of talking to FCM."""

    def __init__(self):
        self.sent = []
        self.fail_titles = set()
        self.fail_all = False

    async def send(self, title, body, topic, image=None):
        if self.fail_all or title in self.fail_titles:
            raise RuntimeError("FCM error 503: unavailable")
        self.sent.append({"title": title, "body": body, "topic": topic, "image": image})
        return f"projects/test/messages/{len(self.sent)}"


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def database(db_url):
    create_tables(db_url)
    db = make_database(db_url)
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
def schedule_store(database):
    return ScheduleStore(database)


@pytest.fixture
def history_log(database):
    return HistoryLog(database)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(db_url):
    return Settings(
        _env_file=None,
        DATABASE_URL=db_url,
        SCHEDULER_ENABLED=False,
        RATE_LIMIT="1000/minute",
        FIREBASE_SA_B64="",
        FIREBASE_PROJECT_ID="",
    )


@pytest.fixture
def client(settings, transport):
    app = create_app(settings, transport=transport)
    with TestClient(app) as c:
        yield c
