import pytest

from push_scheduler.errors import NotFound
from push_scheduler.push.models import HistoryEntry, Schedule


def make_schedule(schedule_id="s1", **overrides):
    values = dict(
        id=schedule_id,
        title="Title",
        body="Body",
        topic="all",
        image=None,
        time="2024-01-01T00:00:00.000Z",
        sent=False,
    )
    values.update(overrides)
    return Schedule(**values)


def make_entry(entry_id, entry_type="scheduled", title="Title"):
    return HistoryEntry(
        id=entry_id,
        title=title,
        body="Body",
        topic="all",
        time_utc="2024-01-01T00:00:00.000Z",
        time_local="2024-01-01T05:30:00.000+05:30",
        type=entry_type,
    )


async def test_put_and_get(schedule_store):
    schedule = make_schedule(image="https://example.com/a.png")
    await schedule_store.put(schedule)

    loaded = await schedule_store.get("s1")
    assert loaded == schedule
    assert loaded.sent is False


async def test_put_overwrites_same_id(schedule_store):
    await schedule_store.put(make_schedule(title="Old"))
    await schedule_store.put(make_schedule(title="New"))

    all_schedules = await schedule_store.list_all()
    assert [s.title for s in all_schedules] == ["New"]


async def test_get_missing_raises_not_found(schedule_store):
    with pytest.raises(NotFound):
        await schedule_store.get("missing")


async def test_update_fields(schedule_store):
    await schedule_store.put(make_schedule())

    assert await schedule_store.update_fields("s1", {"sent": True}) is True
    assert (await schedule_store.get("s1")).sent is True


async def test_update_fields_compare_and_swap(schedule_store):
    await schedule_store.put(make_schedule(time="2030-01-01T00:00:00.000Z"))

    marked = await schedule_store.update_fields(
        "s1", {"sent": True}, expect={"sent": False, "time": "2024-01-01T00:00:00.000Z"}
    )
    assert marked is False
    assert (await schedule_store.get("s1")).sent is False

    marked = await schedule_store.update_fields(
        "s1", {"sent": True}, expect={"sent": False, "time": "2030-01-01T00:00:00.000Z"}
    )
    assert marked is True
    assert (await schedule_store.get("s1")).sent is True


async def test_update_missing_raises_not_found(schedule_store):
    with pytest.raises(NotFound):
        await schedule_store.update_fields("missing", {"sent": True})


async def test_remove(schedule_store):
    await schedule_store.put(make_schedule())
    await schedule_store.remove("s1")

    assert await schedule_store.list_all() == []
    with pytest.raises(NotFound):
        await schedule_store.remove("s1")


async def test_list_all_returns_every_record(schedule_store):
    for i in range(3):
        await schedule_store.put(make_schedule(f"s{i}", sent=(i == 1)))

    all_schedules = await schedule_store.list_all()
    assert sorted(s.id for s in all_schedules) == ["s0", "s1", "s2"]
    assert {s.id: s.sent for s in all_schedules} == {"s0": False, "s1": True, "s2": False}


async def test_history_latest_first(history_log):
    await history_log.append(make_entry("h1", title="first"))
    await history_log.append(make_entry("h2", entry_type="sent", title="second"))
    await history_log.append(make_entry("h3", title="third"))

    entries = await history_log.list_recent()
    assert [e.id for e in entries] == ["h3", "h2", "h1"]
    assert entries[1].type == "sent"


async def test_history_append_returns_id(history_log):
    assert await history_log.append(make_entry("abc")) == "abc"
