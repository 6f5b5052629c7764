from datetime import datetime, timedelta

import pytest

from uptimewatch.schemas.oncall import ContactCreate, ScheduleCreate
from uptimewatch.schemas.target import TargetCreate, TargetUpdate
from uptimewatch.services.probe import CheckResult

T0 = datetime(2024, 1, 8, 12, 0)


@pytest.mark.asyncio
async def test_create_and_update_target(store) -> None:
    target = await store.create_target(
        TargetCreate(name="api", url="https://api.example.com", request_headers={"X-Key": "1"})
    )
    assert target.id is not None
    assert target.status == "unknown"
    assert target.request_headers == '{"X-Key": "1"}'

    updated = await store.update_target(target.id, TargetUpdate(check_interval=60, name="api-v2"))
    assert updated.check_interval == 60
    assert updated.name == "api-v2"
    assert updated.url == "https://api.example.com"

    assert await store.update_target(9999, TargetUpdate(name="ghost")) is None


@pytest.mark.asyncio
async def test_status_change_timestamp_only_moves_on_change(store, target) -> None:
    await store.update_target_status(target.id, "operational", T0)
    await store.update_target_status(target.id, "operational", T0 + timedelta(minutes=5))

    row = await store.get_target(target.id)
    assert row.status == "operational"
    assert row.last_check_at == T0 + timedelta(minutes=5)
    assert row.last_status_change_at == T0

    await store.update_target_status(target.id, "down", T0 + timedelta(minutes=10))
    row = await store.get_target(target.id)
    assert row.last_status_change_at == T0 + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_checks_listed_newest_first(store, target) -> None:
    for minutes, status in ((0, "operational"), (5, "down"), (10, "operational")):
        await store.create_check(
            CheckResult(target_id=target.id, status=status, checked_at=T0 + timedelta(minutes=minutes))
        )

    checks = await store.list_checks(target.id, limit=2)
    assert [c.checked_at for c in checks] == [T0 + timedelta(minutes=10), T0 + timedelta(minutes=5)]


@pytest.mark.asyncio
async def test_incident_lifecycle(store, target) -> None:
    incident = await store.create_incident(target.id, T0, "HTTP 503: Service Unavailable")
    assert (await store.get_active_incident(target.id)).id == incident.id

    resolved = await store.resolve_incident(incident.id, T0 + timedelta(seconds=90))
    assert resolved.duration == 90
    assert await store.get_active_incident(target.id) is None

    # Resolving again leaves the first resolution in place
    again = await store.resolve_incident(incident.id, T0 + timedelta(hours=1))
    assert again.resolved_at == T0 + timedelta(seconds=90)
    assert again.duration == 90


@pytest.mark.asyncio
async def test_mark_notified(store, target) -> None:
    incident = await store.create_incident(target.id, T0)
    assert incident.notification_sent is False

    await store.mark_notified(incident.id)

    [row] = await store.list_incidents(target.id)
    assert row.notification_sent is True


@pytest.mark.asyncio
async def test_delete_target_removes_history(store, target) -> None:
    await store.create_check(CheckResult(target_id=target.id, status="down", checked_at=T0))
    await store.create_incident(target.id, T0)

    assert await store.delete_target(target.id) is True
    assert await store.get_target(target.id) is None
    assert await store.list_checks(target.id) == []
    assert await store.list_incidents(target.id) == []
    assert await store.delete_target(target.id) is False


@pytest.mark.asyncio
async def test_schedules_loaded_with_contact(store) -> None:
    contact = await store.create_contact(ContactCreate(name="Ada", email="ada@example.com"))
    created = await store.create_schedule(
        ScheduleCreate(
            contact_id=contact.id,
            name="weekday",
            start_time=datetime(2024, 1, 1, 9, 0),
            end_time=datetime(2024, 1, 1, 17, 0),
            recurrence="weekly",
        )
    )
    assert created.contact.email == "ada@example.com"

    [schedule] = await store.list_schedules()
    assert schedule.contact.name == "Ada"
    assert schedule.recurrence == "weekly"


@pytest.mark.asyncio
async def test_open_incident_sets_status_in_same_commit(store, target) -> None:
    incident, created = await store.open_incident(target.id, T0, "Request timeout")
    assert created is True

    row = await store.get_target(target.id)
    assert row.status == "down"
    assert row.last_status_change_at == T0

    # An outage already open is reused
    again, created = await store.open_incident(target.id, T0 + timedelta(minutes=1), "Request timeout")
    assert created is False
    assert again.id == incident.id
    assert len(await store.list_incidents(target.id)) == 1


@pytest.mark.asyncio
async def test_close_incident_sets_status_in_same_commit(store, target) -> None:
    await store.open_incident(target.id, T0, "Request timeout")

    closed = await store.close_incident(target.id, T0 + timedelta(seconds=45), "operational")

    assert closed.duration == 45
    row = await store.get_target(target.id)
    assert row.status == "operational"
    assert row.last_status_change_at == T0 + timedelta(seconds=45)
    assert await store.close_incident(target.id, T0 + timedelta(minutes=5), "operational") is None


@pytest.mark.asyncio
async def test_open_incident_for_missing_target(store) -> None:
    assert await store.open_incident(404, T0) == (None, False)
