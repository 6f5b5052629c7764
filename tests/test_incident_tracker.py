from datetime import datetime, timedelta

import pytest

from conftest import FakeNotifier
from uptimewatch.config import Settings
from uptimewatch.schemas.oncall import ContactCreate, ScheduleCreate
from uptimewatch.services.incident_tracker import IncidentTracker
from uptimewatch.services.notifier import Notifier

T0 = datetime(2024, 1, 8, 12, 0)  # Monday


@pytest.mark.asyncio
async def test_going_down_opens_one_incident(store, target, notifier) -> None:
    tracker = IncidentTracker(store, notifier)

    await tracker.evaluate(target, "operational", "down", "HTTP 503: Service Unavailable", T0)
    # A second down tick is not a transition
    await tracker.evaluate(target, "down", "down", "HTTP 503: Service Unavailable", T0 + timedelta(minutes=1))

    incidents = await store.list_incidents(target.id)
    assert len(incidents) == 1
    assert incidents[0].started_at == T0
    assert incidents[0].error_message == "HTTP 503: Service Unavailable"
    assert incidents[0].notification_sent is True
    assert notifier.events() == ["down"]


@pytest.mark.asyncio
async def test_first_check_down_opens_incident(store, target, notifier) -> None:
    await IncidentTracker(store, notifier).evaluate(target, None, "down", "Request timeout", T0)
    assert len(await store.list_incidents(target.id)) == 1


@pytest.mark.asyncio
async def test_recovery_resolves_incident(store, target, notifier) -> None:
    tracker = IncidentTracker(store, notifier)

    await tracker.evaluate(target, "operational", "down", "HTTP 503: Service Unavailable", T0)
    await tracker.evaluate(target, "down", "operational", None, T0 + timedelta(seconds=90))

    [incident] = await store.list_incidents(target.id)
    assert incident.resolved_at == T0 + timedelta(seconds=90)
    assert incident.duration == 90
    assert await store.get_active_incident(target.id) is None
    assert notifier.events() == ["down", "recovered"]


@pytest.mark.asyncio
async def test_down_to_degraded_also_resolves(store, target, notifier) -> None:
    tracker = IncidentTracker(store, notifier)

    await tracker.evaluate(target, "operational", "down", "Request timeout", T0)
    await tracker.evaluate(target, "down", "degraded", "SSL certificate expires in 5 days", T0 + timedelta(minutes=3))

    [incident] = await store.list_incidents(target.id)
    assert incident.duration == 180


@pytest.mark.asyncio
async def test_degraded_and_operational_changes_do_not_touch_incidents(store, target, notifier) -> None:
    tracker = IncidentTracker(store, notifier)

    await tracker.evaluate(target, "operational", "degraded", None, T0)
    await tracker.evaluate(target, "degraded", "operational", None, T0 + timedelta(minutes=1))

    assert await store.list_incidents(target.id) == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_recovery_without_open_incident_is_ignored(store, target, notifier) -> None:
    await IncidentTracker(store, notifier).evaluate(target, "down", "operational", None, T0)
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_failed_notification_leaves_incident_unflagged(store, target) -> None:
    notifier = FakeNotifier(fail=True)

    await IncidentTracker(store, notifier).evaluate(target, "operational", "down", "Request timeout", T0)

    [incident] = await store.list_incidents(target.id)
    assert incident.notification_sent is False
    assert incident.resolved_at is None


@pytest.mark.asyncio
async def test_on_call_contact_is_notified(store, target, notifier) -> None:
    contact = await store.create_contact(ContactCreate(name="Ada", email="ada@example.com"))
    await store.create_schedule(
        ScheduleCreate(
            contact_id=contact.id,
            name="weekday",
            start_time=datetime(2024, 1, 1, 9, 0),
            end_time=datetime(2024, 1, 1, 17, 0),
            recurrence="weekly",
        )
    )

    await IncidentTracker(store, notifier).evaluate(target, "operational", "down", "Request timeout", T0)

    [(event, _, _, on_call)] = notifier.sent
    assert event == "down"
    assert on_call.email == "ada@example.com"


@pytest.mark.asyncio
async def test_opening_incident_records_down_status(store, target, notifier) -> None:
    await IncidentTracker(store, notifier).evaluate(target, "operational", "down", "Request timeout", T0)

    row = await store.get_target(target.id)
    assert row.status == "down"
    assert row.last_status_change_at == T0


@pytest.mark.asyncio
async def test_resolving_incident_records_new_status(store, target, notifier) -> None:
    tracker = IncidentTracker(store, notifier)

    await tracker.evaluate(target, "operational", "down", "Request timeout", T0)
    await tracker.evaluate(target, "down", "degraded", None, T0 + timedelta(minutes=2))

    row = await store.get_target(target.id)
    assert row.status == "degraded"
    assert row.last_status_change_at == T0 + timedelta(minutes=2)


@pytest.mark.asyncio
async def test_unexpected_notifier_error_does_not_escape(store, target) -> None:
    notifier = FakeNotifier(error=RuntimeError("smtp client crashed"))
    tracker = IncidentTracker(store, notifier)

    await tracker.evaluate(target, "operational", "down", "Request timeout", T0)
    await tracker.evaluate(target, "down", "operational", None, T0 + timedelta(seconds=30))

    [incident] = await store.list_incidents(target.id)
    assert incident.notification_sent is False
    assert incident.duration == 30
    assert notifier.events() == ["down", "recovered"]
    assert (await store.get_target(target.id)).status == "operational"


@pytest.mark.asyncio
async def test_incident_flagged_when_no_channel_configured(store, target) -> None:
    notifier = Notifier(config=Settings(smtp_host="", alert_email_to="", webhook_url=""))

    await IncidentTracker(store, notifier).evaluate(target, "operational", "down", "Request timeout", T0)

    [incident] = await store.list_incidents(target.id)
    assert incident.notification_sent is True
