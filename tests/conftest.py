# tests/conftest.py
from datetime import datetime, timedelta
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import models so metadata knows about all tables
import uptimewatch.models  # noqa: F401
from uptimewatch.database import Base
from uptimewatch.schemas.target import TargetCreate
from uptimewatch.services.notifier import NotificationError
from uptimewatch.services.probe import CheckResult
from uptimewatch.services.store import SqlStore


@pytest_asyncio.fixture
async def session_factory():
    """A fresh in-memory SQLite database per test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlStore:
    return SqlStore(session_factory)


@pytest_asyncio.fixture
async def target(store):
    return await store.create_target(TargetCreate(name="api", url="https://api.example.com/health"))


class FakeNotifier:
    """Records alerts instead of sending them."""

    def __init__(self, fail: bool = False, error: Optional[Exception] = None):
        self.fail = fail
        self.error = error
        self.sent: List[tuple] = []

    async def send_down(self, target, incident, contact=None):
        self.sent.append(("down", target.id, incident.id, contact))
        if self.error is not None:
            raise self.error
        if self.fail:
            raise NotificationError("all recipients failed")

    async def send_recovered(self, target, incident, contact=None):
        self.sent.append(("recovered", target.id, incident.id, contact))
        if self.error is not None:
            raise self.error
        if self.fail:
            raise NotificationError("all recipients failed")

    def events(self) -> List[str]:
        return [event for event, *_ in self.sent]


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


class FakeProbe:
    """Plays back a fixed sequence of (status, status_code, error_message)."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def run(self, policy) -> CheckResult:
        status, status_code, message = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        return CheckResult(
            target_id=policy.target_id,
            status=status,
            status_code=status_code,
            error_message=message,
            response_time=12,
        )


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 8, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
