from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from uptimewatch.utils.db_utils import retry_on_lock
from uptimewatch.utils.time_utils import isoformat_utc, parse_iso_utc, to_naive_utc


def test_iso_round_trip_through_utc() -> None:
    stamp = datetime(2024, 1, 8, 12, 0, 30)
    assert isoformat_utc(stamp) == "2024-01-08T12:00:30Z"
    assert parse_iso_utc("2024-01-08T12:00:30Z") == stamp
    assert parse_iso_utc("2024-01-08T14:00:30+02:00") == stamp
    assert isoformat_utc(None) is None


def test_to_naive_utc() -> None:
    aware = datetime(2024, 1, 8, 13, 0, tzinfo=timezone(timedelta(hours=1)))
    assert to_naive_utc(aware) == datetime(2024, 1, 8, 12, 0)
    assert to_naive_utc(datetime(2024, 1, 8, 12, 0)) == datetime(2024, 1, 8, 12, 0)


@pytest.mark.asyncio
async def test_retry_on_lock_retries_transient_errors() -> None:
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        return "ok"

    assert await retry_on_lock(flaky, base_delay=0) == "ok"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_retry_on_lock_gives_up() -> None:
    attempts = []

    async def locked():
        attempts.append(1)
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    with pytest.raises(OperationalError):
        await retry_on_lock(locked, max_retries=2, base_delay=0)
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_retry_on_lock_raises_other_errors_immediately() -> None:
    attempts = []

    async def broken():
        attempts.append(1)
        raise OperationalError("INSERT", {}, Exception("no such table: targets"))

    with pytest.raises(OperationalError):
        await retry_on_lock(broken, base_delay=0)
    assert len(attempts) == 1
