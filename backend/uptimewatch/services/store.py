"""SQL store - durable persistence for targets, checks, incidents, and on-call data."""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..models import Target, Check, Incident, OnCallContact, OnCallSchedule
from ..schemas.oncall import ContactCreate, ScheduleCreate
from ..schemas.target import TargetCreate, TargetUpdate
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow
from .probe import CheckResult

logger = logging.getLogger(__name__)


def _apply_status(target: Target, status: str, now: datetime) -> None:
    if target.status != status:
        target.last_status_change_at = now
    target.status = status
    target.last_check_at = now


async def _active_incident(session: AsyncSession, target_id: int) -> Optional[Incident]:
    result = await session.execute(
        select(Incident)
        .where(Incident.target_id == target_id, Incident.resolved_at.is_(None))
        .order_by(Incident.started_at.desc(), Incident.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _resolve(incident: Incident, resolved_at: datetime) -> None:
    incident.resolved_at = resolved_at
    incident.duration = max(0, int((resolved_at - incident.started_at).total_seconds()))


class SqlStore:
    """Store backed by an async SQLAlchemy session factory.

    Every method runs in its own session and commits before returning. Errors
    from the database propagate to the caller.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # Targets

    async def create_target(self, data: TargetCreate) -> Target:
        async with self._session_factory() as session:
            target = Target(**data.to_columns(), status="unknown")
            session.add(target)
            await retry_on_lock(session.commit)
            await session.refresh(target)
            return target

    async def update_target(self, target_id: int, data: TargetUpdate) -> Optional[Target]:
        async with self._session_factory() as session:
            target = await session.get(Target, target_id)
            if target is None:
                return None
            for key, value in data.to_columns().items():
                setattr(target, key, value)
            await retry_on_lock(session.commit)
            await session.refresh(target)
            return target

    async def delete_target(self, target_id: int) -> bool:
        """Delete a target together with its checks and incidents."""
        async with self._session_factory() as session:
            target = await session.get(Target, target_id)
            if target is None:
                return False
            await session.execute(delete(Check).where(Check.target_id == target_id))
            await session.execute(delete(Incident).where(Incident.target_id == target_id))
            await session.delete(target)
            await retry_on_lock(session.commit)
            return True

    async def get_target(self, target_id: int) -> Optional[Target]:
        async with self._session_factory() as session:
            return await session.get(Target, target_id)

    async def list_targets(self) -> List[Target]:
        async with self._session_factory() as session:
            result = await session.execute(select(Target).order_by(Target.id))
            return list(result.scalars().all())

    async def update_target_status(self, target_id: int, status: str, checked_at: Optional[datetime] = None) -> None:
        """Record the latest status; ``last_status_change_at`` moves only when it differs."""
        now = checked_at or utcnow()
        async with self._session_factory() as session:
            target = await session.get(Target, target_id)
            if target is None:
                return
            _apply_status(target, status, now)
            await retry_on_lock(session.commit)

    # Checks

    async def create_check(self, result: CheckResult) -> Check:
        async with self._session_factory() as session:
            check = Check(
                target_id=result.target_id,
                status=result.status,
                response_time=result.response_time,
                status_code=result.status_code,
                error_message=result.error_message,
                ssl_valid=result.ssl_valid,
                ssl_expires_at=result.ssl_expires_at,
                ssl_issuer=result.ssl_issuer,
                ssl_days_remaining=result.ssl_days_remaining,
                domain_valid=result.domain_valid,
                domain_error=result.domain_error,
                checked_at=result.checked_at,
            )
            session.add(check)
            await retry_on_lock(session.commit)
            return check

    async def list_checks(self, target_id: int, limit: int = 100) -> List[Check]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Check)
                .where(Check.target_id == target_id)
                .order_by(Check.checked_at.desc(), Check.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # Incidents

    async def get_active_incident(self, target_id: int) -> Optional[Incident]:
        """Most recent unresolved incident for a target."""
        async with self._session_factory() as session:
            return await _active_incident(session, target_id)

    async def create_incident(self, target_id: int, started_at: datetime, error_message: Optional[str] = None) -> Incident:
        async with self._session_factory() as session:
            incident = Incident(
                target_id=target_id,
                started_at=started_at,
                error_message=error_message,
                notification_sent=False,
            )
            session.add(incident)
            await retry_on_lock(session.commit)
            return incident

    async def resolve_incident(self, incident_id: int, resolved_at: Optional[datetime] = None) -> Optional[Incident]:
        """Close an incident, setting its duration in whole seconds.

        An incident that is already resolved is returned unchanged.
        """
        resolved_at = resolved_at or utcnow()
        async with self._session_factory() as session:
            incident = await session.get(Incident, incident_id)
            if incident is None:
                return None
            if incident.resolved_at is None:
                _resolve(incident, resolved_at)
                await retry_on_lock(session.commit)
            return incident

    async def open_incident(
        self, target_id: int, started_at: datetime, error_message: Optional[str] = None
    ) -> Tuple[Optional[Incident], bool]:
        """Mark a target down and open its incident in one transaction.

        Returns ``(incident, created)``. An incident that is already open is
        returned with ``created`` False; a missing target gives ``(None, False)``.
        """
        async with self._session_factory() as session:
            target = await session.get(Target, target_id)
            if target is None:
                return None, False
            incident = await _active_incident(session, target_id)
            created = incident is None
            if created:
                incident = Incident(
                    target_id=target_id,
                    started_at=started_at,
                    error_message=error_message,
                    notification_sent=False,
                )
                session.add(incident)
            _apply_status(target, "down", started_at)
            await retry_on_lock(session.commit)
            return incident, created

    async def close_incident(self, target_id: int, resolved_at: datetime, status: str) -> Optional[Incident]:
        """Resolve the open incident and record the target's new status in one transaction."""
        async with self._session_factory() as session:
            target = await session.get(Target, target_id)
            if target is None:
                return None
            incident = await _active_incident(session, target_id)
            if incident is not None:
                _resolve(incident, resolved_at)
            _apply_status(target, status, resolved_at)
            await retry_on_lock(session.commit)
            return incident

    async def mark_notified(self, incident_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Incident).where(Incident.id == incident_id).values(notification_sent=True)
            )
            await retry_on_lock(session.commit)

    async def list_incidents(self, target_id: Optional[int] = None, limit: int = 50) -> List[Incident]:
        """Incidents newest first, for one target or all of them."""
        async with self._session_factory() as session:
            query = select(Incident)
            if target_id is not None:
                query = query.where(Incident.target_id == target_id)
            result = await session.execute(
                query.order_by(Incident.started_at.desc(), Incident.id.desc()).limit(limit)
            )
            return list(result.scalars().all())

    # On-call

    async def create_contact(self, data: ContactCreate) -> OnCallContact:
        async with self._session_factory() as session:
            contact = OnCallContact(**data.model_dump())
            session.add(contact)
            await retry_on_lock(session.commit)
            return contact

    async def list_contacts(self) -> List[OnCallContact]:
        async with self._session_factory() as session:
            result = await session.execute(select(OnCallContact).order_by(OnCallContact.name))
            return list(result.scalars().all())

    async def create_schedule(self, data: ScheduleCreate) -> OnCallSchedule:
        async with self._session_factory() as session:
            schedule = OnCallSchedule(**data.model_dump())
            session.add(schedule)
            await retry_on_lock(session.commit)
            result = await session.execute(
                select(OnCallSchedule)
                .options(selectinload(OnCallSchedule.contact))
                .where(OnCallSchedule.id == schedule.id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()

    async def list_schedules(self) -> List[OnCallSchedule]:
        """All schedules with their contact loaded, earliest start first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(OnCallSchedule)
                .options(selectinload(OnCallSchedule.contact))
                .order_by(OnCallSchedule.start_time, OnCallSchedule.id)
            )
            return list(result.scalars().all())
