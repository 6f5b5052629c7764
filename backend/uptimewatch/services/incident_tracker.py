"""Incident tracker - opens and closes incidents as a target's status changes.

Transitions:
    anything -> down          open an incident, send a down alert
    down -> operational/degraded   resolve the open incident, send a recovery alert
    anything else -> degraded  logged only
    same status again          nothing

Opening and resolving an incident commit the target's new status in the same
transaction, so a tick abandoned afterwards cannot make the next tick see the
transition again.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from .classifier import DEGRADED, DOWN
from .notifier import NotificationError
from .oncall import resolve_on_call

logger = logging.getLogger(__name__)


class IncidentTracker:
    """State machine over status transitions, backed by the store and notifier."""

    def __init__(self, store, notifier):
        self.store = store
        self.notifier = notifier

    async def _on_call_contact(self, now: datetime):
        try:
            schedules = await self.store.list_schedules()
        except SQLAlchemyError as e:
            # Alerts still go to the configured recipients
            logger.error(f"Could not load on-call schedules: {e}")
            return None
        schedule = resolve_on_call(schedules, now)
        return schedule.contact if schedule is not None else None

    async def evaluate(
        self,
        target,
        previous_status: Optional[str],
        new_status: str,
        message: Optional[str],
        now: datetime,
    ) -> None:
        """React to the status produced by one check."""
        previous_status = previous_status or "unknown"

        if new_status == DOWN and previous_status != DOWN:
            await self._open(target, message, now)
        elif previous_status == DOWN and new_status != DOWN:
            await self._resolve(target, new_status, now)

        if new_status == DEGRADED and previous_status != DEGRADED:
            logger.warning(f"Target DEGRADED: {target.name}{f' ({message})' if message else ''}")

    async def _notify(self, send, target, incident, contact, event: str) -> bool:
        try:
            await send(target, incident, contact)
        except NotificationError as e:
            logger.error(f"Failed to send {event} notification for {target.name}: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to send {event} notification for {target.name}: {type(e).__name__}: {e}")
            return False
        return True

    async def _open(self, target, message: Optional[str], now: datetime) -> None:
        incident, created = await self.store.open_incident(target.id, now, message)
        if not created:
            return
        logger.warning(f"Target DOWN: {target.name}{f' ({message})' if message else ''}")

        contact = await self._on_call_contact(now)
        if await self._notify(self.notifier.send_down, target, incident, contact, "down"):
            await self.store.mark_notified(incident.id)

    async def _resolve(self, target, new_status: str, now: datetime) -> None:
        incident = await self.store.close_incident(target.id, now, new_status)
        if incident is None:
            logger.warning(f"Target {target.name} recovered with no open incident")
            return
        logger.info(f"Target RECOVERED: {target.name}")

        contact = await self._on_call_contact(now)
        await self._notify(self.notifier.send_recovered, target, incident, contact, "recovery")
