"""Scheduler service - one recurring job per target, and the engine that drives them.

Each target gets its own APScheduler interval job, keyed by target id, so a
slow target never holds up another one. A per-target lock makes checks
single-flight: a scheduled tick that finds its target still being checked is
skipped, and a manual check waits for the running one to finish.
"""
import asyncio
import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..schemas.incident import DowntimeLog
from ..schemas.target import CheckPolicy, TargetUpdate, MIN_CHECK_INTERVAL
from ..utils.time_utils import utcnow
from .downtime import HISTORY_LIMIT, aggregate_downtime
from .incident_tracker import IncidentTracker
from .oncall import resolve_on_call
from .probe import CheckResult, Probe

logger = logging.getLogger(__name__)


class TargetNotFoundError(LookupError):
    """The target was deleted from the store."""


class SchedulerRegistry:
    """Owns the APScheduler instance and the id -> job map for one engine."""

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._jobs: Dict[int, object] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._mutex = threading.Lock()

    @staticmethod
    def job_id(target_id: int) -> str:
        return f"target-{target_id}"

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self):
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self):
        """Drop every job and stop; running checks are not awaited."""
        with self._mutex:
            self._jobs.clear()
            self._locks.clear()
            self.scheduler.remove_all_jobs()
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)

    def add(self, target_id: int, interval: int, func: Callable, args: list, run_now: bool = False):
        """Schedule ``func`` every ``interval`` seconds, replacing any job for the target."""
        options = {}
        if run_now:
            options["next_run_time"] = datetime.now(timezone.utc)

        with self._mutex:
            self._remove_locked(target_id)
            job = self.scheduler.add_job(
                func,
                trigger=IntervalTrigger(seconds=max(MIN_CHECK_INTERVAL, interval)),
                id=self.job_id(target_id),
                args=args,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=interval,
                **options,
            )
            self._jobs[target_id] = job
            return job

    def remove(self, target_id: int) -> bool:
        with self._mutex:
            return self._remove_locked(target_id)

    def _remove_locked(self, target_id: int) -> bool:
        lock = self._locks.get(target_id)
        if lock is not None and not lock.locked():
            del self._locks[target_id]
        job = self._jobs.pop(target_id, None)
        if job is None:
            return False
        try:
            self.scheduler.remove_job(self.job_id(target_id))
        except JobLookupError:
            pass
        return True

    def get(self, target_id: int):
        with self._mutex:
            return self._jobs.get(target_id)

    def target_ids(self) -> List[int]:
        with self._mutex:
            return sorted(self._jobs)

    def lock_for(self, target_id: int) -> asyncio.Lock:
        with self._mutex:
            lock = self._locks.get(target_id)
            if lock is None:
                lock = self._locks[target_id] = asyncio.Lock()
            return lock


class MonitoringEngine:
    """Runs checks for every target and turns their results into incidents."""

    def __init__(
        self,
        store,
        notifier,
        probe: Optional[Probe] = None,
        registry: Optional[SchedulerRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
        max_concurrent_checks: Optional[int] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.probe = probe or Probe()
        self.registry = registry or SchedulerRegistry()
        self.tracker = IncidentTracker(store, notifier)
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max_concurrent_checks or settings.max_concurrent_checks)

    # Scheduling

    def schedule_target(self, target, run_now: bool = False) -> CheckPolicy:
        """(Re)schedule a target. Raises ``ValidationError`` if its configuration is invalid."""
        policy = CheckPolicy.from_target(target)
        self.registry.add(policy.target_id, policy.check_interval, self._tick, args=[policy], run_now=run_now)
        logger.info(f"Scheduled monitoring for {policy.name} (every {policy.check_interval}s)")
        return policy

    def unschedule_target(self, target_id: int) -> bool:
        removed = self.registry.remove(target_id)
        if removed:
            logger.info(f"Unscheduled monitoring for target ID: {target_id}")
        return removed

    async def start_all(self):
        """Schedule every stored target and check each one right away."""
        self.registry.start()
        targets = await self.store.list_targets()
        scheduled = 0
        for target in targets:
            try:
                self.schedule_target(target, run_now=True)
                scheduled += 1
            except ValidationError as e:
                logger.error(f"Not scheduling {target.name}: invalid configuration: {e}")
        logger.info(f"Monitoring started for {scheduled} target(s)")

    def stop_all(self):
        self.registry.shutdown()
        logger.info("Monitoring stopped")

    async def update_target(self, target_id: int, data: TargetUpdate):
        """Apply an edit and replace the target's job so the new policy takes effect."""
        target = await self.store.update_target(target_id, data)
        if target is not None:
            self.schedule_target(target)
        return target

    async def delete_target(self, target_id: int) -> bool:
        self.unschedule_target(target_id)
        return await self.store.delete_target(target_id)

    # Checks

    async def check_now(self, target) -> CheckResult:
        """Check a target immediately, after any check already running for it."""
        policy = CheckPolicy.from_target(target)
        async with self.registry.lock_for(policy.target_id):
            return await self._run_check(policy)

    async def check_all_now(self) -> List[CheckResult]:
        results = []
        for target in await self.store.list_targets():
            try:
                results.append(await self.check_now(target))
            except ValidationError as e:
                logger.error(f"Skipping {target.name}: invalid configuration: {e}")
        return results

    async def _tick(self, policy: CheckPolicy):
        lock = self.registry.lock_for(policy.target_id)
        if lock.locked():
            logger.debug(f"Check for {policy.name} still running, skipping tick")
            return

        async with lock:
            try:
                await self._run_check(policy)
            except TargetNotFoundError:
                self.unschedule_target(policy.target_id)
            except SQLAlchemyError as e:
                # The job stays scheduled; the next tick starts fresh
                logger.error(f"Store error while checking {policy.name}, tick abandoned: {e}")

    async def _run_check(self, policy: CheckPolicy) -> CheckResult:
        """Probe, record, evaluate incidents, then update the target's status."""
        target = await self.store.get_target(policy.target_id)
        if target is None:
            raise TargetNotFoundError(f"Target {policy.target_id} no longer exists")
        previous_status = target.status

        async with self._semaphore:
            result = await self.probe.run(policy)

        now = self._clock()
        result = dataclasses.replace(result, checked_at=now)

        await self.store.create_check(result)
        await self.tracker.evaluate(target, previous_status, result.status, result.error_message, now)
        await self.store.update_target_status(target.id, result.status, now)

        logger.debug(f"Target {policy.name}: {result.status}")
        return result

    # Reporting

    async def resolve_on_call(self, now: Optional[datetime] = None):
        """The on-call schedule (with its contact) active at ``now``, or None."""
        schedules = await self.store.list_schedules()
        return resolve_on_call(schedules, now or self._clock())

    async def aggregate_downtime(self, target_id: int) -> Optional[DowntimeLog]:
        target = await self.store.get_target(target_id)
        if target is None:
            return None
        incidents = await self.store.list_incidents(target_id, limit=HISTORY_LIMIT)
        return aggregate_downtime(target_id, incidents, target.created_at, self._clock())
