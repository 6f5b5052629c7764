"""Services for probing, classifying, scheduling, and alerting."""
from .probe import Probe, CheckResult
from .scheduler import MonitoringEngine, SchedulerRegistry
from .incident_tracker import IncidentTracker
from .notifier import Notifier, NotificationError
from .store import SqlStore

__all__ = [
    "Probe",
    "CheckResult",
    "MonitoringEngine",
    "SchedulerRegistry",
    "IncidentTracker",
    "Notifier",
    "NotificationError",
    "SqlStore",
]
