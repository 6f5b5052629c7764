"""Pydantic schemas for validated configuration and boundary data."""
from .target import (
    AlertPolicy,
    CheckPolicy,
    TargetCreate,
    TargetUpdate,
)
from .incident import (
    CheckResponse,
    DowntimeLog,
    IncidentResponse,
    WindowStats,
)
from .oncall import (
    ContactCreate,
    ContactResponse,
    ScheduleCreate,
    ScheduleResponse,
)

__all__ = [
    "AlertPolicy",
    "CheckPolicy",
    "TargetCreate",
    "TargetUpdate",
    "CheckResponse",
    "DowntimeLog",
    "IncidentResponse",
    "WindowStats",
    "ContactCreate",
    "ContactResponse",
    "ScheduleCreate",
    "ScheduleResponse",
]
