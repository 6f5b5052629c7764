"""Incident, check history, and downtime log schemas."""
from typing import List, Optional

from pydantic import BaseModel

from ..utils.time_utils import isoformat_utc


class IncidentResponse(BaseModel):
    """An incident with ISO-8601 UTC timestamps."""
    id: int
    target_id: int
    started_at: str
    resolved_at: Optional[str] = None
    duration: Optional[int] = None
    error_message: Optional[str] = None
    notification_sent: bool = False

    @classmethod
    def from_model(cls, incident) -> "IncidentResponse":
        return cls(
            id=incident.id,
            target_id=incident.target_id,
            started_at=isoformat_utc(incident.started_at),
            resolved_at=isoformat_utc(incident.resolved_at),
            duration=incident.duration,
            error_message=incident.error_message,
            notification_sent=bool(incident.notification_sent),
        )


class CheckResponse(BaseModel):
    """A recorded check result."""
    id: int
    target_id: int
    status: str
    response_time: Optional[int] = None
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    ssl_valid: Optional[bool] = None
    ssl_expires_at: Optional[str] = None
    ssl_issuer: Optional[str] = None
    ssl_days_remaining: Optional[int] = None
    domain_valid: Optional[bool] = None
    domain_error: Optional[str] = None
    checked_at: str

    @classmethod
    def from_model(cls, check) -> "CheckResponse":
        return cls(
            id=check.id,
            target_id=check.target_id,
            status=check.status,
            response_time=check.response_time,
            status_code=check.status_code,
            error_message=check.error_message,
            ssl_valid=check.ssl_valid,
            ssl_expires_at=isoformat_utc(check.ssl_expires_at),
            ssl_issuer=check.ssl_issuer,
            ssl_days_remaining=check.ssl_days_remaining,
            domain_valid=check.domain_valid,
            domain_error=check.domain_error,
            checked_at=isoformat_utc(check.checked_at),
        )


class WindowStats(BaseModel):
    """Incident count and downtime within a lookback window."""
    incidents: int = 0
    downtime_seconds: int = 0


class DowntimeLog(BaseModel):
    """Downtime statistics for one target."""
    target_id: int
    total_incidents: int
    resolved_incidents: int
    current_incident: Optional[IncidentResponse] = None
    total_downtime_seconds: int
    avg_downtime_seconds: int
    longest_downtime_seconds: int
    shortest_downtime_seconds: int
    last_24h: WindowStats
    last_7d: WindowStats
    last_30d: WindowStats
    uptime_percentage: float
    recent_incidents: List[IncidentResponse]
