"""Downtime aggregator - uptime statistics from a target's incident history."""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from ..schemas.incident import DowntimeLog, IncidentResponse, WindowStats

# Most incidents considered per target
HISTORY_LIMIT = 1000
RECENT_INCIDENTS = 20

WINDOWS = {
    "last_24h": timedelta(hours=24),
    "last_7d": timedelta(days=7),
    "last_30d": timedelta(days=30),
}


def _incident_downtime(incident, now: datetime) -> int:
    """Seconds of downtime; an open incident counts up to ``now``."""
    if incident.resolved_at is None:
        return max(0, int((now - incident.started_at).total_seconds()))
    return max(0, int(incident.duration or 0))


def aggregate_downtime(
    target_id: int,
    incidents: Sequence,
    created_at: Optional[datetime],
    now: datetime,
) -> DowntimeLog:
    """Reduce an incident history (newest first) into a ``DowntimeLog``."""
    incidents = list(incidents)[:HISTORY_LIMIT]

    current = next((i for i in incidents if i.resolved_at is None), None)
    resolved = [i for i in incidents if i.resolved_at is not None]
    durations: List[int] = [_incident_downtime(i, now) for i in resolved]

    total_downtime = sum(durations)
    if current is not None:
        total_downtime += _incident_downtime(current, now)

    windows = {}
    for name, span in WINDOWS.items():
        cutoff = now - span
        in_window = [i for i in incidents if i.started_at >= cutoff]
        windows[name] = WindowStats(
            incidents=len(in_window),
            downtime_seconds=sum(_incident_downtime(i, now) for i in in_window),
        )

    monitored = int((now - created_at).total_seconds()) if created_at else 0
    if monitored > 0:
        uptime = (1 - total_downtime / monitored) * 100
        uptime = round(min(100.0, max(0.0, uptime)), 3)
    else:
        uptime = 100.0

    return DowntimeLog(
        target_id=target_id,
        total_incidents=len(incidents),
        resolved_incidents=len(resolved),
        current_incident=IncidentResponse.from_model(current) if current is not None else None,
        total_downtime_seconds=total_downtime,
        avg_downtime_seconds=round(sum(durations) / len(durations)) if durations else 0,
        longest_downtime_seconds=max(durations) if durations else 0,
        shortest_downtime_seconds=min(durations) if durations else 0,
        uptime_percentage=uptime,
        recent_incidents=[IncidentResponse.from_model(i) for i in incidents[:RECENT_INCIDENTS]],
        **windows,
    )
