"""Incident model - outage records."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from ..database import Base


class Incident(Base):
    """A period during which a target was down.

    ``resolved_at`` is NULL while the outage is ongoing; at most one such row
    exists per target.
    """

    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_id = Column(Integer, ForeignKey("targets.id", ondelete="CASCADE"), nullable=False, index=True)
    started_at = Column(DateTime, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # seconds, set at resolution
    error_message = Column(String, nullable=True)
    notification_sent = Column(Boolean, default=False)

    # Relationships
    target = relationship("Target", back_populates="incidents")
