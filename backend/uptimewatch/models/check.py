"""Check model - history of probe outcomes."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class Check(Base):
    """One recorded probe outcome. Written once, never updated."""

    __tablename__ = "checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_id = Column(Integer, ForeignKey("targets.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False)  # operational, degraded, down
    response_time = Column(Integer, nullable=True)  # ms
    status_code = Column(Integer, nullable=True)
    error_message = Column(String, nullable=True)

    ssl_valid = Column(Boolean, nullable=True)
    ssl_expires_at = Column(DateTime, nullable=True)
    ssl_issuer = Column(String, nullable=True)
    ssl_days_remaining = Column(Integer, nullable=True)

    domain_valid = Column(Boolean, nullable=True)
    domain_error = Column(String, nullable=True)

    checked_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    target = relationship("Target", back_populates="checks")
