"""Target model - endpoints being monitored."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class Target(Base):
    """A monitored HTTP(S) endpoint and its check policy."""

    __tablename__ = "targets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    http_method = Column(String, default="GET")
    request_body = Column(String, nullable=True)  # May contain {timestamp}
    request_headers = Column(String, nullable=True)  # JSON object
    follow_redirects = Column(Boolean, default=True)
    keep_cookies = Column(Boolean, default=True)
    check_interval = Column(Integer, default=900)  # seconds
    timeout = Column(Integer, default=30)  # seconds

    # unavailable, contains_keyword, not_contains_keyword, http_status_other_than
    alert_type = Column(String, default="unavailable")
    alert_keyword = Column(String, nullable=True)
    alert_http_statuses = Column(String, nullable=True)  # Comma-separated, e.g. "200,201"

    verify_ssl = Column(Boolean, default=False)
    ssl_expiry_threshold = Column(Integer, default=30)  # days
    verify_domain = Column(Boolean, default=False)

    status = Column(String, default="unknown")  # unknown, operational, degraded, down
    last_check_at = Column(DateTime, nullable=True)
    last_status_change_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    checks = relationship("Check", back_populates="target", cascade="all, delete-orphan", passive_deletes=True)
    incidents = relationship("Incident", back_populates="target", cascade="all, delete-orphan", passive_deletes=True)
