"""On-call models - responders and their windows of responsibility."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class OnCallContact(Base):
    """Someone who can be paged."""

    __tablename__ = "on_call_contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    schedules = relationship("OnCallSchedule", back_populates="contact", cascade="all, delete-orphan", passive_deletes=True)


class OnCallSchedule(Base):
    """A window during which a contact is on call."""

    __tablename__ = "on_call_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(Integer, ForeignKey("on_call_contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    recurrence = Column(String, default="none")  # none, daily, weekly
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    contact = relationship("OnCallContact", back_populates="schedules")
