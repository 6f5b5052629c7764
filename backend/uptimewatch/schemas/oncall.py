"""On-call contact and schedule schemas."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.time_utils import isoformat_utc, to_naive_utc

Recurrence = Literal["none", "daily", "weekly"]


class ContactCreate(BaseModel):
    """Schema for creating an on-call contact."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    phone: Optional[str] = None


class ContactResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class ScheduleCreate(BaseModel):
    """Schema for creating an on-call window. Times are interpreted as UTC."""
    contact_id: int
    name: str = Field(..., min_length=1, max_length=255)
    start_time: datetime
    end_time: datetime
    recurrence: Recurrence = "none"

    @field_validator("start_time", "end_time")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class ScheduleResponse(BaseModel):
    """An on-call window joined with its contact."""
    id: int
    name: str
    start_time: str
    end_time: str
    recurrence: Recurrence
    contact: ContactResponse

    @classmethod
    def from_model(cls, schedule) -> "ScheduleResponse":
        return cls(
            id=schedule.id,
            name=schedule.name,
            start_time=isoformat_utc(schedule.start_time),
            end_time=isoformat_utc(schedule.end_time),
            recurrence=schedule.recurrence or "none",
            contact=ContactResponse.model_validate(schedule.contact),
        )
