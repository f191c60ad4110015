"""Typed records consumed by the availability engine.

Rows coming from the database are converted into these models before any
computation, so malformed data is rejected at the boundary instead of deep
inside slot generation.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ...models import ExceptionType


class Interval(BaseModel):
    """Half-open interval [start, end) of local civil datetimes"""

    start: datetime
    end: datetime

    class Config:
        frozen = True

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end


class WeeklyRule(BaseModel):
    id: Optional[int] = None
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    start_time: time
    end_time: time
    is_active: bool = True

    class Config:
        from_attributes = True


class BreakRule(BaseModel):
    id: Optional[int] = None
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)  # None = every working day
    start_time: time
    end_time: time

    class Config:
        from_attributes = True

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("Break start must be before its end")
        return self


class ProfessionalCalendar(BaseModel):
    professional_id: int
    weekly_rules: list[WeeklyRule] = []
    breaks: list[BreakRule] = []


class ExceptionRecord(BaseModel):
    id: Optional[int] = None
    professional_id: int
    start: datetime
    end: datetime
    type: ExceptionType = ExceptionType.BLOCK
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_interval(self):
        if self.start >= self.end:
            raise ValueError("Exception start must be before its end")
        return self

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)


class BookedInterval(BaseModel):
    """An active-status appointment as seen by the conflict filter"""

    id: Optional[int] = None
    professional_id: int
    start: datetime
    duration: int = Field(gt=0)
    status: str

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration)

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)


class WorkingHours(BaseModel):
    startTime: str
    endTime: str


class AvailabilitySlot(BaseModel):
    time: str
    available: bool
    reason: Optional[str] = None


class DayAvailability(BaseModel):
    date: date
    dayOfWeek: int
    workingHours: Optional[WorkingHours] = None
    slots: list[AvailabilitySlot] = []
    message: Optional[str] = None
