import datetime as dt
from pydantic import BaseModel, Field, model_validator

from .installation import Coordinates


class PerformanceMetrics(BaseModel):
    efficiency: float = Field(default=0.8, ge=0, le=1)
    travel_efficiency: float = Field(default=0.8, ge=0, le=1)
    completion_rate: float = Field(default=1.0, ge=0, le=1)


class Availability(BaseModel):
    """
    Рабочий график участника.
    working_days: 0 - понедельник ... 6 - воскресенье (date.weekday())
    """
    working_days: list[int] = [0, 1, 2, 3, 4]
    work_start: dt.time = dt.time(8, 0)
    work_end: dt.time = dt.time(17, 0)
    unavailable_dates: list[dt.date] = []

    @model_validator(mode="after")
    def check_hours(self):
        if self.work_end <= self.work_start:
            raise ValueError("work_end must be later than work_start")
        if any(d < 0 or d > 6 for d in self.working_days):
            raise ValueError("working_days must be within 0..6")
        return self

    @property
    def start_minutes(self) -> int:
        return self.work_start.hour * 60 + self.work_start.minute

    @property
    def end_minutes(self) -> int:
        return self.work_end.hour * 60 + self.work_end.minute


class TeamMember(BaseModel):
    id: str
    name: str = ""
    is_active: bool = True
    capacity: int = Field(default=4, ge=0)  # Работ в день
    skills: list[str] = []
    home_base: Coordinates | None = None
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    availability: Availability = Field(default_factory=Availability)

    def is_working_on(self, day: dt.date) -> bool:
        """Работает ли участник в этот день (по графику, без учёта часов)"""
        if day in self.availability.unavailable_dates:
            return False
        return day.weekday() in self.availability.working_days

    def covers_interval(self, day: dt.date, start_minutes: int, end_minutes: int) -> bool:
        """Интервал целиком внутри рабочего дня участника"""
        if not self.is_working_on(day):
            return False
        return (
            start_minutes >= self.availability.start_minutes
            and end_minutes <= self.availability.end_minutes
        )

    def capacity_hours(self, day: dt.date) -> float:
        """Доступные часы в день (0 в нерабочие дни)"""
        if not self.is_working_on(day):
            return 0.0
        return self.shift_hours

    @property
    def shift_hours(self) -> float:
        return (self.availability.end_minutes - self.availability.start_minutes) / 60
