import datetime as dt
from pydantic import BaseModel, model_validator

from ..models.scheduling import WorkloadStatus


class DateRange(BaseModel):
    start: dt.date
    end: dt.date

    @model_validator(mode="after")
    def check_order(self):
        if self.end < self.start:
            raise ValueError("date range end must not precede start")
        return self

    def days(self) -> list[dt.date]:
        return [self.start + dt.timedelta(days=i) for i in range((self.end - self.start).days + 1)]

    def __contains__(self, day: dt.date) -> bool:
        return self.start <= day <= self.end


class WorkloadRecord(BaseModel):
    team_member_id: str
    date: dt.date
    assigned_hours: float
    capacity_hours: float
    utilization_percentage: float
    efficiency: float
    conflict_count: int
    status: WorkloadStatus
    assignments: list[str]
    travel_time: float  # Часы
    buffer_time: float  # Часы
    overtime_hours: float


class WorkloadAggregate(BaseModel):
    total_capacity: float
    total_assigned: float
    avg_utilization: float
    avg_efficiency: float
    variance: float
    overutilized_count: int = 0
    underutilized_count: int = 0
    optimal_count: int = 0
    recommendations: list[str] = []


class WorkloadReport(BaseModel):
    date_range: DateRange
    records: list[WorkloadRecord]
    aggregate: WorkloadAggregate
