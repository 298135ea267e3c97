import datetime as dt
from typing import Any
from pydantic import BaseModel, Field, model_validator

from ..models.assignment import AssignmentStatus, AssignmentAction, Priority, ACTIVE_STATUSES
from ..models.scheduling import ConflictResolutionMethod


class ResolvedConflictInfo(BaseModel):
    resolved_at: dt.datetime
    resolved_by: str
    method: ConflictResolutionMethod


class AssignmentMetadata(BaseModel):
    auto_assigned: bool = False
    conflict_resolved: bool = False
    workload_score: float = 0.0
    efficiency_score: float = 0.0
    original_assignment_id: str | None = None
    reassignment_reason: str | None = None
    customer_preference: bool = False
    # conflict_id -> кто и как разрешил
    resolved_conflicts: dict[str, ResolvedConflictInfo] = {}


class AssignmentHistoryEntry(BaseModel):
    id: str
    assignment_id: str
    action: AssignmentAction
    performed_by: str
    performed_at: dt.datetime
    previous_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    reason: str | None = None
    notes: str | None = None


class Assignment(BaseModel):
    """Привязка монтажа к ведущему и (опционально) помощнику"""
    id: str
    installation_id: str
    lead_id: str
    assistant_id: str | None = None
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    priority: Priority = Priority.MEDIUM
    scheduled_date: dt.date
    scheduled_time: dt.time
    estimated_duration: int  # Минуты
    notes: str | None = None
    assigned_at: dt.datetime
    assigned_by: str
    version: int = 1
    metadata: AssignmentMetadata = Field(default_factory=AssignmentMetadata)
    history: list[AssignmentHistoryEntry] = []

    @property
    def start_minutes(self) -> int:
        return self.scheduled_time.hour * 60 + self.scheduled_time.minute

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.estimated_duration

    @property
    def hours(self) -> float:
        return self.estimated_duration / 60

    @property
    def member_ids(self) -> list[str]:
        """Ведущий и помощник (если есть)"""
        if self.assistant_id:
            return [self.lead_id, self.assistant_id]
        return [self.lead_id]

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class AssignmentCreate(BaseModel):
    installation_id: str
    lead_id: str
    assistant_id: str | None = None
    priority: Priority | None = None
    # Если не указано - берётся из монтажа
    scheduled_date: dt.date | None = None
    scheduled_time: dt.time | None = None
    estimated_duration: int | None = None
    notes: str | None = None
    metadata: AssignmentMetadata = Field(default_factory=AssignmentMetadata)


class AssignmentUpdate(BaseModel):
    """
    Изменение назначения. reason обязателен.
    clear_assistant - снять помощника (assistant_id=None означает "не менять").
    """
    status: AssignmentStatus | None = None
    lead_id: str | None = None
    assistant_id: str | None = None
    clear_assistant: bool = False
    scheduled_date: dt.date | None = None
    scheduled_time: dt.time | None = None
    estimated_duration: int | None = None
    reason: str
    expected_version: int | None = None

    @model_validator(mode="after")
    def check_assistant(self):
        if self.clear_assistant and self.assistant_id:
            raise ValueError("assistant_id and clear_assistant are mutually exclusive")
        return self


class AssignmentDelete(BaseModel):
    reason: str
    hard: bool = False
    expected_version: int | None = None


class AssignmentListResponse(BaseModel):
    items: list[Assignment]
    total: int
