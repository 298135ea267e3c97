import datetime as dt
from pydantic import BaseModel, Field

from ..models.scheduling import ConflictType, ConflictSeverity, ConflictResolutionMethod


class AssignmentChange(BaseModel):
    """Конкретное изменение одного назначения в рамках предложенного решения"""
    assignment_id: str
    lead_id: str | None = None
    assistant_id: str | None = None
    clear_assistant: bool = False
    scheduled_date: dt.date | None = None
    scheduled_time: dt.time | None = None


class ConflictResolution(BaseModel):
    id: str
    method: ConflictResolutionMethod
    description: str
    impact_score: float = Field(ge=0, le=10)  # Меньше - лучше
    estimated_effort: int  # Минуты
    affected_assignments: list[str] = []
    changes: list[AssignmentChange] = []


class Conflict(BaseModel):
    id: str
    type: ConflictType
    severity: ConflictSeverity
    affected_assignments: list[str]
    affected_team_members: list[str] = []
    date: dt.date | None = None
    description: str
    detected_at: dt.datetime
    resolved_at: dt.datetime | None = None
    resolved_by: str | None = None
    resolution_method: ConflictResolutionMethod | None = None
    suggested_resolutions: list[ConflictResolution] = []
    auto_resolvable: bool = False
    impact_score: float = Field(ge=0, le=10)

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


class ResolveConflictRequest(BaseModel):
    """
    Разрешение конфликта.
    resolution_id - одно из suggested_resolutions; без него используется method
    (override / escalate применяются без изменений назначений).
    """
    resolution_id: str | None = None
    method: ConflictResolutionMethod | None = None
    notes: str | None = None


class ConflictListResponse(BaseModel):
    items: list[Conflict]
    total: int
    unresolved: int
