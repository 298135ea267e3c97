from pydantic import BaseModel, Field

from ..models.scheduling import OptimizationGoal
from .conflict import Conflict


class CriteriaWeights(BaseModel):
    """Веса критериев. Могут быть любыми неотрицательными, движок их нормирует."""
    workload_balance: float = Field(default=1.0, ge=0)
    skill_match: float = Field(default=1.0, ge=0)
    performance: float = Field(default=1.0, ge=0)
    urgency: float = Field(default=1.0, ge=0)
    geographic: float = Field(default=1.0, ge=0)

    def as_dict(self) -> dict[str, float]:
        return {
            "workload_balance": self.workload_balance,
            "skill_match": self.skill_match,
            "performance": self.performance,
            "urgency": self.urgency,
            "geographic": self.geographic,
        }


class AutoAssignmentCriteria(BaseModel):
    optimization_goal: OptimizationGoal = OptimizationGoal.HYBRID
    consider_skills: bool = True
    consider_location: bool = True
    consider_availability: bool = True
    consider_workload: bool = True
    consider_performance: bool = True
    consider_preferences: bool = False
    max_travel_distance: float = Field(default=50.0, gt=0)  # Мили
    weights: CriteriaWeights = Field(default_factory=CriteriaWeights)


class SubScores(BaseModel):
    workload_balance: float
    skill_match: float
    performance: float
    urgency: float
    geographic: float

    def as_dict(self) -> dict[str, float]:
        return {
            "workload_balance": self.workload_balance,
            "skill_match": self.skill_match,
            "performance": self.performance,
            "urgency": self.urgency,
            "geographic": self.geographic,
        }


class AlternativeAssignment(BaseModel):
    team_member_id: str
    score: float
    sub_scores: SubScores
    reasoning: list[str] = []
    tradeoffs: list[str] = []


class AssignmentResult(BaseModel):
    """Результат автоназначения: лучший кандидат + альтернативы"""
    assignment_id: str | None = None  # Заполняется только при сохранении
    installation_id: str
    team_member_id: str
    confidence: float
    score: float  # 0-100
    sub_scores: SubScores
    weights: dict[str, float]  # Нормированные веса
    travel_distance: float | None = None  # Мили
    customer_preference: bool = False
    reasoning: list[str] = []
    alternatives: list[AlternativeAssignment] = []
    warnings: list[str] = []


class ProposeRequest(BaseModel):
    installation_id: str
    criteria: AutoAssignmentCriteria = Field(default_factory=AutoAssignmentCriteria)


class AutoAssignRequest(ProposeRequest):
    performed_by: str | None = None


class BulkAssignmentOptions(BaseModel):
    override_conflicts: bool = False
    preserve_existing: bool = True
    dry_run: bool = False


class BulkAssignmentRequest(BaseModel):
    installation_ids: list[str]
    criteria: AutoAssignmentCriteria = Field(default_factory=AutoAssignmentCriteria)
    options: BulkAssignmentOptions = Field(default_factory=BulkAssignmentOptions)
    performed_by: str | None = None


class BulkAssignmentError(BaseModel):
    installation_id: str
    error: str  # Тип ошибки
    reason: str
    suggested_action: str
    constraints: list[str] = []
    conflicts: list[Conflict] = []


class BulkAssignmentSummary(BaseModel):
    processing_time: float  # Секунды
    optimization_score: float
    workload_distribution: dict[str, int] = {}
    workload_variance: float = 0.0
    recommendations: list[str] = []


class BatchResult(BaseModel):
    total_requests: int
    successful: int
    failed: int
    skipped: int = 0
    conflicts: int
    dry_run: bool = False
    results: list[AssignmentResult] = []
    errors: list[BulkAssignmentError] = []
    skipped_installations: list[str] = []
    summary: BulkAssignmentSummary
