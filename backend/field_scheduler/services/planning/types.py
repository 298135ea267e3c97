from dataclasses import dataclass, field

from ...schemas.team import TeamMember
from ...schemas.planning import SubScores


@dataclass
class CandidateScore:
    """Оценка одного кандидата (прошедшего жёсткие фильтры)"""
    member: TeamMember
    sub_scores: SubScores
    score: float  # 0-100
    current_hours: float  # Уже назначено в этот день
    travel_distance: float | None = None
    reasoning: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def sort_key(self) -> tuple:
        # Убывание по score, затем меньшая загрузка, затем id
        return (-self.score, self.current_hours, self.member.id)


@dataclass
class FilterOutcome:
    """Результат жёсткой фильтрации одного участника"""
    member: TeamMember
    failed: list[str] = field(default_factory=list)
    travel_distance: float | None = None

    @property
    def passed(self) -> bool:
        return not self.failed
