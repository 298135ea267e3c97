"""
Автоназначение: подбор ведущего для монтажа.

1. Жёсткие фильтры (активность, график, вместимость, навыки, дальность).
2. Подоценки 0-1 по пяти критериям.
3. Итог = сумма (вес * подоценка) * 100, веса нормированы.
4. Ранжирование: score убыв., меньше часов в этот день, id.
"""
import logging
from datetime import datetime
from typing import Iterable

from ...config import Settings, get_settings
from ...exceptions import NoCandidateError
from ...models.assignment import Priority
from ...schemas.assignment import Assignment, AssignmentMetadata
from ...schemas.installation import Installation
from ...schemas.planning import (
    AutoAssignmentCriteria, AssignmentResult, AlternativeAssignment, SubScores
)
from ...schemas.team import TeamMember
from .context import PlanningContext
from .strategies import get_strategy
from .types import CandidateScore, FilterOutcome

logger = logging.getLogger(__name__)

PRIORITY_URGENCY = {
    Priority.LOW: 0.25,
    Priority.MEDIUM: 0.5,
    Priority.HIGH: 0.75,
    Priority.URGENT: 1.0,
}

# Порядок имён ограничений в NoCandidateError
CONSTRAINT_ORDER = ("active", "availability", "capacity", "time_overlap", "skills", "location")

MAX_ALTERNATIVES = 3
CLOSE_GAP = 5.0
CLEAR_GAP = 25.0


def deadline_boost(installation: Installation) -> float:
    if installation.deadline is None:
        return 0.0
    days_left = (installation.deadline - installation.scheduled_date).days
    if days_left <= 1:
        return 0.25
    if days_left <= 3:
        return 0.1
    return 0.0


def confidence_for(scores: list[float]) -> float:
    """1.0 при единственном кандидате, 0.5 при близких лидерах, далее линейно до 1.0"""
    if len(scores) < 2:
        return 1.0
    gap = scores[0] - scores[1]
    if gap <= CLOSE_GAP:
        return 0.5
    return round(min(1.0, 0.5 + 0.5 * (gap - CLOSE_GAP) / (CLEAR_GAP - CLOSE_GAP)), 3)


def build_assignment(
    installation: Installation,
    lead_id: str,
    assignment_id: str,
    assigned_by: str,
    assigned_at: datetime | None = None
) -> Assignment:
    """Назначение на время и длительность монтажа"""
    return Assignment(
        id=assignment_id,
        installation_id=installation.id,
        lead_id=lead_id,
        priority=installation.priority,
        scheduled_date=installation.scheduled_date,
        scheduled_time=installation.scheduled_time,
        estimated_duration=installation.duration,
        assigned_at=assigned_at or datetime.utcnow(),
        assigned_by=assigned_by,
        metadata=AssignmentMetadata(auto_assigned=True),
    )


class AutoAssignmentOptimizer:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def propose(
        self,
        installation: Installation,
        criteria: AutoAssignmentCriteria,
        context: PlanningContext
    ) -> AssignmentResult:
        """
        Лучший кандидат для монтажа + до трёх альтернатив.
        Raises:
            NoCandidateError: никто не прошёл жёсткие фильтры
        """
        strategy = get_strategy(criteria.optimization_goal)
        weights = strategy.adjust_weights(criteria.weights)

        outcomes = [self._filter(member, installation, criteria, context) for member in context.members]
        passed = [o for o in outcomes if o.passed]
        if not passed:
            details = {o.member.id: o.failed for o in outcomes}
            failed = {name for o in outcomes for name in o.failed}
            constraints = [name for name in CONSTRAINT_ORDER if name in failed]
            logger.debug(f"No candidate for {installation.id}: {constraints}")
            raise NoCandidateError(installation.id, constraints, details)

        candidates = [self._score(o, installation, criteria, weights, context) for o in passed]
        candidates.sort(key=lambda c: c.sort_key)
        best = candidates[0]

        preferred = (
            criteria.consider_preferences
            and best.member.id in installation.preferred_team_member_ids
        )
        reasoning = [strategy.describe(), *best.reasoning]
        if criteria.consider_preferences and installation.preferred_team_member_ids:
            if preferred:
                reasoning.append("Customer preferred this team member")
            else:
                reasoning.append("Customer preferred team members were not the best fit")

        result = AssignmentResult(
            installation_id=installation.id,
            team_member_id=best.member.id,
            confidence=confidence_for([c.score for c in candidates]),
            score=best.score,
            sub_scores=best.sub_scores,
            weights={k: round(v, 4) for k, v in weights.items()},
            travel_distance=best.travel_distance,
            customer_preference=preferred,
            reasoning=reasoning,
            alternatives=[self._alternative(best, c) for c in candidates[1:1 + MAX_ALTERNATIVES]],
            warnings=best.warnings,
        )
        logger.debug(
            f"Proposed {best.member.id} for {installation.id} "
            f"(score {best.score}, {len(candidates)} candidates)"
        )
        return result

    def propose_all(
        self,
        installations: Iterable[Installation],
        criteria: AutoAssignmentCriteria,
        context: PlanningContext
    ) -> tuple[list[AssignmentResult], dict[str, NoCandidateError]]:
        """
        Предложения для списка монтажей по порядку.
        Каждое принятое предложение добавляется в контекст как виртуальное назначение.
        """
        results = []
        failures: dict[str, NoCandidateError] = {}
        for installation in installations:
            try:
                result = self.propose(installation, criteria, context)
            except NoCandidateError as e:
                failures[installation.id] = e
                continue
            context.add_virtual_assignment(build_assignment(
                installation, result.team_member_id, f"proposed-{installation.id}", self.settings.default_actor
            ))
            results.append(result)
        return results, failures

    # ================= HARD FILTERS =================

    def _existing(self, member_id: str, installation: Installation, context: PlanningContext) -> list[Assignment]:
        # Текущее назначение этого же монтажа не мешает переназначению
        return [
            a for a in context.get_member_assignments(member_id, installation.scheduled_date)
            if a.installation_id != installation.id
        ]

    def _filter(
        self,
        member: TeamMember,
        installation: Installation,
        criteria: AutoAssignmentCriteria,
        context: PlanningContext
    ) -> FilterOutcome:
        outcome = FilterOutcome(member=member)
        if not member.is_active:
            outcome.failed.append("active")
            return outcome

        day = installation.scheduled_date
        start, end = installation.start_minutes, installation.end_minutes

        if criteria.consider_availability:
            existing = self._existing(member.id, installation, context)
            if not member.covers_interval(day, start, end):
                outcome.failed.append("availability")
            if len(existing) >= member.capacity:
                outcome.failed.append("capacity")
            if any(a.start_minutes < end and start < a.end_minutes for a in existing):
                outcome.failed.append("time_overlap")

        if criteria.consider_skills:
            if not set(installation.required_skills) <= set(member.skills):
                outcome.failed.append("skills")

        origin = context.get_previous_location(member.id, day, start)
        outcome.travel_distance = context.travel_distance(origin, installation.address.coordinates)
        if criteria.consider_location and outcome.travel_distance is not None:
            if outcome.travel_distance > criteria.max_travel_distance:
                outcome.failed.append("location")

        return outcome

    # ================= SCORING =================

    def _score(
        self,
        outcome: FilterOutcome,
        installation: Installation,
        criteria: AutoAssignmentCriteria,
        weights: dict[str, float],
        context: PlanningContext
    ) -> CandidateScore:
        member = outcome.member
        day = installation.scheduled_date
        existing = self._existing(member.id, installation, context)
        used = sum(a.hours for a in existing)
        available = member.capacity_hours(day)
        job_hours = installation.duration / 60
        projected = (used + job_hours) / available if available > 0 else None

        notes: dict[str, str] = {}
        warnings: list[str] = []

        if not criteria.consider_workload:
            workload = 1.0
            notes["workload_balance"] = "workload not considered"
        elif projected is None:
            workload = 0.0
            notes["workload_balance"] = "no working hours on this day"
        else:
            workload = max(0.0, 1 - projected)
            notes["workload_balance"] = f"projected utilization {projected * 100:.0f}%"
        if projected is None or projected > 1:
            warnings.append(f"{member.id} would exceed available hours on {day.isoformat()}")

        required = set(installation.required_skills)
        if not criteria.consider_skills or not required:
            skill = 1.0
            notes["skill_match"] = "no skills required" if not required else "skills not considered"
        else:
            matched = required & set(member.skills)
            skill = len(matched) / len(required)
            notes["skill_match"] = f"{len(matched)}/{len(required)} required skills"

        if criteria.consider_performance:
            performance = member.performance.efficiency
            notes["performance"] = f"historical efficiency {performance:.2f}"
        else:
            performance = 1.0
            notes["performance"] = "performance not considered"

        boost = deadline_boost(installation)
        urgency = min(1.0, PRIORITY_URGENCY[installation.priority] + boost)
        notes["urgency"] = f"{installation.priority.value} priority" + (" with close deadline" if boost else "")

        distance = outcome.travel_distance
        if not criteria.consider_location:
            geographic = 1.0
            notes["geographic"] = "location not considered"
        elif distance is None:
            geographic = 0.5
            notes["geographic"] = "location unknown"
            warnings.append(f"Travel distance for {member.id} is unknown")
        else:
            geographic = max(0.0, 1 - distance / criteria.max_travel_distance)
            notes["geographic"] = f"{distance:.1f} mi from previous location"

        if not criteria.consider_availability and not member.covers_interval(
            day, installation.start_minutes, installation.end_minutes
        ):
            warnings.append(f"{member.id} is not available at the scheduled time")

        sub_scores = SubScores(
            workload_balance=round(workload, 4),
            skill_match=round(skill, 4),
            performance=round(performance, 4),
            urgency=round(urgency, 4),
            geographic=round(geographic, 4),
        )
        values = sub_scores.as_dict()
        score = round(sum(weights[k] * values[k] for k in weights) * 100, 2)
        reasoning = [
            f"{k}: {values[k]:.2f} x weight {weights[k]:.2f} ({notes[k]})"
            for k in weights
        ]
        return CandidateScore(
            member=member,
            sub_scores=sub_scores,
            score=score,
            current_hours=round(used, 2),
            travel_distance=distance,
            reasoning=reasoning,
            warnings=warnings,
        )

    @staticmethod
    def _alternative(best: CandidateScore, candidate: CandidateScore) -> AlternativeAssignment:
        leader = best.sub_scores.as_dict()
        values = candidate.sub_scores.as_dict()
        key = max(leader, key=lambda k: abs(values[k] - leader[k]))
        diff = values[key] - leader[key]
        label = key.replace("_", " ")
        if diff == 0:
            tradeoff = "Same sub-scores, ranked lower by current workload or id"
        elif diff > 0:
            tradeoff = f"Better {label} ({values[key]:.2f} vs {leader[key]:.2f}) but lower overall score"
        else:
            tradeoff = f"Worse {label} ({values[key]:.2f} vs {leader[key]:.2f})"
        return AlternativeAssignment(
            team_member_id=candidate.member.id,
            score=candidate.score,
            sub_scores=candidate.sub_scores,
            reasoning=candidate.reasoning,
            tradeoffs=[tradeoff],
        )
