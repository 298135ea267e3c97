"""
Детектор конфликтов назначений.

Чистая функция над снимком: назначения + участники + монтажи -> список конфликтов.
Конфликты не хранятся - пересчитываются при каждом вызове. ID конфликта
детерминирован (тип + затронутые назначения + область), поэтому отметка о
разрешении, сохранённая в metadata назначения, находит "свой" конфликт
при следующем проходе.
"""
import logging
import uuid
from datetime import date, datetime
from typing import Iterable

from ...config import Settings, get_settings
from ...models.scheduling import ConflictType, ConflictSeverity
from ...schemas.assignment import Assignment
from ...schemas.conflict import Conflict
from ...schemas.installation import Installation
from ...schemas.team import TeamMember
from .context import PlanningContext
from .resolutions import ResolutionPlanner

logger = logging.getLogger(__name__)

CONFLICT_NAMESPACE = uuid.UUID("6f1c3a52-9d4e-4c1b-8a57-2b0e4f7d9c11")

SEVERITY_IMPACT = {
    ConflictSeverity.LOW: 2.0,
    ConflictSeverity.MEDIUM: 4.0,
    ConflictSeverity.HIGH: 6.0,
    ConflictSeverity.CRITICAL: 8.0,
}

TYPE_ORDER = {
    ConflictType.TIME_OVERLAP: 0,
    ConflictType.CAPACITY_EXCEEDED: 1,
    ConflictType.SKILL_MISMATCH: 2,
    ConflictType.AVAILABILITY: 3,
    ConflictType.TRAVEL_DISTANCE: 4,
}


def conflict_id(conflict_type: ConflictType, scope: str, assignment_ids: Iterable[str]) -> str:
    key = f"{conflict_type.value}|{scope}|{'+'.join(sorted(assignment_ids))}"
    return str(uuid.uuid5(CONFLICT_NAMESPACE, key))


class ConflictDetector:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.planner = ResolutionPlanner(self.settings)

    def detect(
        self,
        assignments: Iterable[Assignment],
        teams: Iterable[TeamMember],
        installations: Iterable[Installation],
        as_of: datetime | None = None,
        max_travel_distance: float | None = None,
        member_ids: Iterable[str] | None = None,
        dates: Iterable[date] | None = None
    ) -> list[Conflict]:
        """
        Найти конфликты среди активных назначений.

        Args:
            as_of: момент обнаружения (detected_at)
            max_travel_distance: порог для travel_distance, мили
            member_ids, dates: ограничить проверку участниками / датами
                (для точечной перепроверки ячейки матрицы)
        """
        context = PlanningContext(installations, teams, assignments, self.settings)
        return self.detect_in_context(context, as_of, max_travel_distance, member_ids, dates)

    def detect_in_context(
        self,
        context: PlanningContext,
        as_of: datetime | None = None,
        max_travel_distance: float | None = None,
        member_ids: Iterable[str] | None = None,
        dates: Iterable[date] | None = None
    ) -> list[Conflict]:
        as_of = as_of or datetime.utcnow()
        max_distance = max_travel_distance or self.settings.max_travel_distance_miles
        scope_members = set(member_ids) if member_ids is not None else None
        scope_dates = set(dates) if dates is not None else None

        def in_scope(member_id: str, day: date) -> bool:
            if scope_members is not None and member_id not in scope_members:
                return False
            if scope_dates is not None and day not in scope_dates:
                return False
            return True

        found: dict[str, Conflict] = {}

        # Попарные проверки только внутри корзин (участник, дата)
        for (member_id, day), bucket in sorted(context.buckets().items()):
            if not in_scope(member_id, day):
                continue
            member = context.get_member(member_id)
            self._check_overlaps(member_id, member, day, bucket, as_of, found)
            if member is not None:
                self._check_capacity(member, day, bucket, as_of, found)
            self._check_travel(context, member_id, member, day, bucket, max_distance, as_of, found)

        for assignment in sorted(context.active_assignments(), key=lambda a: a.id):
            if not any(in_scope(m, assignment.scheduled_date) for m in assignment.member_ids):
                continue
            self._check_skills(context, assignment, as_of, found)
            self._check_availability(context, assignment, as_of, found)

        conflicts = sorted(
            found.values(),
            key=lambda c: (c.date or date.min, TYPE_ORDER[c.type], c.id)
        )
        by_id = {a.id: a for a in context.assignments}
        for conflict in conflicts:
            conflict.impact_score = self._impact(conflict)
            conflict.suggested_resolutions = self.planner.suggest(conflict, context)
            conflict.auto_resolvable = any(r.impact_score <= 3 for r in conflict.suggested_resolutions)
            self._apply_resolution_state(conflict, by_id)

        logger.debug(f"Detected {len(conflicts)} conflicts across {len(by_id)} assignments")
        return conflicts

    # ================= RULES =================

    def _check_overlaps(
        self,
        member_id: str,
        member: TeamMember | None,
        day: date,
        bucket: list[Assignment],
        as_of: datetime,
        found: dict[str, Conflict]
    ):
        name = member.name if member and member.name else member_id
        for i, first in enumerate(bucket):
            for second in bucket[i + 1:]:
                # Корзина отсортирована по началу - дальше пересечений нет
                if second.start_minutes >= first.end_minutes:
                    break
                overlap = min(first.end_minutes, second.end_minutes) - second.start_minutes
                shorter = min(first.estimated_duration, second.estimated_duration)
                severity = ConflictSeverity.HIGH if overlap > shorter / 2 else ConflictSeverity.MEDIUM

                cid = conflict_id(ConflictType.TIME_OVERLAP, "", [first.id, second.id])
                existing = found.get(cid)
                if existing is not None:
                    # Пара делит и ведущего, и помощника
                    if member_id not in existing.affected_team_members:
                        existing.affected_team_members.append(member_id)
                        existing.affected_team_members.sort()
                    continue

                found[cid] = Conflict(
                    id=cid,
                    type=ConflictType.TIME_OVERLAP,
                    severity=severity,
                    affected_assignments=[first.id, second.id],
                    affected_team_members=[member_id],
                    date=day,
                    description=(
                        f"{name} is double-booked on {day.isoformat()}: assignments "
                        f"{first.id} and {second.id} overlap by {overlap} min"
                    ),
                    detected_at=as_of,
                    impact_score=0,
                )

    def _check_capacity(
        self,
        member: TeamMember,
        day: date,
        bucket: list[Assignment],
        as_of: datetime,
        found: dict[str, Conflict]
    ):
        count = len(bucket)
        if count <= member.capacity:
            return

        if member.capacity == 0:
            severity = ConflictSeverity.CRITICAL
        else:
            excess = (count - member.capacity) / member.capacity
            if excess > 0.5:
                severity = ConflictSeverity.CRITICAL
            elif excess > 0.25:
                severity = ConflictSeverity.HIGH
            else:
                severity = ConflictSeverity.MEDIUM

        ids = [a.id for a in bucket]
        cid = conflict_id(ConflictType.CAPACITY_EXCEEDED, f"{member.id}|{day.isoformat()}", ids)
        found[cid] = Conflict(
            id=cid,
            type=ConflictType.CAPACITY_EXCEEDED,
            severity=severity,
            affected_assignments=ids,
            affected_team_members=[member.id],
            date=day,
            description=(
                f"{member.name or member.id} has {count} jobs on {day.isoformat()} "
                f"with a daily capacity of {member.capacity}"
            ),
            detected_at=as_of,
            impact_score=0,
        )

    def _check_travel(
        self,
        context: PlanningContext,
        member_id: str,
        member: TeamMember | None,
        day: date,
        bucket: list[Assignment],
        max_distance: float,
        as_of: datetime,
        found: dict[str, Conflict]
    ):
        name = member.name if member and member.name else member_id
        for first, second in zip(bucket, bucket[1:]):
            distance = context.travel_distance(context.location_of(first), context.location_of(second))
            if distance is None or distance <= max_distance:
                continue
            minutes = context.get_travel_time(distance)
            cid = conflict_id(ConflictType.TRAVEL_DISTANCE, member_id, [first.id, second.id])
            found[cid] = Conflict(
                id=cid,
                type=ConflictType.TRAVEL_DISTANCE,
                severity=ConflictSeverity.LOW,
                affected_assignments=[first.id, second.id],
                affected_team_members=[member_id],
                date=day,
                description=(
                    f"{name} must travel {distance:.1f} mi (~{minutes} min) between "
                    f"{first.id} and {second.id}, limit is {max_distance:.1f} mi"
                ),
                detected_at=as_of,
                impact_score=0,
            )

    def _check_skills(
        self,
        context: PlanningContext,
        assignment: Assignment,
        as_of: datetime,
        found: dict[str, Conflict]
    ):
        installation = context.get_installation(assignment.installation_id)
        if installation is None or not installation.required_skills:
            return

        covered: set[str] = set()
        for member_id in assignment.member_ids:
            member = context.get_member(member_id)
            if member is not None:
                covered.update(member.skills)

        required = set(installation.required_skills)
        missing = sorted(required - covered)
        if not missing:
            return

        severity = ConflictSeverity.HIGH if len(missing) == len(required) else ConflictSeverity.MEDIUM
        cid = conflict_id(ConflictType.SKILL_MISMATCH, "", [assignment.id])
        found[cid] = Conflict(
            id=cid,
            type=ConflictType.SKILL_MISMATCH,
            severity=severity,
            affected_assignments=[assignment.id],
            affected_team_members=list(assignment.member_ids),
            date=assignment.scheduled_date,
            description=f"Assignment {assignment.id} is missing required skills: {', '.join(missing)}",
            detected_at=as_of,
            impact_score=0,
        )

    def _check_availability(
        self,
        context: PlanningContext,
        assignment: Assignment,
        as_of: datetime,
        found: dict[str, Conflict]
    ):
        day = assignment.scheduled_date
        installation = context.get_installation(assignment.installation_id)
        fixed_deadline = (
            installation is not None
            and installation.deadline is not None
            and installation.deadline <= day
        )

        for member_id in assignment.member_ids:
            member = context.get_member(member_id)
            if member is None:
                problem = "is not on the roster"
            elif not member.is_active:
                problem = "is inactive"
            elif not member.is_working_on(day):
                problem = f"does not work on {day.isoformat()}"
            elif not member.covers_interval(day, assignment.start_minutes, assignment.end_minutes):
                problem = (
                    f"works {member.availability.work_start.strftime('%H:%M')}-"
                    f"{member.availability.work_end.strftime('%H:%M')}, job is outside working hours"
                )
            else:
                continue

            name = member.name if member and member.name else member_id
            cid = conflict_id(ConflictType.AVAILABILITY, member_id, [assignment.id])
            found[cid] = Conflict(
                id=cid,
                type=ConflictType.AVAILABILITY,
                severity=ConflictSeverity.CRITICAL if fixed_deadline else ConflictSeverity.HIGH,
                affected_assignments=[assignment.id],
                affected_team_members=[member_id],
                date=day,
                description=f"{name} {problem} (assignment {assignment.id})",
                detected_at=as_of,
                impact_score=0,
            )

    # ================= HELPERS =================

    @staticmethod
    def _impact(conflict: Conflict) -> float:
        extra = min(2.0, 0.5 * (len(conflict.affected_assignments) - 1))
        return min(10.0, SEVERITY_IMPACT[conflict.severity] + extra)

    @staticmethod
    def _apply_resolution_state(conflict: Conflict, by_id: dict[str, Assignment]):
        """Конфликт считается разрешённым, если отметка есть у всех затронутых назначений"""
        infos = []
        for aid in conflict.affected_assignments:
            assignment = by_id.get(aid)
            info = assignment.metadata.resolved_conflicts.get(conflict.id) if assignment else None
            if info is None:
                return
            infos.append(info)

        latest = max(infos, key=lambda i: i.resolved_at)
        conflict.resolved_at = latest.resolved_at
        conflict.resolved_by = latest.resolved_by
        conflict.resolution_method = latest.method
