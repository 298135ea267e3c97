"""
Генерация вариантов разрешения конфликтов.

Для каждого конфликта перебираются кандидаты (передать другому участнику,
сдвинуть время, перераспределить роли ведущий / помощник, эскалация),
каждому считается impact_score (0-10, меньше - лучше):
взвешенное число затронутых назначений + вносимый перекос загрузки.
Возвращаются 3 лучших по (impact_score, estimated_effort).
"""
import uuid
from datetime import date, time, timedelta
from typing import TYPE_CHECKING

from ...config import Settings
from ...models.scheduling import ConflictType, ConflictResolutionMethod
from ...schemas.assignment import Assignment
from ...schemas.conflict import ConflictResolution, AssignmentChange
from ...schemas.team import TeamMember
from .context import PlanningContext

if TYPE_CHECKING:
    from ...schemas.conflict import Conflict

RESOLUTION_NAMESPACE = uuid.UUID("0b8e2c47-5a31-4f6d-9e02-7c4d1a6b3f85")

MAX_SUGGESTIONS = 3
ALTERNATES_PER_ASSIGNMENT = 2

# Базовые оценки
REASSIGN_BASE = 1.0
SPLIT_BASE = 1.5
SHIFT_BASE = 2.0
REMOVE_ASSISTANT_IMPACT = 2.5
SAME_DAY_HOURS_SHIFT_IMPACT = 3.5
OTHER_DAY_BASE = 4.0
ESCALATE_IMPACT = 8.0


def _minutes_to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


class ResolutionPlanner:
    def __init__(self, settings: Settings):
        self.settings = settings

    def suggest(self, conflict: "Conflict", context: PlanningContext) -> list[ConflictResolution]:
        by_id = {a.id: a for a in context.active_assignments()}
        affected = [by_id[aid] for aid in conflict.affected_assignments if aid in by_id]

        options: list[ConflictResolution] = []
        if conflict.type == ConflictType.TIME_OVERLAP:
            options += self._overlap_options(conflict, affected, context)
        elif conflict.type == ConflictType.CAPACITY_EXCEEDED:
            options += self._capacity_options(conflict, affected, context)
        elif conflict.type == ConflictType.SKILL_MISMATCH:
            options += self._skill_options(conflict, affected, context)
        elif conflict.type == ConflictType.TRAVEL_DISTANCE:
            options += self._travel_options(conflict, affected, context)
        elif conflict.type == ConflictType.AVAILABILITY:
            options += self._availability_options(conflict, affected, context)

        options.append(self._make(
            conflict,
            ConflictResolutionMethod.ESCALATE,
            "Escalate to a dispatcher for manual review",
            ESCALATE_IMPACT,
            30,
            [a.id for a in affected],
        ))

        options.sort(key=lambda r: (r.impact_score, r.estimated_effort, r.method.value, r.description))
        return options[:MAX_SUGGESTIONS]

    # ================= PER TYPE =================

    def _overlap_options(self, conflict, affected, context):
        options = []
        if len(affected) < 2:
            return options
        first, second = sorted(affected, key=lambda a: (a.start_minutes, a.id))

        for member_id in conflict.affected_team_members:
            for target in (second, first):
                options += self._reassign_options(conflict, target, member_id, context)
                if target.assistant_id == member_id:
                    options.append(self._make(
                        conflict,
                        ConflictResolutionMethod.SPLIT_ASSIGNMENT,
                        f"Remove {self._name(context, member_id)} as assistant from {target.id}",
                        REMOVE_ASSISTANT_IMPACT,
                        5,
                        [target.id],
                        [AssignmentChange(assignment_id=target.id, clear_assistant=True)],
                    ))

        buffer = self.settings.default_buffer_minutes
        # Сдвинуть второе назначение на после первого
        options += self._shift_option(conflict, second, first.end_minutes + buffer, context, exclude={first.id})
        # Или первое - до начала второго
        options += self._shift_option(
            conflict, first, second.start_minutes - buffer - first.estimated_duration, context, exclude={second.id}
        )
        return options

    def _capacity_options(self, conflict, affected, context):
        options = []
        member_id = conflict.affected_team_members[0]
        # Переносим самые поздние работы дня
        for target in sorted(affected, key=lambda a: (-a.start_minutes, a.id))[:2]:
            options += self._reassign_options(conflict, target, member_id, context)
            if target.assistant_id == member_id:
                options.append(self._make(
                    conflict,
                    ConflictResolutionMethod.SPLIT_ASSIGNMENT,
                    f"Remove {self._name(context, member_id)} as assistant from {target.id}",
                    REMOVE_ASSISTANT_IMPACT,
                    5,
                    [target.id],
                    [AssignmentChange(assignment_id=target.id, clear_assistant=True)],
                ))
            options += self._other_day_option(conflict, target, context)
        return options

    def _skill_options(self, conflict, affected, context):
        options = []
        if not affected:
            return options
        target = affected[0]
        installation = context.get_installation(target.installation_id)
        if installation is None:
            return options
        required = set(installation.required_skills)

        options += self._reassign_options(conflict, target, target.lead_id, context)

        if target.assistant_id is None:
            lead = context.get_member(target.lead_id)
            lead_skills = set(lead.skills) if lead else set()
            missing = required - lead_skills
            helpers = []
            for member in context.members:
                if member.id == target.lead_id or not missing <= set(member.skills):
                    continue
                util = self._fits(member, target, target.scheduled_date, target.start_minutes, context)
                if util is not None:
                    helpers.append((util, member))
            helpers.sort(key=lambda x: (x[0], x[1].id))
            for util, member in helpers[:ALTERNATES_PER_ASSIGNMENT]:
                options.append(self._make(
                    conflict,
                    ConflictResolutionMethod.SPLIT_ASSIGNMENT,
                    f"Add {member.name or member.id} as assistant on {target.id} to cover {', '.join(sorted(missing))}",
                    SPLIT_BASE + 1.5 * util,
                    10,
                    [target.id],
                    [AssignmentChange(assignment_id=target.id, assistant_id=member.id)],
                ))
        return options

    def _travel_options(self, conflict, affected, context):
        options = []
        if len(affected) < 2:
            return options
        member_id = conflict.affected_team_members[0]
        later = max(affected, key=lambda a: (a.start_minutes, a.id))
        options += self._reassign_options(conflict, later, member_id, context)
        options += self._other_day_option(conflict, later, context)
        return options

    def _availability_options(self, conflict, affected, context):
        options = []
        if not affected:
            return options
        target = affected[0]
        member_id = conflict.affected_team_members[0]
        options += self._reassign_options(conflict, target, member_id, context)

        member = context.get_member(member_id)
        if member is not None and member.is_active and member.is_working_on(target.scheduled_date):
            # Работает в этот день, но не в эти часы - сдвигаем внутрь смены
            start = max(member.availability.start_minutes,
                        min(target.start_minutes, member.availability.end_minutes - target.estimated_duration))
            options += self._shift_option(
                conflict, target, start, context, exclude=set(), base=SAME_DAY_HOURS_SHIFT_IMPACT
            )
        elif member is not None and member.is_active:
            options += self._other_day_option(conflict, target, context)
        return options

    # ================= BUILDING BLOCKS =================

    def _reassign_options(self, conflict, target: Assignment, member_id: str, context: PlanningContext):
        """Передать роль member_id в назначении target другому участнику"""
        if member_id not in target.member_ids:
            return []
        installation = context.get_installation(target.installation_id)
        required = set(installation.required_skills) if installation else set()
        is_lead = member_id == target.lead_id
        partner_id = target.assistant_id if is_lead else target.lead_id
        partner = context.get_member(partner_id) if partner_id else None
        partner_skills = set(partner.skills) if partner else set()

        candidates = []
        for member in context.members:
            if member.id in target.member_ids:
                continue
            if not required <= set(member.skills) | partner_skills:
                continue
            util = self._fits(member, target, target.scheduled_date, target.start_minutes, context)
            if util is not None:
                candidates.append((util, member))

        candidates.sort(key=lambda x: (x[0], x[1].id))
        options = []
        for util, member in candidates[:ALTERNATES_PER_ASSIGNMENT]:
            change = (
                AssignmentChange(assignment_id=target.id, lead_id=member.id)
                if is_lead else
                AssignmentChange(assignment_id=target.id, assistant_id=member.id)
            )
            options.append(self._make(
                conflict,
                ConflictResolutionMethod.AUTO_REASSIGN,
                f"Reassign {target.id} from {self._name(context, member_id)} to {member.name or member.id}",
                REASSIGN_BASE + 2 * util,
                15,
                [target.id],
                [change],
            ))
        return options

    def _shift_option(
        self,
        conflict,
        target: Assignment,
        new_start: int,
        context: PlanningContext,
        exclude: set[str],
        base: float = SHIFT_BASE
    ):
        """Сдвиг времени в тот же день. Без задетых назначений - в пределах буфера."""
        new_end = new_start + target.estimated_duration
        if new_start < 0 or new_end > 24 * 60 or new_start == target.start_minutes:
            return []

        perturbed: set[str] = set()
        outside_hours = False
        for member_id in target.member_ids:
            member = context.get_member(member_id)
            if member is None or not member.covers_interval(target.scheduled_date, new_start, new_end):
                outside_hours = True
            for other in context.get_member_assignments(member_id, target.scheduled_date):
                if other.id == target.id or other.id in exclude:
                    continue
                if other.start_minutes < new_end and new_start < other.end_minutes:
                    perturbed.add(other.id)

        impact = min(10.0, base + 2 * len(perturbed) + (3 if outside_hours else 0))
        new_time = _minutes_to_time(new_start)
        return [self._make(
            conflict,
            ConflictResolutionMethod.RESCHEDULE,
            f"Move {target.id} to {new_time.strftime('%H:%M')} on {target.scheduled_date.isoformat()}",
            impact,
            10,
            [target.id, *sorted(perturbed)],
            [AssignmentChange(assignment_id=target.id, scheduled_time=new_time)],
        )]

    def _other_day_option(self, conflict, target: Assignment, context: PlanningContext):
        """Перенос на ближайший день, где все участники свободны в то же время"""
        for offset in range(1, self.settings.resolution_search_days + 1):
            day = target.scheduled_date + timedelta(days=offset)
            members = [context.get_member(m) for m in target.member_ids]
            if any(m is None for m in members):
                return []
            if all(self._fits(m, target, day, target.start_minutes, context) is not None for m in members):
                return [self._make(
                    conflict,
                    ConflictResolutionMethod.RESCHEDULE,
                    f"Reschedule {target.id} to {day.isoformat()}",
                    min(10.0, OTHER_DAY_BASE + 0.5 * (offset - 1)),
                    20,
                    [target.id],
                    [AssignmentChange(assignment_id=target.id, scheduled_date=day)],
                )]
        return []

    def _fits(
        self,
        member: TeamMember,
        target: Assignment,
        day: date,
        start: int,
        context: PlanningContext
    ) -> float | None:
        """
        Может ли участник взять target в (day, start).
        Возвращает загрузку после назначения (0-1) или None.
        """
        end = start + target.estimated_duration
        if not member.is_active or not member.covers_interval(day, start, end):
            return None
        existing = [a for a in context.get_member_assignments(member.id, day) if a.id != target.id]
        if len(existing) >= member.capacity:
            return None
        if any(a.start_minutes < end and start < a.end_minutes for a in existing):
            return None
        used = sum(a.hours for a in existing)
        available = member.capacity_hours(day)
        return min(1.0, (used + target.hours) / available) if available > 0 else 1.0

    def _make(
        self,
        conflict,
        method: ConflictResolutionMethod,
        description: str,
        impact: float,
        effort: int,
        affected: list[str],
        changes: list[AssignmentChange] | None = None
    ) -> ConflictResolution:
        rid = uuid.uuid5(RESOLUTION_NAMESPACE, f"{conflict.id}|{method.value}|{description}")
        return ConflictResolution(
            id=str(rid),
            method=method,
            description=description,
            impact_score=round(impact, 2),
            estimated_effort=effort,
            affected_assignments=affected,
            changes=changes or [],
        )

    @staticmethod
    def _name(context: PlanningContext, member_id: str) -> str:
        member = context.get_member(member_id)
        return member.name if member and member.name else member_id
