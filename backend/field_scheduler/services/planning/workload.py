"""
Расчёт загрузки участников по дням.

Всегда пересчитывается из снимка назначений, ничего не хранит.
"""
import statistics
from datetime import date
from typing import Iterable

from ...config import Settings, get_settings
from ...models.assignment import AssignmentStatus
from ...models.scheduling import WorkloadStatus
from ...schemas.assignment import Assignment
from ...schemas.conflict import Conflict
from ...schemas.installation import Installation
from ...schemas.team import TeamMember
from ...schemas.workload import DateRange, WorkloadRecord, WorkloadAggregate, WorkloadReport
from .context import PlanningContext

OPTIMAL_MIN = 60.0
OPTIMAL_MAX = 100.0


def workload_status(utilization: float) -> WorkloadStatus:
    # Полностью занятый день - уже перегруз
    if utilization >= OPTIMAL_MAX:
        return WorkloadStatus.OVERUTILIZED
    if utilization >= OPTIMAL_MIN:
        return WorkloadStatus.OPTIMAL
    return WorkloadStatus.UNDERUTILIZED


class WorkloadCalculator:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def compute(
        self,
        assignments: Iterable[Assignment],
        teams: Iterable[TeamMember],
        date_range: DateRange,
        installations: Iterable[Installation] = (),
        conflicts: Iterable[Conflict] = ()
    ) -> WorkloadReport:
        """
        Загрузка каждого активного участника на каждый день диапазона.
        Учитываются все неотменённые назначения, где участник ведущий или помощник.
        """
        # Завершённые работы тоже занимали время
        counted = [a for a in assignments if a.status != AssignmentStatus.CANCELLED]
        context = PlanningContext(installations, teams, counted, self.settings)
        open_conflicts = [c for c in conflicts if not c.is_resolved]

        by_member_day: dict[tuple[str, date], list[Assignment]] = {}
        for a in counted:
            if a.scheduled_date not in date_range:
                continue
            for member_id in a.member_ids:
                by_member_day.setdefault((member_id, a.scheduled_date), []).append(a)

        records = []
        for member in context.members:
            if not member.is_active:
                continue
            for day in date_range.days():
                jobs = sorted(by_member_day.get((member.id, day), []), key=lambda a: (a.start_minutes, a.id))
                records.append(self._record(member, day, jobs, context, open_conflicts))

        return WorkloadReport(
            date_range=date_range,
            records=records,
            aggregate=self.aggregate(records),
        )

    def _record(
        self,
        member: TeamMember,
        day: date,
        jobs: list[Assignment],
        context: PlanningContext,
        conflicts: list[Conflict]
    ) -> WorkloadRecord:
        assigned = sum(a.hours for a in jobs)
        capacity = member.capacity_hours(day)

        if capacity > 0:
            utilization = assigned / capacity * 100
        elif assigned > 0:
            # Работа в нерабочий день - вся сверх нормы
            utilization = OPTIMAL_MAX + assigned / member.shift_hours * 100
        else:
            utilization = 0.0

        travel_minutes, buffer_minutes = self._route_minutes(member, jobs, context)
        travel_hours = travel_minutes / 60
        efficiency = 0.0
        if assigned > 0:
            efficiency = member.performance.efficiency * assigned / (assigned + travel_hours)

        ids = [a.id for a in jobs]
        id_set = set(ids)
        conflict_count = sum(
            1 for c in conflicts
            if member.id in c.affected_team_members and id_set.intersection(c.affected_assignments)
        )

        return WorkloadRecord(
            team_member_id=member.id,
            date=day,
            assigned_hours=round(assigned, 2),
            capacity_hours=round(capacity, 2),
            utilization_percentage=round(utilization, 2),
            efficiency=round(efficiency, 3),
            conflict_count=conflict_count,
            status=workload_status(utilization),
            assignments=ids,
            travel_time=round(travel_hours, 2),
            buffer_time=round(buffer_minutes / 60, 2),
            overtime_hours=round(max(0.0, assigned - capacity), 2),
        )

    def _route_minutes(
        self,
        member: TeamMember,
        jobs: list[Assignment],
        context: PlanningContext
    ) -> tuple[int, int]:
        """Время в пути (от базы и между работами) и свободные зазоры между работами"""
        travel = 0
        buffer = 0
        previous = None
        location = member.home_base
        for job in jobs:
            target = context.location_of(job)
            leg = context.get_travel_time(context.travel_distance(location, target))
            travel += leg
            if previous is not None:
                buffer += max(0, job.start_minutes - previous.end_minutes - leg)
            if target is not None:
                location = target
            previous = job
        return travel, buffer

    def aggregate(self, records: list[WorkloadRecord]) -> WorkloadAggregate:
        """
        Сводка по диапазону. Дни без смены и без работ не учитываются.
        Средняя загрузка и дисперсия считаются по участникам.
        """
        counted = [r for r in records if r.capacity_hours > 0 or r.assigned_hours > 0]

        per_member: dict[str, list[float]] = {}
        for r in counted:
            per_member.setdefault(r.team_member_id, []).append(r.utilization_percentage)
        member_utilization = [statistics.mean(v) for _, v in sorted(per_member.items())]

        avg_utilization = statistics.mean(member_utilization) if member_utilization else 0.0
        variance = statistics.pvariance(member_utilization) if member_utilization else 0.0
        worked = [r.efficiency for r in counted if r.assigned_hours > 0]
        avg_efficiency = statistics.mean(worked) if worked else 0.0

        over = sum(1 for r in counted if r.status == WorkloadStatus.OVERUTILIZED)
        under = sum(1 for r in counted if r.status == WorkloadStatus.UNDERUTILIZED)
        optimal = sum(1 for r in counted if r.status == WorkloadStatus.OPTIMAL)

        recommendations = []
        threshold = self.settings.workload_variance_threshold
        if variance > threshold:
            recommendations.append(
                f"Workload variance {variance:.1f} exceeds {threshold:.0f} - consider rebalancing assignments"
            )
        if over:
            recommendations.append(
                f"{over} member-day(s) are overutilized - move jobs to underutilized team members"
            )
        if counted and avg_utilization < OPTIMAL_MIN:
            recommendations.append(
                f"Average utilization {avg_utilization:.1f}% is below {OPTIMAL_MIN:.0f}% - capacity exceeds demand"
            )

        return WorkloadAggregate(
            total_capacity=round(sum(r.capacity_hours for r in records), 2),
            total_assigned=round(sum(r.assigned_hours for r in records), 2),
            avg_utilization=round(avg_utilization, 2),
            avg_efficiency=round(avg_efficiency, 3),
            variance=round(variance, 2),
            overutilized_count=over,
            underutilized_count=under,
            optimal_count=optimal,
            recommendations=recommendations,
        )
