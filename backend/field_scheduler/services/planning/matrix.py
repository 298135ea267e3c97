"""
Матрица назначений: дата x участник.

Собирается из снимка назначений, конфликтов детектора и загрузки калькулятора.
Перенос назначений в ячейку всегда сопровождается точечной перепроверкой
конфликтов по затронутым участникам и датам.
"""
import logging
import statistics
from datetime import date
from typing import Iterable

from ...config import Settings, get_settings
from ...exceptions import NotFoundError, ValidationError
from ...models.assignment import AssignmentStatus
from ...models.scheduling import MatrixCellStatus
from ...schemas.assignment import Assignment
from ...schemas.conflict import Conflict
from ...schemas.installation import Installation
from ...schemas.matrix import AssignmentMatrix, MatrixCell, MatrixTeamMember, MatrixUpdate
from ...schemas.team import TeamMember
from ...schemas.workload import DateRange, WorkloadReport
from .conflicts import ConflictDetector, TYPE_ORDER
from .workload import WorkloadCalculator

logger = logging.getLogger(__name__)


class AssignmentMatrixBuilder:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.detector = ConflictDetector(self.settings)
        self.calculator = WorkloadCalculator(self.settings)

    def build(
        self,
        date_range: DateRange,
        teams: Iterable[TeamMember],
        assignments: Iterable[Assignment],
        conflicts: Iterable[Conflict],
        workload: WorkloadReport | None = None
    ) -> AssignmentMatrix:
        members = sorted(teams, key=lambda m: m.id)
        assignments = list(assignments)
        conflicts = list(conflicts)
        if workload is None:
            workload = self.calculator.compute(assignments, members, date_range, conflicts=conflicts)
        utilization = {(r.team_member_id, r.date): r.utilization_percentage for r in workload.records}

        # Как и в загрузке: завершённые работы остаются в ячейке
        by_cell: dict[tuple[date, str], list[Assignment]] = {}
        for a in assignments:
            if a.status == AssignmentStatus.CANCELLED or a.scheduled_date not in date_range:
                continue
            for member_id in a.member_ids:
                by_cell.setdefault((a.scheduled_date, member_id), []).append(a)

        dates = date_range.days()
        cells = []
        for day in dates:
            row = []
            for member in members:
                items = sorted(by_cell.get((day, member.id), []), key=lambda a: (a.start_minutes, a.id))
                row.append(self._cell(day, member, items, conflicts, utilization.get((member.id, day), 0.0)))
            cells.append(row)

        return AssignmentMatrix(
            dates=dates,
            team_members=[MatrixTeamMember(id=m.id, name=m.name, capacity=m.capacity) for m in members],
            cells=cells,
            conflicts=conflicts,
            optimization_score=self._optimization_score(cells),
        )

    def _cell(
        self,
        day: date,
        member: TeamMember,
        items: list[Assignment],
        conflicts: list[Conflict],
        workload_score: float
    ) -> MatrixCell:
        ids = {a.id for a in items}
        touching = [
            c for c in conflicts
            if c.date == day and member.id in c.affected_team_members and ids.intersection(c.affected_assignments)
        ]
        count = len(items)
        if member.capacity > 0:
            utilization = count / member.capacity
        else:
            utilization = float(count)

        if any(not c.is_resolved for c in touching):
            status = MatrixCellStatus.CONFLICT
        elif count > member.capacity:
            status = MatrixCellStatus.OVERBOOKED
        elif count:
            status = MatrixCellStatus.ASSIGNED
        else:
            status = MatrixCellStatus.AVAILABLE

        return MatrixCell(
            date=day,
            team_member_id=member.id,
            assignments=items,
            capacity=member.capacity,
            utilization=round(utilization, 2),
            conflicts=[c.id for c in touching],
            status=status,
            is_working=member.is_active and member.is_working_on(day),
            workload_score=workload_score,
        )

    @staticmethod
    def _optimization_score(cells: list[list[MatrixCell]]) -> float:
        """
        0-100: доля рабочих ячеек без конфликтов и перегруза,
        умноженная на равномерность загрузки (100 - стандартное отклонение).
        """
        working = [cell for row in cells for cell in row if cell.is_working or cell.assignments]
        if not working:
            return 0.0
        healthy = sum(
            1 for cell in working
            if cell.status not in (MatrixCellStatus.CONFLICT, MatrixCellStatus.OVERBOOKED)
        )
        spread = statistics.pstdev([cell.workload_score for cell in working])
        balance = max(0.0, 1 - spread / 100)
        return round(100 * healthy / len(working) * balance, 2)

    def update_cell(
        self,
        matrix: AssignmentMatrix,
        day: date,
        team_member_id: str,
        assignment_ids: list[str],
        assignments: Iterable[Assignment],
        teams: Iterable[TeamMember],
        installations: Iterable[Installation]
    ) -> MatrixUpdate:
        """
        Перенести назначения в ячейку (day, team_member_id).
        Ничего не сохраняет: возвращает пересобранную матрицу, перенесённые копии
        и конфликты, которых не было до переноса.
        """
        teams = list(teams)
        installations = list(installations)
        if day not in matrix.dates:
            raise ValidationError(f"Date {day.isoformat()} is outside the matrix", field="date")
        if not any(m.id == team_member_id for m in matrix.team_members):
            raise ValidationError(f"Team member {team_member_id} is not in the matrix", field="team_member_id")
        if not assignment_ids:
            raise ValidationError("No assignments to move", field="assignment_ids")

        current = {a.id: a for a in assignments}
        moved = []
        scope_members = {team_member_id}
        scope_dates = {day}
        for aid in assignment_ids:
            original = current.get(aid)
            if original is None:
                raise NotFoundError("Assignment", aid)
            if not original.is_active:
                raise ValidationError(f"Assignment {aid} is {original.status.value} and cannot be moved", field="assignment_ids")
            scope_members.update(original.member_ids)
            scope_dates.add(original.scheduled_date)

            assistant_id = None if original.assistant_id == team_member_id else original.assistant_id
            moved.append(original.model_copy(
                update={"lead_id": team_member_id, "assistant_id": assistant_id, "scheduled_date": day},
                deep=True,
            ))

        updated = dict(current)
        for a in moved:
            updated[a.id] = a

        before = self.detector.detect(
            current.values(), teams, installations, member_ids=scope_members, dates=scope_dates
        )
        after = self.detector.detect(
            updated.values(), teams, installations, member_ids=scope_members, dates=scope_dates
        )
        before_ids = {c.id for c in before}
        new_conflicts = [c for c in after if c.id not in before_ids and not c.is_resolved]

        def in_scope(c: Conflict) -> bool:
            return c.date in scope_dates and bool(scope_members.intersection(c.affected_team_members))

        conflicts = [c for c in matrix.conflicts if not in_scope(c)] + after
        conflicts.sort(key=lambda c: (c.date or date.min, TYPE_ORDER[c.type], c.id))

        date_range = DateRange(start=matrix.dates[0], end=matrix.dates[-1])
        rebuilt = self.build(date_range, teams, updated.values(), conflicts)

        logger.debug(
            f"Matrix cell {day.isoformat()}/{team_member_id}: moved {len(moved)}, "
            f"{len(new_conflicts)} new conflicts"
        )
        return MatrixUpdate(matrix=rebuilt, moved_assignments=moved, new_conflicts=new_conflicts)
