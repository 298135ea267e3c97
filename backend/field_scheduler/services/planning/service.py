import logging
from datetime import date, timedelta

from ...config import Settings, get_settings
from ...exceptions import ValidationError, NotFoundError, ConflictBlockedError
from ...models.assignment import AssignmentStatus
from ...models.scheduling import ConflictResolutionMethod
from ...schemas.assignment import (
    Assignment, AssignmentCreate, AssignmentUpdate, AssignmentDelete, AssignmentHistoryEntry
)
from ...schemas.conflict import Conflict, ResolveConflictRequest
from ...schemas.installation import Installation
from ...schemas.matrix import AssignmentMatrix, MatrixCellUpdateRequest, MatrixUpdate
from ...schemas.planning import (
    AutoAssignmentCriteria, AssignmentResult, BulkAssignmentOptions, BatchResult
)
from ...schemas.team import TeamMember
from ...schemas.workload import DateRange, WorkloadReport
from ..assignment_repository import AssignmentRepository
from ..providers import RosterProvider, JobProvider
from .bulk import BulkAssignmentProcessor
from .conflicts import ConflictDetector
from .context import PlanningContext
from .matrix import AssignmentMatrixBuilder
from .optimizer import AutoAssignmentOptimizer
from .workload import WorkloadCalculator

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 7

# Методы, которые не меняют назначения и не требуют выбранного варианта
MARK_ONLY_METHODS = (
    ConflictResolutionMethod.OVERRIDE,
    ConflictResolutionMethod.ESCALATE,
    ConflictResolutionMethod.MANUAL_REASSIGN,
)


def make_date_range(start: date | None = None, end: date | None = None) -> DateRange:
    """Диапазон дат; по умолчанию неделя от start (или сегодня)"""
    start = start or date.today()
    end = end or start + timedelta(days=DEFAULT_RANGE_DAYS - 1)
    if end < start:
        raise ValidationError(
            f"Date range end {end.isoformat()} precedes start {start.isoformat()}", field="end"
        )
    return DateRange(start=start, end=end)


class PlanningService:
    """
    Фасад движка назначений.
    Каждая операция берёт свежий снимок (команда, монтажи, назначения)
    и прогоняет по нему чистые алгоритмы. Изменения идут только через репозиторий.
    """
    def __init__(
        self,
        repository: AssignmentRepository,
        roster: RosterProvider,
        jobs: JobProvider,
        settings: Settings | None = None
    ):
        self.repository = repository
        self.roster = roster
        self.jobs = jobs
        self.settings = settings or get_settings()
        self.detector = ConflictDetector(self.settings)
        self.calculator = WorkloadCalculator(self.settings)
        self.optimizer = AutoAssignmentOptimizer(self.settings)
        self.matrix_builder = AssignmentMatrixBuilder(self.settings)
        self.bulk = BulkAssignmentProcessor(repository, roster, jobs, self.settings)

    # ================= PUBLIC API =================

    async def propose_assignment(
        self,
        installation_id: str,
        criteria: AutoAssignmentCriteria | None = None
    ) -> AssignmentResult:
        """Предложить участника (без сохранения)"""
        criteria = criteria or AutoAssignmentCriteria()
        context = await self._context()
        installation = self._installation(context, installation_id)
        return self.optimizer.propose(installation, criteria, context)

    async def auto_assign(
        self,
        installation_id: str,
        criteria: AutoAssignmentCriteria | None = None,
        performed_by: str | None = None,
        override_conflicts: bool = False
    ) -> AssignmentResult:
        """Предложить и сразу сохранить назначение"""
        criteria = criteria or AutoAssignmentCriteria()
        context = await self._context()
        installation = self._installation(context, installation_id)
        existing = context.active_assignment_for(installation_id)
        if existing is not None:
            raise ValidationError(
                f"Installation {installation_id} is already assigned ({existing.id})",
                field="installation_id",
            )

        result, _ = self.bulk.propose_checked(
            installation, criteria, BulkAssignmentOptions(override_conflicts=override_conflicts), context
        )
        await self.bulk.commit(installation, result, None, performed_by or self.settings.default_actor)
        return result

    async def run_bulk_assignment(
        self,
        installation_ids: list[str],
        criteria: AutoAssignmentCriteria | None = None,
        options: BulkAssignmentOptions | None = None,
        performed_by: str | None = None
    ) -> BatchResult:
        return await self.bulk.run(
            installation_ids,
            criteria or AutoAssignmentCriteria(),
            options or BulkAssignmentOptions(),
            performed_by,
        )

    async def detect_conflicts(
        self,
        date_range: DateRange | None = None,
        include_resolved: bool = True
    ) -> list[Conflict]:
        context = await self._context()
        dates = date_range.days() if date_range else None
        conflicts = self.detector.detect_in_context(context, dates=dates)
        if not include_resolved:
            conflicts = [c for c in conflicts if not c.is_resolved]
        return conflicts

    async def get_conflict(self, conflict_id: str) -> Conflict:
        for conflict in await self.detect_conflicts():
            if conflict.id == conflict_id:
                return conflict
        raise NotFoundError("Conflict", conflict_id)

    async def resolve_conflict(
        self,
        conflict_id: str,
        request: ResolveConflictRequest,
        performed_by: str | None = None
    ) -> Conflict:
        """
        Разрешить конфликт: применить выбранный вариант (его changes)
        и отметить конфликт у каждого затронутого назначения.
        """
        actor = performed_by or self.settings.default_actor
        conflict = await self.get_conflict(conflict_id)
        if conflict.is_resolved:
            raise ValidationError(f"Conflict {conflict_id} is already resolved")

        if request.resolution_id:
            resolution = next((r for r in conflict.suggested_resolutions if r.id == request.resolution_id), None)
            if resolution is None:
                raise NotFoundError("Resolution", request.resolution_id)
            method = resolution.method
            for change in resolution.changes:
                await self.repository.update(
                    change.assignment_id,
                    AssignmentUpdate(
                        lead_id=change.lead_id,
                        assistant_id=change.assistant_id,
                        clear_assistant=change.clear_assistant,
                        scheduled_date=change.scheduled_date,
                        scheduled_time=change.scheduled_time,
                        reason=f"Conflict resolution: {resolution.description}",
                    ),
                    performed_by=actor,
                )
        elif request.method in MARK_ONLY_METHODS:
            method = request.method
        elif request.method is not None:
            raise ValidationError(
                f"Method {request.method.value} requires one of the suggested resolutions",
                field="resolution_id",
            )
        else:
            raise ValidationError("Either resolution_id or method is required", field="resolution_id")

        resolved_at = None
        for assignment_id in conflict.affected_assignments:
            marked = await self.repository.record_conflict_resolution(
                assignment_id, conflict.id, method, performed_by=actor, notes=request.notes
            )
            resolved_at = marked.metadata.resolved_conflicts[conflict.id].resolved_at

        logger.info(f"Conflict {conflict.id} ({conflict.type.value}) resolved via {method.value} by {actor}")
        return conflict.model_copy(update={
            "resolved_at": resolved_at,
            "resolved_by": actor,
            "resolution_method": method,
        })

    async def compute_workload(self, date_range: DateRange) -> WorkloadReport:
        context = await self._context()
        conflicts = self.detector.detect_in_context(context, dates=date_range.days())
        return self.calculator.compute(
            context.assignments, context.members, date_range, context.installations.values(), conflicts
        )

    async def build_matrix(self, date_range: DateRange) -> AssignmentMatrix:
        context = await self._context()
        conflicts = self.detector.detect_in_context(context, dates=date_range.days())
        workload = self.calculator.compute(
            context.assignments, context.members, date_range, context.installations.values(), conflicts
        )
        return self.matrix_builder.build(date_range, context.members, context.assignments, conflicts, workload)

    async def update_matrix_cell(self, request: MatrixCellUpdateRequest) -> MatrixUpdate:
        """
        Перенос назначений в ячейку матрицы.
        Сохраняется только если перенос не вносит конфликтов (или allow_conflicts).
        """
        date_range = make_date_range(request.start, request.end)
        context = await self._context()
        self._member(context, request.team_member_id)

        conflicts = self.detector.detect_in_context(context, dates=date_range.days())
        matrix = self.matrix_builder.build(date_range, context.members, context.assignments, conflicts)
        update = self.matrix_builder.update_cell(
            matrix,
            request.date,
            request.team_member_id,
            request.assignment_ids,
            context.assignments,
            context.members,
            context.installations.values(),
        )
        if update.new_conflicts and not request.allow_conflicts:
            raise ConflictBlockedError(
                f"Moving {len(request.assignment_ids)} assignment(s) to {request.team_member_id} "
                f"on {request.date.isoformat()} creates {len(update.new_conflicts)} conflict(s)",
                update.new_conflicts,
            )

        saved = []
        for moved in update.moved_assignments:
            original = await self.repository.get(moved.id)
            changes = AssignmentUpdate(
                lead_id=moved.lead_id if moved.lead_id != original.lead_id else None,
                clear_assistant=original.assistant_id is not None and moved.assistant_id is None,
                scheduled_date=moved.scheduled_date if moved.scheduled_date != original.scheduled_date else None,
                reason=request.reason,
            )
            if changes.lead_id is None and not changes.clear_assistant and changes.scheduled_date is None:
                # Уже в этой ячейке
                saved.append(original)
                continue
            saved.append(await self.repository.update(moved.id, changes, performed_by=request.performed_by))
        update.moved_assignments = saved
        return update

    # ================= ASSIGNMENT CRUD =================

    async def create_assignment(self, data: AssignmentCreate, performed_by: str | None = None) -> Assignment:
        context = await self._context()
        installation = context.get_installation(data.installation_id)
        if installation is None:
            raise ValidationError(f"Unknown installation {data.installation_id}", field="installation_id")
        self._check_members(context, data.lead_id, data.assistant_id)
        return await self.repository.create(data, installation, performed_by)

    async def update_assignment(
        self,
        assignment_id: str,
        data: AssignmentUpdate,
        performed_by: str | None = None
    ) -> Assignment:
        if data.lead_id is not None or data.assistant_id is not None:
            context = await self._context()
            self._check_members(context, data.lead_id, data.assistant_id)
        return await self.repository.update(assignment_id, data, performed_by)

    async def delete_assignment(
        self,
        assignment_id: str,
        data: AssignmentDelete,
        performed_by: str | None = None
    ) -> Assignment:
        return await self.repository.delete(
            assignment_id, data.reason, performed_by, hard=data.hard, expected_version=data.expected_version
        )

    async def get_assignment(self, assignment_id: str) -> Assignment:
        return await self.repository.get(assignment_id)

    async def list_assignments(
        self,
        status: AssignmentStatus | None = None,
        installation_id: str | None = None,
        team_member_id: str | None = None,
        date_range: DateRange | None = None
    ) -> list[Assignment]:
        return await self.repository.list_assignments(
            status=status, installation_id=installation_id, team_member_id=team_member_id, date_range=date_range
        )

    async def list_history(self, assignment_id: str) -> list[AssignmentHistoryEntry]:
        return await self.repository.list_history(assignment_id)

    # ================= HELPERS =================

    async def _context(self) -> PlanningContext:
        return PlanningContext(
            await self.jobs.list_installations(),
            await self.roster.list_team_members(),
            await self.repository.snapshot(),
            self.settings,
        )

    @staticmethod
    def _installation(context: PlanningContext, installation_id: str) -> Installation:
        installation = context.get_installation(installation_id)
        if installation is None:
            raise NotFoundError("Installation", installation_id)
        return installation

    @staticmethod
    def _member(context: PlanningContext, member_id: str) -> TeamMember:
        member = context.get_member(member_id)
        if member is None:
            raise ValidationError(f"Unknown team member {member_id}", field="team_member_id")
        return member

    def _check_members(self, context: PlanningContext, lead_id: str | None, assistant_id: str | None):
        if lead_id is not None and context.get_member(lead_id) is None:
            raise ValidationError(f"Unknown team member {lead_id}", field="lead_id")
        if assistant_id is not None and context.get_member(assistant_id) is None:
            raise ValidationError(f"Unknown team member {assistant_id}", field="assistant_id")
