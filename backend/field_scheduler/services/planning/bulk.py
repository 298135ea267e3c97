"""
Массовое назначение.

Монтажи обрабатываются строго в порядке запроса. Ошибка по одному монтажу
записывается с рекомендуемым действием и не прерывает пакет.
Принятые предложения добавляются в контекст, чтобы следующие видели загрузку.
"""
import logging
import statistics
import time

from ...config import Settings, get_settings
from ...exceptions import (
    SchedulingError, NoCandidateError, ConflictBlockedError, NotFoundError, ValidationError
)
from ...schemas.assignment import AssignmentCreate, AssignmentMetadata
from ...schemas.installation import Installation
from ...schemas.planning import (
    AutoAssignmentCriteria, BulkAssignmentOptions, BatchResult, BulkAssignmentError,
    BulkAssignmentSummary, AssignmentResult
)
from ...schemas.workload import DateRange
from ..assignment_repository import AssignmentRepository
from ..providers import RosterProvider, JobProvider
from .conflicts import ConflictDetector
from .context import PlanningContext
from .optimizer import AutoAssignmentOptimizer, build_assignment
from .workload import WorkloadCalculator

logger = logging.getLogger(__name__)

# Что посоветовать по первому не пройденному ограничению
CONSTRAINT_ACTIONS = {
    "active": "Activate team members or extend the roster",
    "availability": "Reschedule the installation into working hours or adjust availability",
    "capacity": "Move the installation to a less loaded day or raise daily capacity",
    "time_overlap": "Reschedule the installation or free up a team member at that time",
    "skills": "Train team members or add someone with the required skills",
    "location": "Increase max travel distance or assign a team member based closer",
}


class BulkAssignmentProcessor:
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
        self.optimizer = AutoAssignmentOptimizer(self.settings)
        self.detector = ConflictDetector(self.settings)
        self.calculator = WorkloadCalculator(self.settings)

    async def run(
        self,
        installation_ids: list[str],
        criteria: AutoAssignmentCriteria,
        options: BulkAssignmentOptions,
        performed_by: str | None = None
    ) -> BatchResult:
        started = time.perf_counter()
        actor = performed_by or self.settings.default_actor

        teams = await self.roster.list_team_members()
        installations = {i.id: i for i in await self.jobs.list_installations()}
        context = PlanningContext(installations.values(), teams, await self.repository.snapshot(), self.settings)

        results: list[AssignmentResult] = []
        errors: list[BulkAssignmentError] = []
        skipped: list[str] = []
        conflict_count = 0

        for installation_id in installation_ids:
            installation = installations.get(installation_id)
            if installation is None:
                errors.append(self._error(installation_id, NotFoundError("Installation", installation_id)))
                logger.warning(f"Bulk: installation {installation_id} not found")
                continue

            existing = context.active_assignment_for(installation_id)
            if existing is not None and options.preserve_existing:
                skipped.append(installation_id)
                logger.warning(f"Bulk: {installation_id} already assigned ({existing.id}), skipped")
                continue
            if existing is not None:
                context.exclude_assignment(existing.id)

            try:
                result, introduced = self.propose_checked(installation, criteria, options, context)
                conflict_count += len(introduced)
                if not options.dry_run:
                    await self.commit(installation, result, existing, actor)
                results.append(result)
            except SchedulingError as e:
                context.remove_virtual_assignment(f"proposed-{installation_id}")
                if existing is not None:
                    context.restore_assignment(existing.id)
                if isinstance(e, ConflictBlockedError):
                    conflict_count += len(e.conflicts)
                errors.append(self._error(installation_id, e))
                logger.warning(f"Bulk: {installation_id} failed: {e.message}")

        summary = self._summary(results, errors, skipped, context, installations, started)
        logger.info(
            f"Bulk assignment{' (dry run)' if options.dry_run else ''}: "
            f"{len(results)} ok, {len(errors)} failed, {len(skipped)} skipped"
        )
        return BatchResult(
            total_requests=len(installation_ids),
            successful=len(results),
            failed=len(errors),
            skipped=len(skipped),
            conflicts=conflict_count,
            dry_run=options.dry_run,
            results=results,
            errors=errors,
            skipped_installations=skipped,
            summary=summary,
        )

    def propose_checked(
        self,
        installation: Installation,
        criteria: AutoAssignmentCriteria,
        options: BulkAssignmentOptions,
        context: PlanningContext
    ):
        """Предложение + проверка, какие конфликты оно вносит"""
        result = self.optimizer.propose(installation, criteria, context)
        virtual = build_assignment(
            installation, result.team_member_id, f"proposed-{installation.id}", self.settings.default_actor
        )
        context.add_virtual_assignment(virtual)

        conflicts = self.detector.detect_in_context(
            context,
            max_travel_distance=criteria.max_travel_distance,
            member_ids=virtual.member_ids,
            dates=[virtual.scheduled_date],
        )
        introduced = [c for c in conflicts if virtual.id in c.affected_assignments and not c.is_resolved]
        if introduced and not options.override_conflicts:
            context.remove_virtual_assignment(virtual.id)
            raise ConflictBlockedError(
                f"Assigning {result.team_member_id} to {installation.id} creates "
                f"{len(introduced)} conflict(s)",
                introduced,
            )
        if introduced:
            result.warnings.append(f"{len(introduced)} conflict(s) accepted with override")
        return result, introduced

    async def commit(self, installation: Installation, result: AssignmentResult, existing, actor: str):
        if existing is not None:
            await self.repository.delete(
                existing.id, reason="Replaced by bulk auto-assignment", performed_by=actor
            )
        created = await self.repository.create(
            AssignmentCreate(
                installation_id=installation.id,
                lead_id=result.team_member_id,
                metadata=AssignmentMetadata(
                    auto_assigned=True,
                    workload_score=result.sub_scores.workload_balance,
                    efficiency_score=result.sub_scores.performance,
                    original_assignment_id=existing.id if existing is not None else None,
                    reassignment_reason="Bulk auto-assignment" if existing is not None else None,
                    customer_preference=result.customer_preference,
                ),
            ),
            installation,
            performed_by=actor,
        )
        result.assignment_id = created.id

    @staticmethod
    def _error(installation_id: str, error: SchedulingError) -> BulkAssignmentError:
        if isinstance(error, NoCandidateError):
            first = error.constraints[0] if error.constraints else "active"
            return BulkAssignmentError(
                installation_id=installation_id,
                error="no_candidate",
                reason=error.message,
                suggested_action=CONSTRAINT_ACTIONS.get(first, "Review the installation requirements"),
                constraints=error.constraints,
            )
        if isinstance(error, ConflictBlockedError):
            return BulkAssignmentError(
                installation_id=installation_id,
                error="conflict_blocked",
                reason=error.message,
                suggested_action="Resolve the conflicts or rerun with override_conflicts",
                conflicts=error.conflicts,
            )
        if isinstance(error, NotFoundError):
            return BulkAssignmentError(
                installation_id=installation_id,
                error="not_found",
                reason=error.message,
                suggested_action="Check the installation id or reload installations",
            )
        kind = "validation" if isinstance(error, ValidationError) else "scheduling_error"
        return BulkAssignmentError(
            installation_id=installation_id,
            error=kind,
            reason=error.message,
            suggested_action="Fix the assignment data and retry",
        )

    def _summary(
        self,
        results: list[AssignmentResult],
        errors: list[BulkAssignmentError],
        skipped: list[str],
        context: PlanningContext,
        installations: dict[str, Installation],
        started: float
    ) -> BulkAssignmentSummary:
        distribution: dict[str, int] = {}
        for r in results:
            distribution[r.team_member_id] = distribution.get(r.team_member_id, 0) + 1

        variance = 0.0
        days = [installations[r.installation_id].scheduled_date for r in results]
        if days:
            report = self.calculator.compute(
                context.assignments,
                context.members,
                DateRange(start=min(days), end=max(days)),
                installations.values(),
            )
            variance = report.aggregate.variance

        recommendations = []
        by_constraint: dict[str, int] = {}
        for e in errors:
            for name in e.constraints:
                by_constraint[name] = by_constraint.get(name, 0) + 1
        if by_constraint.get("skills"):
            recommendations.append(
                f"{by_constraint['skills']} installation(s) had no skill-matching team member - "
                f"consider training or roster adjustment"
            )
        if by_constraint.get("location"):
            recommendations.append(
                f"{by_constraint['location']} installation(s) had no team member within travel range - "
                f"consider a larger max travel distance"
            )
        if by_constraint.get("capacity") or by_constraint.get("availability"):
            count = max(by_constraint.get("capacity", 0), by_constraint.get("availability", 0))
            recommendations.append(
                f"{count} installation(s) found no free capacity - consider extending hours or adding staff"
            )
        blocked = sum(1 for e in errors if e.error == "conflict_blocked")
        if blocked:
            recommendations.append(f"{blocked} installation(s) were blocked by conflicts - review them manually")
        if variance > self.settings.workload_variance_threshold:
            recommendations.append(f"Workload variance {variance:.1f} is high - consider rebalancing")
        if skipped:
            recommendations.append(
                f"{len(skipped)} installation(s) already assigned were kept - disable preserve_existing to reassign"
            )

        return BulkAssignmentSummary(
            processing_time=round(time.perf_counter() - started, 4),
            optimization_score=round(statistics.mean(r.score for r in results), 2) if results else 0.0,
            workload_distribution=distribution,
            workload_variance=variance,
            recommendations=recommendations,
        )
