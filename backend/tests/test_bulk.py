import pytest

from field_scheduler.exceptions import ValidationError
from field_scheduler.models.assignment import AssignmentStatus, AssignmentAction
from field_scheduler.schemas.assignment import AssignmentCreate
from field_scheduler.schemas.planning import AutoAssignmentCriteria, BulkAssignmentOptions

from builders import member, installation


async def _load(roster, jobs, team, installations):
    await roster.replace(team)
    await jobs.replace(installations)


async def test_batch_with_one_unassignable_installation(service, roster, jobs, repository) -> None:
    await _load(
        roster,
        jobs,
        [member("alice", skills=["electrical"]), member("bob", skills=["plumbing"])],
        [
            installation("i1", start="09:00"),
            installation("i2", start="10:30"),
            installation("i3", start="12:00", skills=["electrical"]),
            installation("i4", start="13:30"),
            installation("i5", start="15:00", skills=["welding"]),
        ],
    )

    result = await service.run_bulk_assignment(["i1", "i2", "i3", "i4", "i5"])

    assert result.total_requests == 5
    assert result.successful == 4
    assert result.failed == 1
    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.installation_id == "i5"
    assert error.error == "no_candidate"
    assert "skills" in error.constraints
    assert error.suggested_action
    assert [r.installation_id for r in result.results] == ["i1", "i2", "i3", "i4"]
    assert all(r.assignment_id for r in result.results)
    assert any("skill" in rec for rec in result.summary.recommendations)
    assert result.summary.optimization_score > 0
    assert sum(result.summary.workload_distribution.values()) == 4

    stored = await repository.list_assignments()
    assert len(stored) == 4
    assert all(a.metadata.auto_assigned for a in stored)


async def test_dry_run_commits_nothing(service, roster, jobs, repository) -> None:
    await _load(roster, jobs, [member("alice")], [installation("i1"), installation("i2", start="11:00")])

    result = await service.run_bulk_assignment(
        ["i1", "i2"], options=BulkAssignmentOptions(dry_run=True)
    )

    assert result.dry_run
    assert result.successful == 2
    assert all(r.assignment_id is None for r in result.results)
    assert await repository.list_assignments() == []


async def test_preserve_existing_skips_assigned(service, roster, jobs, repository) -> None:
    await _load(roster, jobs, [member("alice"), member("bob")], [installation("i1"), installation("i2", start="11:00")])
    await service.create_assignment(AssignmentCreate(installation_id="i1", lead_id="bob"))

    result = await service.run_bulk_assignment(["i1", "i2"])

    assert result.skipped == 1
    assert result.skipped_installations == ["i1"]
    assert result.successful == 1
    assert result.failed == 0


async def test_replacing_existing_assignment_keeps_link(service, roster, jobs, repository) -> None:
    await _load(roster, jobs, [member("alice"), member("bob")], [installation("i1")])
    old = await service.create_assignment(AssignmentCreate(installation_id="i1", lead_id="bob"))

    result = await service.run_bulk_assignment(
        ["i1"], options=BulkAssignmentOptions(preserve_existing=False)
    )

    assert result.successful == 1
    cancelled = await repository.get(old.id)
    assert cancelled.status == AssignmentStatus.CANCELLED
    assert cancelled.history[-1].action == AssignmentAction.UNASSIGNED
    replacement = await repository.get(result.results[0].assignment_id)
    assert replacement.metadata.original_assignment_id == old.id
    assert replacement.is_active


async def test_unknown_installation_does_not_abort_batch(service, roster, jobs) -> None:
    await _load(roster, jobs, [member("alice")], [installation("i1")])

    result = await service.run_bulk_assignment(["missing", "i1"])

    assert result.successful == 1
    assert result.failed == 1
    assert result.errors[0].installation_id == "missing"
    assert result.errors[0].error == "not_found"


async def test_conflicts_block_unless_overridden(service, roster, jobs, repository) -> None:
    await _load(roster, jobs, [member("alice")], [installation("i1"), installation("i2", start="09:30")])
    criteria = AutoAssignmentCriteria(consider_availability=False)

    blocked = await service.run_bulk_assignment(
        ["i1", "i2"], criteria=criteria, options=BulkAssignmentOptions(dry_run=True)
    )
    assert blocked.successful == 1
    assert blocked.errors[0].error == "conflict_blocked"
    assert blocked.errors[0].conflicts
    assert blocked.conflicts == 1

    overridden = await service.run_bulk_assignment(
        ["i1", "i2"], criteria=criteria, options=BulkAssignmentOptions(override_conflicts=True)
    )
    assert overridden.successful == 2
    assert overridden.failed == 0
    assert overridden.conflicts == 1
    assert len(await repository.list_assignments()) == 2


async def test_auto_assign_saves_and_refuses_second_time(service, roster, jobs, repository) -> None:
    await _load(roster, jobs, [member("alice"), member("bob", efficiency=0.95)], [installation("i1")])

    result = await service.auto_assign("i1", performed_by="dispatcher")

    assert result.team_member_id == "bob"
    stored = await repository.get(result.assignment_id)
    assert stored.assigned_by == "dispatcher"
    assert stored.metadata.auto_assigned
    with pytest.raises(ValidationError):
        await service.auto_assign("i1")
