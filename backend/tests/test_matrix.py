import datetime as dt

import pytest

from field_scheduler.exceptions import ValidationError
from field_scheduler.models.assignment import AssignmentStatus
from field_scheduler.models.scheduling import MatrixCellStatus, ConflictType, ConflictResolutionMethod
from field_scheduler.schemas.assignment import ResolvedConflictInfo
from field_scheduler.schemas.workload import DateRange
from field_scheduler.services.planning import AssignmentMatrixBuilder, ConflictDetector

from builders import DAY, member, installation, assignment

WEEK = DateRange(start=DAY, end=DAY + dt.timedelta(days=6))


@pytest.fixture
def team():
    return [member("alice", capacity=2), member("bob"), member("carol")]


@pytest.fixture
def jobs():
    return [
        installation("i1"),
        installation("i2", start="11:00"),
        installation("i3", start="13:00"),
        installation("i4", start="09:00"),
    ]


@pytest.fixture
def assignments():
    return [
        assignment("a1", "i1", "alice"),
        assignment("a2", "i2", "alice", start="11:00"),
        assignment("a3", "i3", "alice", start="13:00"),
        assignment("a4", "i4", "bob"),
    ]


def test_cells_follow_status_priority(settings, team, jobs, assignments) -> None:
    conflicts = ConflictDetector(settings).detect(assignments, team, jobs)
    matrix = AssignmentMatrixBuilder(settings).build(WEEK, team, assignments, conflicts)

    assert matrix.dates == WEEK.days()
    assert [m.id for m in matrix.team_members] == ["alice", "bob", "carol"]

    alice = matrix.cell(DAY, "alice")
    assert alice.status == MatrixCellStatus.CONFLICT
    assert alice.utilization == pytest.approx(1.5)
    assert [a.id for a in alice.assignments] == ["a1", "a2", "a3"]
    assert len(alice.conflicts) == 1

    assert matrix.cell(DAY, "bob").status == MatrixCellStatus.ASSIGNED
    assert matrix.cell(DAY, "carol").status == MatrixCellStatus.AVAILABLE

    saturday = matrix.cell(dt.date(2024, 6, 15), "carol")
    assert not saturday.is_working
    assert 0 <= matrix.optimization_score <= 100


def test_without_conflicts_overload_is_overbooked(settings, team, assignments) -> None:
    matrix = AssignmentMatrixBuilder(settings).build(WEEK, team, assignments, [])

    assert matrix.cell(DAY, "alice").status == MatrixCellStatus.OVERBOOKED


def test_resolved_conflict_does_not_mark_cell(settings, team, jobs, assignments) -> None:
    detector = ConflictDetector(settings)
    conflict = detector.detect(assignments, team, jobs)[0]
    info = ResolvedConflictInfo(
        resolved_at=dt.datetime(2024, 6, 9), resolved_by="lead", method=ConflictResolutionMethod.OVERRIDE
    )
    for a in assignments:
        if a.id in conflict.affected_assignments:
            a.metadata.resolved_conflicts[conflict.id] = info

    conflicts = detector.detect(assignments, team, jobs)
    matrix = AssignmentMatrixBuilder(settings).build(WEEK, team, assignments, conflicts)

    cell = matrix.cell(DAY, "alice")
    assert cell.conflicts == [conflict.id]
    assert cell.status == MatrixCellStatus.OVERBOOKED


def test_moving_assignment_to_free_member(settings, team, jobs, assignments) -> None:
    builder = AssignmentMatrixBuilder(settings)
    conflicts = ConflictDetector(settings).detect(assignments, team, jobs)
    matrix = builder.build(WEEK, team, assignments, conflicts)

    update = builder.update_cell(matrix, DAY, "carol", ["a3"], assignments, team, jobs)

    assert [a.lead_id for a in update.moved_assignments] == ["carol"]
    assert update.new_conflicts == []
    assert [a.id for a in update.matrix.cell(DAY, "carol").assignments] == ["a3"]
    assert update.matrix.cell(DAY, "alice").status == MatrixCellStatus.ASSIGNED
    assert update.matrix.conflicts == []
    # Исходный снимок не меняется
    assert next(a for a in assignments if a.id == "a3").lead_id == "alice"


def test_moving_into_busy_slot_reports_new_conflict(settings, team, jobs, assignments) -> None:
    builder = AssignmentMatrixBuilder(settings)
    matrix = builder.build(WEEK, team, assignments, [])

    update = builder.update_cell(matrix, DAY, "bob", ["a1"], assignments, team, jobs)

    assert [c.type for c in update.new_conflicts] == [ConflictType.TIME_OVERLAP]
    assert update.matrix.cell(DAY, "bob").status == MatrixCellStatus.CONFLICT


def test_target_outside_matrix_is_rejected(settings, team, jobs, assignments) -> None:
    builder = AssignmentMatrixBuilder(settings)
    matrix = builder.build(WEEK, team, assignments, [])

    with pytest.raises(ValidationError):
        builder.update_cell(matrix, DAY + dt.timedelta(days=30), "bob", ["a1"], assignments, team, jobs)


def test_completed_and_cancelled_work_follow_workload_rules(settings, team) -> None:
    assignments = [
        assignment("a1", "i1", "bob", duration=180, status=AssignmentStatus.COMPLETED),
        assignment("a2", "i2", "carol", status=AssignmentStatus.CANCELLED),
    ]

    matrix = AssignmentMatrixBuilder(settings).build(WEEK, team, assignments, [])

    bob = matrix.cell(DAY, "bob")
    assert bob.status == MatrixCellStatus.ASSIGNED
    assert [a.id for a in bob.assignments] == ["a1"]
    assert bob.utilization == pytest.approx(0.25)
    assert bob.workload_score > 0

    carol = matrix.cell(DAY, "carol")
    assert carol.status == MatrixCellStatus.AVAILABLE
    assert carol.assignments == []
    assert carol.workload_score == 0
