import datetime as dt

import pytest

from field_scheduler.models.assignment import AssignmentStatus
from field_scheduler.models.scheduling import WorkloadStatus
from field_scheduler.schemas.workload import DateRange
from field_scheduler.services.planning import WorkloadCalculator, ConflictDetector
from field_scheduler.services.planning.workload import workload_status

from builders import DAY, DOWNTOWN, BROOKLYN, member, installation, assignment

ONE_DAY = DateRange(start=DAY, end=DAY)


def _by_member(report):
    return {r.team_member_id: r for r in report.records}


def test_full_and_light_members_give_variance_and_statuses(settings) -> None:
    team = [member("alice"), member("bob")]
    assignments = [
        assignment("a1", "i1", "alice", start="08:00", duration=540),
        assignment("a2", "i2", "bob", start="09:00", duration=108),
    ]

    report = WorkloadCalculator(settings).compute(assignments, team, ONE_DAY)

    records = _by_member(report)
    assert records["alice"].utilization_percentage == pytest.approx(100.0)
    assert records["bob"].utilization_percentage == pytest.approx(20.0)
    assert records["alice"].status == WorkloadStatus.OVERUTILIZED
    assert records["bob"].status == WorkloadStatus.UNDERUTILIZED
    assert report.aggregate.avg_utilization == pytest.approx(60.0)
    assert report.aggregate.variance > 0
    assert any("variance" in r.lower() for r in report.aggregate.recommendations)


def test_status_bands() -> None:
    assert workload_status(59.9) == WorkloadStatus.UNDERUTILIZED
    assert workload_status(60.0) == WorkloadStatus.OPTIMAL
    assert workload_status(99.9) == WorkloadStatus.OPTIMAL
    assert workload_status(100.0) == WorkloadStatus.OVERUTILIZED
    assert workload_status(130.0) == WorkloadStatus.OVERUTILIZED


def test_days_without_capacity_or_work_are_left_out_of_aggregate(settings) -> None:
    team = [member("alice"), member("bob")]
    week = DateRange(start=DAY, end=DAY + dt.timedelta(days=6))
    assignments = [assignment("a1", "i1", "alice", start="08:00", duration=540)]

    report = WorkloadCalculator(settings).compute(assignments, team, week)

    assert len(report.records) == 14
    assert report.aggregate.total_capacity == pytest.approx(2 * 5 * 9)
    # Пн-Пт: alice (100, 0, 0, 0, 0), bob - нули
    assert report.aggregate.avg_utilization == pytest.approx(10.0)
    assert report.aggregate.underutilized_count == 9
    assert report.aggregate.overutilized_count == 1


def test_weekend_work_is_overtime(settings) -> None:
    saturday = dt.date(2024, 6, 15)
    team = [member("alice")]
    assignments = [assignment("a1", "i1", "alice", day=saturday, duration=180)]

    report = WorkloadCalculator(settings).compute(assignments, team, DateRange(start=saturday, end=saturday))

    record = report.records[0]
    assert record.capacity_hours == 0
    assert record.status == WorkloadStatus.OVERUTILIZED
    assert record.overtime_hours == pytest.approx(3.0)


def test_assistant_hours_count_and_cancelled_do_not(settings) -> None:
    team = [member("alice"), member("bob")]
    assignments = [
        assignment("a1", "i1", "alice", duration=120, assistant_id="bob"),
        assignment("a2", "i2", "bob", start="13:00", duration=120, status=AssignmentStatus.CANCELLED),
    ]

    records = _by_member(WorkloadCalculator(settings).compute(assignments, team, ONE_DAY))

    assert records["bob"].assigned_hours == pytest.approx(2.0)
    assert records["bob"].assignments == ["a1"]
    assert records["alice"].assigned_hours == pytest.approx(2.0)


def test_inactive_members_have_no_records(settings) -> None:
    team = [member("alice"), member("carol", is_active=False)]

    report = WorkloadCalculator(settings).compute([], team, ONE_DAY)

    assert [r.team_member_id for r in report.records] == ["alice"]


def test_travel_lowers_efficiency(settings) -> None:
    team = [member("alice", home=DOWNTOWN, efficiency=0.9)]
    jobs = [installation("i1", coords=BROOKLYN), installation("i2", start="13:00", coords=DOWNTOWN)]
    assignments = [
        assignment("a1", "i1", "alice", duration=120),
        assignment("a2", "i2", "alice", start="13:00", duration=120),
    ]

    record = WorkloadCalculator(settings).compute(assignments, team, ONE_DAY, installations=jobs).records[0]

    assert record.travel_time > 0
    assert 0 < record.efficiency < 0.9
    # 11:00 -> 13:00 минус дорога обратно
    assert 0 < record.buffer_time < 2


def test_conflict_count_per_record(settings) -> None:
    team = [member("alice"), member("bob")]
    jobs = [installation("i1"), installation("i2", start="09:30")]
    assignments = [
        assignment("a1", "i1", "alice"),
        assignment("a2", "i2", "alice", start="09:30"),
    ]
    conflicts = ConflictDetector(settings).detect(assignments, team, jobs)

    records = _by_member(WorkloadCalculator(settings).compute(assignments, team, ONE_DAY, jobs, conflicts))

    assert records["alice"].conflict_count == 1
    assert records["bob"].conflict_count == 0
