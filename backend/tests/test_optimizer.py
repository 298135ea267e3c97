import datetime as dt

import pytest

from field_scheduler.exceptions import NoCandidateError
from field_scheduler.models.assignment import Priority
from field_scheduler.models.scheduling import OptimizationGoal
from field_scheduler.schemas.planning import AutoAssignmentCriteria, CriteriaWeights
from field_scheduler.services.planning import AutoAssignmentOptimizer, PlanningContext

from builders import DAY, DOWNTOWN, BROOKLYN, PHILADELPHIA, member, installation, assignment


def _context(settings, team, jobs, assignments=()):
    return PlanningContext(jobs, team, assignments, settings)


def test_required_skill_picks_qualified_member(settings) -> None:
    team = [member("alice", skills=["plumbing"]), member("bob", skills=["electrical"])]
    job = installation("i1", skills=["electrical"])

    result = AutoAssignmentOptimizer(settings).propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))

    assert result.team_member_id == "bob"
    assert result.sub_scores.skill_match == 1.0
    assert all(alt.team_member_id != "alice" for alt in result.alternatives)
    assert result.confidence == 1.0


def test_hard_filters_are_never_violated(settings) -> None:
    team = [
        member("alice", home=PHILADELPHIA),
        member("bob", home=DOWNTOWN, is_active=False),
        member("carol", home=DOWNTOWN, working_days=(5, 6)),
        member("dave", home=DOWNTOWN),
    ]
    job = installation("i1", coords=BROOKLYN)

    result = AutoAssignmentOptimizer(settings).propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))

    assert result.team_member_id == "dave"
    assert result.alternatives == []
    assert result.travel_distance is not None and result.travel_distance < 50


def test_no_candidate_lists_failing_constraints(settings) -> None:
    team = [member("alice", skills=["plumbing"]), member("bob", is_active=False)]
    job = installation("i1", skills=["welding"])

    with pytest.raises(NoCandidateError) as exc:
        AutoAssignmentOptimizer(settings).propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))

    assert exc.value.installation_id == "i1"
    assert exc.value.constraints == ["active", "skills"]
    assert exc.value.details == {"alice": ["skills"], "bob": ["active"]}


def test_full_capacity_member_is_filtered(settings) -> None:
    team = [member("alice", capacity=1)]
    job = installation("i2", start="13:00")
    context = _context(settings, team, [job], [assignment("a1", "i1", "alice")])

    with pytest.raises(NoCandidateError) as exc:
        AutoAssignmentOptimizer(settings).propose(job, AutoAssignmentCriteria(), context)

    assert exc.value.constraints == ["capacity"]


def test_propose_is_deterministic(settings) -> None:
    team = [member("alice", home=DOWNTOWN), member("bob", home=BROOKLYN, efficiency=0.9), member("carol")]
    job = installation("i1", coords=BROOKLYN, priority=Priority.HIGH)
    optimizer = AutoAssignmentOptimizer(settings)

    first = optimizer.propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))
    second = optimizer.propose(job, AutoAssignmentCriteria(), _context(settings, list(reversed(team)), [job]))

    assert first.model_dump() == second.model_dump()


def test_scaling_weights_does_not_change_result(settings) -> None:
    team = [member("alice", home=DOWNTOWN), member("bob", home=BROOKLYN, efficiency=0.95)]
    job = installation("i1", coords=BROOKLYN)
    context = _context(settings, team, [job])
    optimizer = AutoAssignmentOptimizer(settings)

    ones = optimizer.propose(job, AutoAssignmentCriteria(), context)
    twos = optimizer.propose(job, AutoAssignmentCriteria(weights=CriteriaWeights(
        workload_balance=2, skill_match=2, performance=2, urgency=2, geographic=2
    )), context)
    zeros = optimizer.propose(job, AutoAssignmentCriteria(weights=CriteriaWeights(
        workload_balance=0, skill_match=0, performance=0, urgency=0, geographic=0
    )), context)

    assert ones.team_member_id == twos.team_member_id == zeros.team_member_id
    assert ones.score == twos.score == zeros.score
    assert ones.weights == twos.weights
    assert sum(ones.weights.values()) == pytest.approx(1.0)


def test_goal_emphasis_shifts_weights(settings) -> None:
    team = [member("alice")]
    job = installation("i1")
    criteria = AutoAssignmentCriteria(optimization_goal=OptimizationGoal.BALANCE_WORKLOAD)

    result = AutoAssignmentOptimizer(settings).propose(job, criteria, _context(settings, team, [job]))

    assert result.weights["workload_balance"] == pytest.approx(2 / 6, abs=1e-4)
    assert result.weights["geographic"] == pytest.approx(1 / 6, abs=1e-4)
    assert "balance_workload" in result.reasoning[0]


def test_existing_work_lowers_workload_score(settings) -> None:
    team = [member("alice"), member("bob")]
    job = installation("i2", start="13:00")
    optimizer = AutoAssignmentOptimizer(settings)

    idle = optimizer.propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))
    busy = optimizer.propose(
        job, AutoAssignmentCriteria(), _context(settings, team, [job], [assignment("a1", "i1", "alice", duration=180)])
    )

    # Равные кандидаты - побеждает меньший id
    assert idle.team_member_id == "alice"
    assert idle.confidence == 0.5
    assert busy.team_member_id == "bob"
    alice_busy = next(a for a in busy.alternatives if a.team_member_id == "alice")
    assert alice_busy.sub_scores.workload_balance < idle.sub_scores.workload_balance
    assert alice_busy.tradeoffs and "workload balance" in alice_busy.tradeoffs[0]


def test_propose_all_sees_earlier_proposals(settings) -> None:
    team = [member("alice"), member("bob")]
    jobs = [installation("i1"), installation("i2", start="09:30")]
    context = _context(settings, team, jobs)

    results, failures = AutoAssignmentOptimizer(settings).propose_all(jobs, AutoAssignmentCriteria(), context)

    assert failures == {}
    assert [r.team_member_id for r in results] == ["alice", "bob"]
    assert len(context.assignments) == 2


def test_propose_all_collects_failures(settings) -> None:
    team = [member("alice")]
    jobs = [installation("i1"), installation("i2", start="09:30")]

    results, failures = AutoAssignmentOptimizer(settings).propose_all(
        jobs, AutoAssignmentCriteria(), _context(settings, team, jobs)
    )

    assert [r.installation_id for r in results] == ["i1"]
    assert failures["i2"].constraints == ["time_overlap"]


def test_urgency_with_close_deadline_is_capped(settings) -> None:
    team = [member("alice")]
    job = installation("i1", priority=Priority.URGENT, deadline=DAY + dt.timedelta(days=1))

    result = AutoAssignmentOptimizer(settings).propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))

    assert result.sub_scores.urgency == 1.0


def test_unknown_location_is_neutral(settings) -> None:
    team = [member("alice")]
    job = installation("i1")

    result = AutoAssignmentOptimizer(settings).propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))

    assert result.sub_scores.geographic == 0.5
    assert result.travel_distance is None
    assert any("unknown" in w for w in result.warnings)


def test_disabled_criteria_score_neutral(settings) -> None:
    team = [member("alice", skills=[], efficiency=0.3, home=PHILADELPHIA)]
    job = installation("i1", skills=["electrical"], coords=BROOKLYN)
    criteria = AutoAssignmentCriteria(
        consider_skills=False, consider_location=False, consider_performance=False, consider_workload=False
    )

    result = AutoAssignmentOptimizer(settings).propose(job, criteria, _context(settings, team, [job]))

    assert result.sub_scores.skill_match == 1.0
    assert result.sub_scores.geographic == 1.0
    assert result.sub_scores.performance == 1.0
    assert result.sub_scores.workload_balance == 1.0


def test_customer_preference_is_reported(settings) -> None:
    team = [member("alice"), member("bob", efficiency=0.95)]
    job = installation("i1", preferred=["bob"])
    criteria = AutoAssignmentCriteria(consider_preferences=True)

    result = AutoAssignmentOptimizer(settings).propose(job, criteria, _context(settings, team, [job]))

    assert result.team_member_id == "bob"
    assert result.customer_preference
    assert "Customer preferred this team member" in result.reasoning


def test_every_sub_score_is_explained(settings) -> None:
    team = [member("alice")]
    job = installation("i1")

    result = AutoAssignmentOptimizer(settings).propose(job, AutoAssignmentCriteria(), _context(settings, team, [job]))

    for key in ("workload_balance", "skill_match", "performance", "urgency", "geographic"):
        assert any(line.startswith(f"{key}:") for line in result.reasoning)
