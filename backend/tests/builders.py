"""Сборка тестовых снимков: участники, монтажи, назначения."""
import datetime as dt

from field_scheduler.models.assignment import AssignmentStatus, Priority
from field_scheduler.schemas.assignment import Assignment
from field_scheduler.schemas.installation import Installation, Address, Coordinates
from field_scheduler.schemas.team import TeamMember, PerformanceMetrics, Availability

# Понедельник
DAY = dt.date(2024, 6, 10)
ASSIGNED_AT = dt.datetime(2024, 6, 1, 12, 0)

DOWNTOWN = Coordinates(lat=40.7128, lng=-74.0060)
BROOKLYN = Coordinates(lat=40.6782, lng=-73.9442)
PHILADELPHIA = Coordinates(lat=39.9526, lng=-75.1652)


def member(
    member_id: str,
    skills=(),
    capacity: int = 4,
    home: Coordinates | None = None,
    efficiency: float = 0.8,
    is_active: bool = True,
    working_days=(0, 1, 2, 3, 4),
    work_start: str = "08:00",
    work_end: str = "17:00",
) -> TeamMember:
    return TeamMember(
        id=member_id,
        name=member_id.title(),
        is_active=is_active,
        capacity=capacity,
        skills=list(skills),
        home_base=home,
        performance=PerformanceMetrics(efficiency=efficiency),
        availability=Availability(
            working_days=list(working_days),
            work_start=dt.time.fromisoformat(work_start),
            work_end=dt.time.fromisoformat(work_end),
        ),
    )


def installation(
    installation_id: str,
    start: str = "09:00",
    duration: int = 60,
    skills=(),
    coords: Coordinates | None = None,
    day: dt.date = DAY,
    priority: Priority = Priority.MEDIUM,
    deadline: dt.date | None = None,
    preferred=(),
) -> Installation:
    return Installation(
        id=installation_id,
        customer_name=f"Customer {installation_id}",
        address=Address(street="1 Main St", city="New York", state="NY", zip_code="10001", coordinates=coords),
        scheduled_date=day,
        scheduled_time=dt.time.fromisoformat(start),
        duration=duration,
        priority=priority,
        required_skills=list(skills),
        deadline=deadline,
        preferred_team_member_ids=list(preferred),
    )


def assignment(
    assignment_id: str,
    installation_id: str,
    lead_id: str,
    start: str = "09:00",
    duration: int = 60,
    day: dt.date = DAY,
    assistant_id: str | None = None,
    status: AssignmentStatus = AssignmentStatus.ASSIGNED,
) -> Assignment:
    return Assignment(
        id=assignment_id,
        installation_id=installation_id,
        lead_id=lead_id,
        assistant_id=assistant_id,
        status=status,
        scheduled_date=day,
        scheduled_time=dt.time.fromisoformat(start),
        estimated_duration=duration,
        assigned_at=ASSIGNED_AT,
        assigned_by="dispatcher",
    )


def job_for(inst: Installation, assignment_id: str, lead_id: str, **kwargs) -> Assignment:
    """Назначение на время и длительность монтажа"""
    return assignment(
        assignment_id,
        inst.id,
        lead_id,
        start=inst.scheduled_time.strftime("%H:%M"),
        duration=inst.duration,
        day=inst.scheduled_date,
        **kwargs,
    )
