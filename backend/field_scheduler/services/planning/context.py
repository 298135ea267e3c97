from datetime import date
from collections import defaultdict
from typing import Iterable

from ...config import Settings, get_settings
from ...schemas.installation import Installation, Coordinates
from ...schemas.team import TeamMember
from ...schemas.assignment import Assignment
from .geo import haversine_miles, estimate_travel_minutes


class PlanningContext:
    """
    Контекст планирования.
    Неизменяемый снимок монтажей, участников и назначений + индексы по нему.
    Умеет учитывать "виртуальные" назначения (для массового назначения и dry-run),
    не затрагивая репозиторий.
    """
    def __init__(
        self,
        installations: Iterable[Installation],
        team_members: Iterable[TeamMember],
        assignments: Iterable[Assignment],
        settings: Settings | None = None
    ):
        self.settings = settings or get_settings()
        self.installations: dict[str, Installation] = {i.id: i for i in installations}
        self.team_members: dict[str, TeamMember] = {m.id: m for m in team_members}
        self._assignments: list[Assignment] = list(assignments)
        self._excluded: set[str] = set()
        self._virtual_assignments: list[Assignment] = []

    @property
    def members(self) -> list[TeamMember]:
        """Участники в детерминированном порядке (по id)"""
        return [self.team_members[k] for k in sorted(self.team_members)]

    @property
    def assignments(self) -> list[Assignment]:
        """Реальные (кроме исключённых) и виртуальные назначения"""
        real = [a for a in self._assignments if a.id not in self._excluded]
        return real + self._virtual_assignments

    def add_virtual_assignment(self, assignment: Assignment):
        """Добавить временное назначение в контекст"""
        self._virtual_assignments.append(assignment)

    def exclude_assignment(self, assignment_id: str):
        """Не учитывать назначение (например, оно будет заменено)"""
        self._excluded.add(assignment_id)

    def restore_assignment(self, assignment_id: str):
        self._excluded.discard(assignment_id)

    def remove_virtual_assignment(self, assignment_id: str):
        self._virtual_assignments = [a for a in self._virtual_assignments if a.id != assignment_id]

    def get_installation(self, installation_id: str) -> Installation | None:
        return self.installations.get(installation_id)

    def get_member(self, member_id: str) -> TeamMember | None:
        return self.team_members.get(member_id)

    def active_assignments(self) -> list[Assignment]:
        return [a for a in self.assignments if a.is_active]

    def active_assignment_for(self, installation_id: str) -> Assignment | None:
        for a in self.active_assignments():
            if a.installation_id == installation_id:
                return a
        return None

    def get_member_assignments(self, member_id: str, day: date) -> list[Assignment]:
        """Активные назначения участника на день (ведущий или помощник), по времени начала"""
        result = [
            a for a in self.active_assignments()
            if a.scheduled_date == day and member_id in a.member_ids
        ]
        result.sort(key=lambda a: (a.start_minutes, a.id))
        return result

    def buckets(self) -> dict[tuple[str, date], list[Assignment]]:
        """Активные назначения, сгруппированные по (участник, дата)"""
        return bucket_by_member_and_date(self.active_assignments())

    def calculate_load(self, member_id: str, day: date) -> tuple[float, float]:
        """
        Рассчитать загрузку участника за день (в часах).
        Возвращает (занято, всего_доступно).
        """
        member = self.get_member(member_id)
        available = member.capacity_hours(day) if member else 0.0
        used = sum(a.hours for a in self.get_member_assignments(member_id, day))
        return used, available

    def location_of(self, assignment: Assignment) -> Coordinates | None:
        installation = self.get_installation(assignment.installation_id)
        if installation is None:
            return None
        return installation.address.coordinates

    def get_previous_location(self, member_id: str, day: date, before_minutes: int) -> Coordinates | None:
        """
        Где участник окажется к моменту before_minutes: место последней работы,
        начавшейся раньше, либо база (первая работа дня).
        """
        previous = [
            a for a in self.get_member_assignments(member_id, day)
            if a.start_minutes < before_minutes
        ]
        for assignment in reversed(previous):
            coords = self.location_of(assignment)
            if coords is not None:
                return coords
        member = self.get_member(member_id)
        return member.home_base if member else None

    def travel_distance(self, origin: Coordinates | None, target: Coordinates | None) -> float | None:
        """Расстояние в милях или None, если координаты неизвестны"""
        if origin is None or target is None:
            return None
        return haversine_miles(origin, target)

    def get_travel_time(self, miles: float | None) -> int:
        """Время в пути в минутах"""
        if miles is None:
            return 0
        return estimate_travel_minutes(
            miles, self.settings.average_speed_mph, self.settings.travel_buffer_multiplier
        )


def bucket_by_member_and_date(assignments: Iterable[Assignment]) -> dict[tuple[str, date], list[Assignment]]:
    buckets: dict[tuple[str, date], list[Assignment]] = defaultdict(list)
    for a in assignments:
        for member_id in a.member_ids:
            buckets[(member_id, a.scheduled_date)].append(a)
    for items in buckets.values():
        items.sort(key=lambda a: (a.start_minutes, a.id))
    return dict(buckets)
