"""
Источники данных о команде и монтажах.

Ядро только читает их; снимок перечитывается на каждую операцию.
"""
import asyncio
from typing import Iterable, Protocol

from ..schemas.installation import Installation
from ..schemas.team import TeamMember


class RosterProvider(Protocol):
    async def list_team_members(self) -> list[TeamMember]:
        ...


class JobProvider(Protocol):
    async def list_installations(self) -> list[Installation]:
        ...


class StaticRosterProvider:
    """Состав команды в памяти, загружается через API"""

    def __init__(self, team_members: Iterable[TeamMember] = ()):
        self._members = {m.id: m for m in team_members}
        self._lock = asyncio.Lock()

    async def list_team_members(self) -> list[TeamMember]:
        return [self._members[k].model_copy(deep=True) for k in sorted(self._members)]

    async def replace(self, team_members: Iterable[TeamMember]) -> int:
        async with self._lock:
            self._members = {m.id: m for m in team_members}
            return len(self._members)


class StaticJobProvider:
    """Монтажи в памяти, загружаются через API"""

    def __init__(self, installations: Iterable[Installation] = ()):
        self._installations = {i.id: i for i in installations}
        self._lock = asyncio.Lock()

    async def list_installations(self) -> list[Installation]:
        return [self._installations[k].model_copy(deep=True) for k in sorted(self._installations)]

    async def replace(self, installations: Iterable[Installation]) -> int:
        async with self._lock:
            self._installations = {i.id: i for i in installations}
            return len(self._installations)
