from fastapi import APIRouter, Depends

from ...schemas.team import TeamMember
from ...services.providers import StaticRosterProvider
from ..deps import get_roster

router = APIRouter()


@router.get("", response_model=list[TeamMember])
async def list_team_members(roster: StaticRosterProvider = Depends(get_roster)):
    return await roster.list_team_members()


@router.put("")
async def replace_team_members(
    team_members: list[TeamMember],
    roster: StaticRosterProvider = Depends(get_roster)
):
    """Заменить состав команды целиком"""
    count = await roster.replace(team_members)
    return {"loaded": count}
