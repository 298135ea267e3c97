from fastapi import APIRouter
from .routes import assignments, planning, team_members, installations

api_router = APIRouter()

api_router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
api_router.include_router(planning.router, prefix="/planning", tags=["planning"])
api_router.include_router(team_members.router, prefix="/team-members", tags=["team-members"])
api_router.include_router(installations.router, prefix="/installations", tags=["installations"])
