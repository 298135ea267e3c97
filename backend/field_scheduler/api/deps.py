"""
FastAPI dependencies: сервисы приложения и перевод ошибок движка в HTTP.
"""
from fastapi import HTTPException, Request

from ..exceptions import (
    SchedulingError, NotFoundError, ValidationError, NoCandidateError,
    ConflictBlockedError, ConcurrencyError
)
from ..services.planning import PlanningService
from ..services.providers import StaticRosterProvider, StaticJobProvider


def get_planning_service(request: Request) -> PlanningService:
    return request.app.state.planning_service


def get_roster(request: Request) -> StaticRosterProvider:
    return request.app.state.roster


def get_jobs(request: Request) -> StaticJobProvider:
    return request.app.state.jobs


def to_http(error: SchedulingError) -> HTTPException:
    """Ошибка сервиса -> HTTPException"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail={"message": error.message, "field": error.field})
    if isinstance(error, NoCandidateError):
        return HTTPException(status_code=422, detail={
            "message": error.message,
            "constraints": error.constraints,
            "details": error.details,
        })
    if isinstance(error, ConcurrencyError):
        return HTTPException(
            status_code=409,
            detail=f"Conflict: Assignment has been modified by another user (version {error.actual})",
        )
    if isinstance(error, ConflictBlockedError):
        return HTTPException(status_code=409, detail={
            "message": error.message,
            "conflicts": [c.model_dump(mode="json") for c in error.conflicts],
        })
    return HTTPException(status_code=400, detail=error.message)
