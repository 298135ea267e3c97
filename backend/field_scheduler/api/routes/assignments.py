from fastapi import APIRouter, Depends, Query
from datetime import date

from ...exceptions import SchedulingError
from ...models.assignment import AssignmentStatus
from ...schemas.assignment import (
    Assignment, AssignmentCreate, AssignmentUpdate, AssignmentDelete,
    AssignmentHistoryEntry, AssignmentListResponse
)
from ...services.planning import PlanningService, make_date_range
from ..deps import get_planning_service, to_http

router = APIRouter()


@router.get("", response_model=AssignmentListResponse)
async def list_assignments(
    status: AssignmentStatus | None = None,
    installation_id: str | None = None,
    team_member_id: str | None = None,
    start: date | None = Query(None),
    end: date | None = Query(None),
    service: PlanningService = Depends(get_planning_service)
):
    """Список назначений с фильтрами"""
    try:
        date_range = make_date_range(start, end) if start or end else None
    except SchedulingError as e:
        raise to_http(e)
    items = await service.list_assignments(
        status=status,
        installation_id=installation_id,
        team_member_id=team_member_id,
        date_range=date_range,
    )
    return AssignmentListResponse(items=items, total=len(items))


@router.post("", response_model=Assignment, status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    performed_by: str | None = Query(None),
    service: PlanningService = Depends(get_planning_service)
):
    try:
        return await service.create_assignment(data, performed_by)
    except SchedulingError as e:
        raise to_http(e)


@router.get("/{assignment_id}", response_model=Assignment)
async def get_assignment(
    assignment_id: str,
    service: PlanningService = Depends(get_planning_service)
):
    try:
        return await service.get_assignment(assignment_id)
    except SchedulingError as e:
        raise to_http(e)


@router.patch("/{assignment_id}", response_model=Assignment)
async def update_assignment(
    assignment_id: str,
    data: AssignmentUpdate,
    performed_by: str | None = Query(None),
    service: PlanningService = Depends(get_planning_service)
):
    """
    Изменить назначение. reason обязателен,
    expected_version - для optimistic locking (409 при расхождении).
    """
    try:
        return await service.update_assignment(assignment_id, data, performed_by)
    except SchedulingError as e:
        raise to_http(e)


@router.delete("/{assignment_id}", response_model=Assignment)
async def delete_assignment(
    assignment_id: str,
    reason: str = Query(..., min_length=1),
    hard: bool = False,
    expected_version: int | None = None,
    performed_by: str | None = Query(None),
    service: PlanningService = Depends(get_planning_service)
):
    """Отменить назначение (hard=true - удалить, история сохраняется)"""
    data = AssignmentDelete(reason=reason, hard=hard, expected_version=expected_version)
    try:
        return await service.delete_assignment(assignment_id, data, performed_by)
    except SchedulingError as e:
        raise to_http(e)


@router.get("/{assignment_id}/history", response_model=list[AssignmentHistoryEntry])
async def get_assignment_history(
    assignment_id: str,
    service: PlanningService = Depends(get_planning_service)
):
    try:
        return await service.list_history(assignment_id)
    except SchedulingError as e:
        raise to_http(e)
