"""
API endpoints движка назначений: автоназначение, конфликты, загрузка, матрица.
"""
from datetime import date

from fastapi import APIRouter, Depends, Query

from ...exceptions import SchedulingError
from ...schemas.conflict import Conflict, ConflictListResponse, ResolveConflictRequest
from ...schemas.matrix import AssignmentMatrix, MatrixCellUpdateRequest, MatrixUpdate
from ...schemas.planning import (
    ProposeRequest, AutoAssignRequest, BulkAssignmentRequest, AssignmentResult, BatchResult
)
from ...schemas.workload import WorkloadReport
from ...services.planning import PlanningService, make_date_range
from ..deps import get_planning_service, to_http

router = APIRouter()


@router.post("/propose", response_model=AssignmentResult)
async def propose_assignment(
    request: ProposeRequest,
    service: PlanningService = Depends(get_planning_service)
):
    """Предложить участника для монтажа (без сохранения)"""
    try:
        return await service.propose_assignment(request.installation_id, request.criteria)
    except SchedulingError as e:
        raise to_http(e)


@router.post("/auto-assign", response_model=AssignmentResult, status_code=201)
async def auto_assign(
    request: AutoAssignRequest,
    override_conflicts: bool = False,
    service: PlanningService = Depends(get_planning_service)
):
    """Автоназначение с сохранением"""
    try:
        return await service.auto_assign(
            request.installation_id, request.criteria, request.performed_by, override_conflicts
        )
    except SchedulingError as e:
        raise to_http(e)


@router.post("/bulk", response_model=BatchResult)
async def run_bulk_assignment(
    request: BulkAssignmentRequest,
    service: PlanningService = Depends(get_planning_service)
):
    """
    Массовое назначение.

    Ошибки по отдельным монтажам возвращаются в errors, пакет не прерывается.
    options.dry_run - только расчёт, без сохранения.
    """
    return await service.run_bulk_assignment(
        request.installation_ids, request.criteria, request.options, request.performed_by
    )


@router.get("/conflicts", response_model=ConflictListResponse)
async def list_conflicts(
    start: date | None = Query(None),
    end: date | None = Query(None),
    include_resolved: bool = True,
    service: PlanningService = Depends(get_planning_service)
):
    try:
        date_range = make_date_range(start, end) if start or end else None
        items = await service.detect_conflicts(date_range, include_resolved)
    except SchedulingError as e:
        raise to_http(e)
    return ConflictListResponse(
        items=items,
        total=len(items),
        unresolved=sum(1 for c in items if not c.is_resolved),
    )


@router.post("/conflicts/{conflict_id}/resolve", response_model=Conflict)
async def resolve_conflict(
    conflict_id: str,
    request: ResolveConflictRequest,
    performed_by: str | None = Query(None),
    service: PlanningService = Depends(get_planning_service)
):
    """Применить вариант разрешения (resolution_id) или отметить override / escalate"""
    try:
        return await service.resolve_conflict(conflict_id, request, performed_by)
    except SchedulingError as e:
        raise to_http(e)


@router.get("/workload", response_model=WorkloadReport)
async def get_workload(
    start: date | None = Query(None),
    end: date | None = Query(None),
    service: PlanningService = Depends(get_planning_service)
):
    try:
        return await service.compute_workload(make_date_range(start, end))
    except SchedulingError as e:
        raise to_http(e)


@router.get("/matrix", response_model=AssignmentMatrix)
async def get_matrix(
    start: date | None = Query(None),
    end: date | None = Query(None),
    service: PlanningService = Depends(get_planning_service)
):
    try:
        return await service.build_matrix(make_date_range(start, end))
    except SchedulingError as e:
        raise to_http(e)


@router.put("/matrix/cell", response_model=MatrixUpdate)
async def update_matrix_cell(
    request: MatrixCellUpdateRequest,
    service: PlanningService = Depends(get_planning_service)
):
    """Перенести назначения в ячейку. 409, если перенос создаёт конфликты."""
    try:
        return await service.update_matrix_cell(request)
    except SchedulingError as e:
        raise to_http(e)
