from .installation import Installation, Address, Coordinates
from .team import TeamMember, Availability, PerformanceMetrics
from .assignment import (
    Assignment, AssignmentMetadata, AssignmentHistoryEntry, ResolvedConflictInfo,
    AssignmentCreate, AssignmentUpdate, AssignmentDelete, AssignmentListResponse
)
from .conflict import (
    Conflict, ConflictResolution, AssignmentChange, ResolveConflictRequest, ConflictListResponse
)
from .workload import DateRange, WorkloadRecord, WorkloadAggregate, WorkloadReport
from .planning import (
    CriteriaWeights, AutoAssignmentCriteria, SubScores, AlternativeAssignment, AssignmentResult,
    ProposeRequest, AutoAssignRequest, BulkAssignmentOptions, BulkAssignmentRequest,
    BulkAssignmentError, BulkAssignmentSummary, BatchResult
)
from .matrix import MatrixTeamMember, MatrixCell, AssignmentMatrix, MatrixCellUpdateRequest, MatrixUpdate

__all__ = [
    "Installation", "Address", "Coordinates",
    "TeamMember", "Availability", "PerformanceMetrics",
    "Assignment", "AssignmentMetadata", "AssignmentHistoryEntry", "ResolvedConflictInfo",
    "AssignmentCreate", "AssignmentUpdate", "AssignmentDelete", "AssignmentListResponse",
    "Conflict", "ConflictResolution", "AssignmentChange", "ResolveConflictRequest", "ConflictListResponse",
    "DateRange", "WorkloadRecord", "WorkloadAggregate", "WorkloadReport",
    "CriteriaWeights", "AutoAssignmentCriteria", "SubScores", "AlternativeAssignment", "AssignmentResult",
    "ProposeRequest", "AutoAssignRequest", "BulkAssignmentOptions", "BulkAssignmentRequest",
    "BulkAssignmentError", "BulkAssignmentSummary", "BatchResult",
    "MatrixTeamMember", "MatrixCell", "AssignmentMatrix", "MatrixCellUpdateRequest", "MatrixUpdate",
]
