from .base import Base
from .assignment import (
    AssignmentRecord, AssignmentHistoryRecord, AssignmentStatus, AssignmentAction, Priority, ACTIVE_STATUSES
)
from .scheduling import (
    InstallationStatus, ConflictType, ConflictSeverity, ConflictResolutionMethod,
    WorkloadStatus, MatrixCellStatus, OptimizationGoal
)

__all__ = [
    "Base",
    "AssignmentRecord",
    "AssignmentHistoryRecord",
    "AssignmentStatus",
    "AssignmentAction",
    "Priority",
    "ACTIVE_STATUSES",
    "InstallationStatus",
    "ConflictType",
    "ConflictSeverity",
    "ConflictResolutionMethod",
    "WorkloadStatus",
    "MatrixCellStatus",
    "OptimizationGoal",
]
