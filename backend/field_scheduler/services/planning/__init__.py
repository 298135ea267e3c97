from .service import PlanningService, make_date_range
from .conflicts import ConflictDetector
from .workload import WorkloadCalculator
from .optimizer import AutoAssignmentOptimizer
from .bulk import BulkAssignmentProcessor
from .matrix import AssignmentMatrixBuilder
from .context import PlanningContext

__all__ = [
    "PlanningService",
    "make_date_range",
    "ConflictDetector",
    "WorkloadCalculator",
    "AutoAssignmentOptimizer",
    "BulkAssignmentProcessor",
    "AssignmentMatrixBuilder",
    "PlanningContext",
]
