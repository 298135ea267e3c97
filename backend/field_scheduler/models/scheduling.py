"""
Перечисления движка планирования.

Конфликты, загрузка и матрица не хранятся в БД - они пересчитываются
из снимка назначений при каждом запросе.
"""
from enum import Enum


class InstallationStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class ConflictType(str, Enum):
    TIME_OVERLAP = "time_overlap"
    SKILL_MISMATCH = "skill_mismatch"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    TRAVEL_DISTANCE = "travel_distance"
    AVAILABILITY = "availability"


class ConflictSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConflictResolutionMethod(str, Enum):
    """
    Способы разрешения конфликта:
    - auto_reassign: передать назначение другому участнику
    - manual_reassign: передать вручную выбранному участнику
    - reschedule: сдвинуть время / дату
    - split_assignment: перераспределить роли ведущий / помощник
    - override: принять конфликт как есть
    - escalate: передать диспетчеру
    """
    AUTO_REASSIGN = "auto_reassign"
    MANUAL_REASSIGN = "manual_reassign"
    RESCHEDULE = "reschedule"
    SPLIT_ASSIGNMENT = "split_assignment"
    OVERRIDE = "override"
    ESCALATE = "escalate"


class WorkloadStatus(str, Enum):
    UNDERUTILIZED = "underutilized"  # < 60%
    OPTIMAL = "optimal"              # 60% <= u < 100%
    OVERUTILIZED = "overutilized"    # >= 100%


class MatrixCellStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    OVERBOOKED = "overbooked"
    CONFLICT = "conflict"


class OptimizationGoal(str, Enum):
    """Цели автоназначения (стратегии)"""
    MINIMIZE_TRAVEL = "minimize_travel"
    BALANCE_WORKLOAD = "balance_workload"
    MAXIMIZE_EFFICIENCY = "maximize_efficiency"
    PRIORITIZE_SKILLS = "prioritize_skills"
    CUSTOMER_SATISFACTION = "customer_satisfaction"
    HYBRID = "hybrid"
