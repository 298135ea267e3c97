import datetime as dt
from pydantic import BaseModel

from ..models.scheduling import MatrixCellStatus
from .assignment import Assignment
from .conflict import Conflict


class MatrixTeamMember(BaseModel):
    id: str
    name: str
    capacity: int


class MatrixCell(BaseModel):
    date: dt.date
    team_member_id: str
    assignments: list[Assignment] = []
    capacity: int
    utilization: float  # Кол-во работ / capacity
    conflicts: list[str] = []  # ID конфликтов, затрагивающих ячейку
    status: MatrixCellStatus
    is_working: bool = True
    workload_score: float = 0.0  # Процент загрузки по часам


class AssignmentMatrix(BaseModel):
    dates: list[dt.date]
    team_members: list[MatrixTeamMember]
    cells: list[list[MatrixCell]]  # cells[date_index][member_index]
    conflicts: list[Conflict] = []
    optimization_score: float = 0.0

    def cell(self, day: dt.date, team_member_id: str) -> MatrixCell | None:
        try:
            di = self.dates.index(day)
        except ValueError:
            return None
        for cell in self.cells[di]:
            if cell.team_member_id == team_member_id:
                return cell
        return None


class MatrixCellUpdateRequest(BaseModel):
    """Перенос назначений в ячейку (drag-and-drop)"""
    date: dt.date
    team_member_id: str
    assignment_ids: list[str]
    start: dt.date
    end: dt.date
    reason: str = "Reassigned from assignment matrix"
    allow_conflicts: bool = False
    performed_by: str | None = None


class MatrixUpdate(BaseModel):
    matrix: AssignmentMatrix
    moved_assignments: list[Assignment] = []
    new_conflicts: list[Conflict] = []
