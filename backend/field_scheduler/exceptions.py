"""
Ошибки движка назначений.

Сервисы выбрасывают эти исключения, роуты переводят их в HTTPException.
"""
from typing import Any


class SchedulingError(Exception):
    """Базовая ошибка планирования (восстановимая)"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SchedulingError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(SchedulingError):
    """Некорректные поля назначения. Выбрасывается до любых изменений."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NoCandidateError(SchedulingError):
    """
    Ни один участник команды не прошёл жёсткие фильтры.

    constraints - имена ограничений, из-за которых отсеяны кандидаты
    details - {team_member_id: [ограничения]}
    """

    def __init__(
        self,
        installation_id: str,
        constraints: list[str],
        details: dict[str, list[str]] | None = None
    ):
        names = ", ".join(constraints) if constraints else "no active team members"
        super().__init__(f"No candidate for installation {installation_id}: {names}")
        self.installation_id = installation_id
        self.constraints = constraints
        self.details = details or {}


class ConflictBlockedError(SchedulingError):
    """Назначение создаёт или усиливает конфликт, а override запрещён"""

    def __init__(self, message: str, conflicts: list[Any] | None = None):
        super().__init__(message)
        self.conflicts = conflicts or []


class ConcurrencyError(SchedulingError):
    """Запись по устаревшей версии - нужно перечитать и повторить"""

    def __init__(self, assignment_id: str, expected: int, actual: int):
        super().__init__(
            f"Assignment {assignment_id} has been modified by another user "
            f"(expected version {expected}, actual {actual})"
        )
        self.assignment_id = assignment_id
        self.expected = expected
        self.actual = actual
