"""
Репозиторий назначений.

Кэш в памяти перед AssignmentStore. Все записи идут под asyncio.Lock:
новая версия назначения (поля + запись истории) собирается копией,
сбрасывается в хранилище и только потом подменяет кэш. Читатели получают
глубокие копии и не видят смену статуса без записи в истории.
"""
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Iterable

from ..config import Settings, get_settings
from ..exceptions import ValidationError, ConcurrencyError, NotFoundError
from ..models.assignment import AssignmentStatus, AssignmentAction, ACTIVE_STATUSES
from ..models.scheduling import ConflictResolutionMethod
from ..schemas.assignment import (
    Assignment, AssignmentCreate, AssignmentUpdate, AssignmentHistoryEntry, ResolvedConflictInfo
)
from ..schemas.installation import Installation
from ..schemas.workload import DateRange
from .persistence import AssignmentStore, InMemoryAssignmentStore

logger = logging.getLogger(__name__)

# Разрешённые переходы статусов
TRANSITIONS = {
    AssignmentStatus.ASSIGNED: {AssignmentStatus.IN_PROGRESS, AssignmentStatus.CANCELLED},
    AssignmentStatus.IN_PROGRESS: {AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED},
    AssignmentStatus.CANCELLED: {AssignmentStatus.ASSIGNED},
    AssignmentStatus.COMPLETED: set(),
}

STATUS_ACTIONS = {
    AssignmentStatus.ASSIGNED: AssignmentAction.ASSIGNED,
    AssignmentStatus.IN_PROGRESS: AssignmentAction.STARTED,
    AssignmentStatus.COMPLETED: AssignmentAction.COMPLETED,
    AssignmentStatus.CANCELLED: AssignmentAction.CANCELLED,
}

TRACKED_FIELDS = (
    "status", "lead_id", "assistant_id", "scheduled_date", "scheduled_time", "estimated_duration"
)


def _tracked(assignment: Assignment, fields: Iterable[str] = TRACKED_FIELDS) -> dict[str, Any]:
    data = assignment.model_dump(mode="json", include=set(fields))
    return {k: data[k] for k in fields}


class AssignmentRepository:
    def __init__(self, store: AssignmentStore | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.store = store or InMemoryAssignmentStore()
        self._lock = asyncio.Lock()
        self._cache: dict[str, Assignment] = {}
        self._archived: dict[str, list[AssignmentHistoryEntry]] = {}

    async def load(self):
        """Заполнить кэш из хранилища (при старте приложения)"""
        async with self._lock:
            self._cache = {a.id: a for a in await self.store.load_all()}
            self._archived = await self.store.load_archived_history()
        logger.info(f"Loaded {len(self._cache)} assignments from {type(self.store).__name__}")

    # ================= READ =================

    async def get(self, assignment_id: str) -> Assignment:
        assignment = self._cache.get(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment.model_copy(deep=True)

    async def list_assignments(
        self,
        status: AssignmentStatus | None = None,
        installation_id: str | None = None,
        team_member_id: str | None = None,
        date_range: DateRange | None = None
    ) -> list[Assignment]:
        items = list(self._cache.values())
        if status is not None:
            items = [a for a in items if a.status == status]
        if installation_id is not None:
            items = [a for a in items if a.installation_id == installation_id]
        if team_member_id is not None:
            items = [a for a in items if team_member_id in a.member_ids]
        if date_range is not None:
            items = [a for a in items if a.scheduled_date in date_range]
        items.sort(key=lambda a: (a.scheduled_date, a.scheduled_time, a.id))
        return [a.model_copy(deep=True) for a in items]

    async def snapshot(self) -> list[Assignment]:
        """Копия всех назначений для движка"""
        return [a.model_copy(deep=True) for a in self._cache.values()]

    async def list_history(self, assignment_id: str) -> list[AssignmentHistoryEntry]:
        """История, в том числе физически удалённого назначения"""
        if assignment_id in self._cache:
            return [e.model_copy(deep=True) for e in self._cache[assignment_id].history]
        if assignment_id in self._archived:
            return [e.model_copy(deep=True) for e in self._archived[assignment_id]]
        raise NotFoundError("Assignment", assignment_id)

    # ================= WRITE =================

    async def create(
        self,
        data: AssignmentCreate,
        installation: Installation | None = None,
        performed_by: str | None = None
    ) -> Assignment:
        """
        Создать назначение. Недостающие дата/время/длительность/приоритет
        берутся из монтажа.
        """
        actor = performed_by or self.settings.default_actor
        scheduled_date = data.scheduled_date or (installation.scheduled_date if installation else None)
        scheduled_time = data.scheduled_time or (installation.scheduled_time if installation else None)
        duration = data.estimated_duration or (installation.duration if installation else None)
        priority = data.priority or (installation.priority if installation else None)

        if not data.lead_id:
            raise ValidationError("Lead team member is required", field="lead_id")
        if data.assistant_id and data.assistant_id == data.lead_id:
            raise ValidationError("Assistant must differ from lead", field="assistant_id")
        if scheduled_date is None:
            raise ValidationError("Scheduled date is required", field="scheduled_date")
        if scheduled_time is None:
            raise ValidationError("Scheduled time is required", field="scheduled_time")
        if not duration or duration <= 0:
            raise ValidationError("Estimated duration must be positive", field="estimated_duration")

        async with self._lock:
            self._check_no_active(data.installation_id, field="installation_id")

            now = datetime.utcnow()
            extra = {"priority": priority} if priority else {}
            assignment = Assignment(
                id=str(uuid.uuid4()),
                installation_id=data.installation_id,
                lead_id=data.lead_id,
                assistant_id=data.assistant_id,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                estimated_duration=duration,
                notes=data.notes,
                assigned_at=now,
                assigned_by=actor,
                metadata=data.metadata.model_copy(deep=True),
                **extra,
            )
            assignment.history.append(self._entry(
                assignment.id, AssignmentAction.CREATED, actor, now,
                new_value=_tracked(assignment),
                reason=assignment.metadata.reassignment_reason,
            ))
            await self._commit(assignment)

        logger.info(f"Assignment {assignment.id} created for installation {assignment.installation_id} by {actor}")
        return assignment.model_copy(deep=True)

    async def update(
        self,
        assignment_id: str,
        data: AssignmentUpdate,
        performed_by: str | None = None
    ) -> Assignment:
        """
        Изменить статус / участников / расписание. Одна запись истории на вызов.
        Raises:
            ValidationError: пустая причина, недопустимый переход, нет изменений
            ConcurrencyError: expected_version устарела
        """
        actor = performed_by or self.settings.default_actor
        if not data.reason or not data.reason.strip():
            raise ValidationError("Reason is required for every update", field="reason")

        async with self._lock:
            current = self._require(assignment_id)
            self._check_version(current, data.expected_version)

            changes: dict[str, Any] = {}
            if data.status is not None and data.status != current.status:
                if data.status not in TRANSITIONS[current.status]:
                    raise ValidationError(
                        f"Cannot change status from {current.status.value} to {data.status.value}",
                        field="status",
                    )
                changes["status"] = data.status
                if not current.is_active and data.status in ACTIVE_STATUSES:
                    self._check_no_active(current.installation_id, field="status")
            if data.lead_id is not None and data.lead_id != current.lead_id:
                changes["lead_id"] = data.lead_id
            if data.clear_assistant and current.assistant_id is not None:
                changes["assistant_id"] = None
            elif data.assistant_id is not None and data.assistant_id != current.assistant_id:
                changes["assistant_id"] = data.assistant_id
            for name in ("scheduled_date", "scheduled_time", "estimated_duration"):
                value = getattr(data, name)
                if value is not None and value != getattr(current, name):
                    changes[name] = value

            if not changes:
                raise ValidationError("Update does not change anything")
            if current.status == AssignmentStatus.COMPLETED:
                raise ValidationError("Completed assignments cannot be modified", field="status")

            lead_id = changes.get("lead_id", current.lead_id)
            assistant_id = changes.get("assistant_id", current.assistant_id)
            if assistant_id is not None and assistant_id == lead_id:
                raise ValidationError("Assistant must differ from lead", field="assistant_id")
            if changes.get("estimated_duration") is not None and changes["estimated_duration"] <= 0:
                raise ValidationError("Estimated duration must be positive", field="estimated_duration")

            updated = current.model_copy(update=changes, deep=True)
            updated.version = current.version + 1
            if "lead_id" in changes or "assistant_id" in changes:
                updated.metadata.reassignment_reason = data.reason

            fields = [f for f in TRACKED_FIELDS if f in changes]
            updated.history.append(self._entry(
                assignment_id, self._classify(changes), actor, datetime.utcnow(),
                previous_value=_tracked(current, fields),
                new_value=_tracked(updated, fields),
                reason=data.reason,
            ))
            await self._commit(updated)

        logger.info(f"Assignment {assignment_id} updated ({', '.join(fields)}) by {actor}: {data.reason}")
        return updated.model_copy(deep=True)

    async def delete(
        self,
        assignment_id: str,
        reason: str,
        performed_by: str | None = None,
        hard: bool = False,
        expected_version: int | None = None
    ) -> Assignment:
        """
        Логическое удаление: запись unassigned + статус cancelled.
        Физическое (hard): финальная запись unassigned, затем удаление;
        история остаётся доступной через list_history.
        """
        actor = performed_by or self.settings.default_actor
        if not reason or not reason.strip():
            raise ValidationError("Reason is required to delete an assignment", field="reason")

        async with self._lock:
            current = self._require(assignment_id)
            self._check_version(current, expected_version)
            if not hard and current.status in (AssignmentStatus.CANCELLED, AssignmentStatus.COMPLETED):
                raise ValidationError(
                    f"Assignment {assignment_id} is already {current.status.value}", field="status"
                )

            updated = current.model_copy(deep=True)
            updated.version = current.version + 1
            if not hard:
                updated.status = AssignmentStatus.CANCELLED
            updated.history.append(self._entry(
                assignment_id, AssignmentAction.UNASSIGNED, actor, datetime.utcnow(),
                previous_value=_tracked(current, ("status", "lead_id", "assistant_id")),
                new_value={"status": updated.status.value, "deleted": hard},
                reason=reason,
            ))

            if hard:
                await self.store.delete(updated)
                self._archived[assignment_id] = updated.history
                del self._cache[assignment_id]
            else:
                await self._commit(updated)

        logger.info(f"Assignment {assignment_id} {'deleted' if hard else 'cancelled'} by {actor}: {reason}")
        return updated.model_copy(deep=True)

    async def record_conflict_resolution(
        self,
        assignment_id: str,
        conflict_id: str,
        method: ConflictResolutionMethod,
        performed_by: str | None = None,
        notes: str | None = None
    ) -> Assignment:
        """Отметить конфликт разрешённым в metadata назначения"""
        actor = performed_by or self.settings.default_actor
        async with self._lock:
            current = self._require(assignment_id)
            now = datetime.utcnow()
            updated = current.model_copy(deep=True)
            updated.version = current.version + 1
            updated.metadata.conflict_resolved = True
            updated.metadata.resolved_conflicts[conflict_id] = ResolvedConflictInfo(
                resolved_at=now, resolved_by=actor, method=method
            )
            updated.history.append(self._entry(
                assignment_id, AssignmentAction.CONFLICT_RESOLVED, actor, now,
                new_value={"conflict_id": conflict_id, "method": method.value},
                reason=f"Conflict resolved via {method.value}",
                notes=notes,
            ))
            await self._commit(updated)

        logger.info(f"Conflict {conflict_id} marked resolved on {assignment_id} ({method.value})")
        return updated.model_copy(deep=True)

    # ================= HELPERS =================

    def _require(self, assignment_id: str) -> Assignment:
        assignment = self._cache.get(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    def _check_no_active(self, installation_id: str, field: str):
        """У монтажа не больше одного активного назначения"""
        for existing in self._cache.values():
            if existing.installation_id == installation_id and existing.is_active:
                raise ValidationError(
                    f"Installation {installation_id} already has active assignment {existing.id}",
                    field=field,
                )

    @staticmethod
    def _check_version(current: Assignment, expected_version: int | None):
        if expected_version is not None and expected_version != current.version:
            raise ConcurrencyError(current.id, expected_version, current.version)

    @staticmethod
    def _classify(changes: dict[str, Any]) -> AssignmentAction:
        """Одно действие на изменение: статус > участники > расписание"""
        if "status" in changes:
            return STATUS_ACTIONS[changes["status"]]
        if "lead_id" in changes or "assistant_id" in changes:
            return AssignmentAction.REASSIGNED
        return AssignmentAction.RESCHEDULED

    @staticmethod
    def _entry(
        assignment_id: str,
        action: AssignmentAction,
        performed_by: str,
        performed_at: datetime,
        previous_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        reason: str | None = None,
        notes: str | None = None
    ) -> AssignmentHistoryEntry:
        return AssignmentHistoryEntry(
            id=str(uuid.uuid4()),
            assignment_id=assignment_id,
            action=action,
            performed_by=performed_by,
            performed_at=performed_at,
            previous_value=previous_value,
            new_value=new_value,
            reason=reason,
            notes=notes,
        )

    async def _commit(self, assignment: Assignment):
        # Кэш меняется только после успешной записи
        await self.store.save(assignment)
        self._cache[assignment.id] = assignment
