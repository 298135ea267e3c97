"""
Durable-слой репозитория назначений.

Репозиторий держит кэш в памяти и сбрасывает каждое изменение сюда.
История только дописывается: save() добавляет записи, которых ещё нет в хранилище.
"""
import datetime as dt
from typing import Protocol

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.assignment import AssignmentRecord, AssignmentHistoryRecord
from ..schemas.assignment import Assignment, AssignmentHistoryEntry, AssignmentMetadata


class AssignmentStore(Protocol):
    async def load_all(self) -> list[Assignment]:
        ...

    async def load_archived_history(self) -> dict[str, list[AssignmentHistoryEntry]]:
        """История физически удалённых назначений"""
        ...

    async def save(self, assignment: Assignment) -> None:
        ...

    async def delete(self, assignment: Assignment) -> None:
        """Сохранить финальную запись истории и удалить назначение"""
        ...


class InMemoryAssignmentStore:
    """Хранилище по умолчанию (и для тестов): копии в словарях"""

    def __init__(self):
        self._assignments: dict[str, Assignment] = {}
        self._archived: dict[str, list[AssignmentHistoryEntry]] = {}

    async def load_all(self) -> list[Assignment]:
        return [a.model_copy(deep=True) for a in self._assignments.values()]

    async def load_archived_history(self) -> dict[str, list[AssignmentHistoryEntry]]:
        return {k: [e.model_copy() for e in v] for k, v in self._archived.items()}

    async def save(self, assignment: Assignment) -> None:
        self._assignments[assignment.id] = assignment.model_copy(deep=True)

    async def delete(self, assignment: Assignment) -> None:
        self._archived[assignment.id] = [e.model_copy() for e in assignment.history]
        self._assignments.pop(assignment.id, None)


class SqlAssignmentStore:
    """
    Хранилище в БД (SQLAlchemy async).
    Назначение - upsert строки, история - только INSERT новых позиций.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from ..database import async_session
            session_factory = async_session
        self.session_factory = session_factory

    async def load_all(self) -> list[Assignment]:
        async with self.session_factory() as db:
            result = await db.execute(select(AssignmentRecord).order_by(AssignmentRecord.id))
            records = result.scalars().all()
            history = await self._history_by_source(db, archived=False)
        return [self._to_schema(r, history.get(r.id, [])) for r in records]

    async def load_archived_history(self) -> dict[str, list[AssignmentHistoryEntry]]:
        async with self.session_factory() as db:
            return await self._history_by_source(db, archived=True)

    async def save(self, assignment: Assignment) -> None:
        async with self.session_factory() as db:
            record = await db.get(AssignmentRecord, assignment.id)
            if record is None:
                record = AssignmentRecord(id=assignment.id)
                db.add(record)
            self._apply(record, assignment)
            # Сначала строка назначения - на неё ссылается история
            await db.flush()
            await self._append_history(db, assignment)
            await db.commit()

    async def delete(self, assignment: Assignment) -> None:
        async with self.session_factory() as db:
            await self._append_history(db, assignment)
            # История остаётся, ссылка обнуляется
            await db.execute(
                update(AssignmentHistoryRecord)
                .where(AssignmentHistoryRecord.source_assignment_id == assignment.id)
                .values(assignment_id=None)
            )
            record = await db.get(AssignmentRecord, assignment.id)
            if record is not None:
                await db.delete(record)
            await db.commit()

    async def _append_history(self, db: AsyncSession, assignment: Assignment):
        result = await db.execute(
            select(func.count(AssignmentHistoryRecord.id))
            .where(AssignmentHistoryRecord.source_assignment_id == assignment.id)
        )
        stored = result.scalar_one()
        for position, entry in enumerate(assignment.history[stored:], start=stored):
            db.add(AssignmentHistoryRecord(
                id=entry.id,
                assignment_id=assignment.id,
                source_assignment_id=assignment.id,
                position=position,
                action=entry.action,
                performed_by=entry.performed_by,
                performed_at=entry.performed_at,
                previous_value=entry.previous_value,
                new_value=entry.new_value,
                reason=entry.reason,
                notes=entry.notes,
            ))

    async def _history_by_source(self, db: AsyncSession, archived: bool) -> dict[str, list[AssignmentHistoryEntry]]:
        query = select(AssignmentHistoryRecord).order_by(
            AssignmentHistoryRecord.source_assignment_id, AssignmentHistoryRecord.position
        )
        if archived:
            query = query.where(AssignmentHistoryRecord.assignment_id.is_(None))
        else:
            query = query.where(AssignmentHistoryRecord.assignment_id.is_not(None))
        result = await db.execute(query)

        grouped: dict[str, list[AssignmentHistoryEntry]] = {}
        for row in result.scalars().all():
            grouped.setdefault(row.source_assignment_id, []).append(AssignmentHistoryEntry(
                id=row.id,
                assignment_id=row.source_assignment_id,
                action=row.action,
                performed_by=row.performed_by,
                performed_at=row.performed_at,
                previous_value=row.previous_value,
                new_value=row.new_value,
                reason=row.reason,
                notes=row.notes,
            ))
        return grouped

    @staticmethod
    def _apply(record: AssignmentRecord, assignment: Assignment):
        record.installation_id = assignment.installation_id
        record.lead_id = assignment.lead_id
        record.assistant_id = assignment.assistant_id
        record.status = assignment.status
        record.priority = assignment.priority
        record.scheduled_date = assignment.scheduled_date
        record.scheduled_time = assignment.scheduled_time.isoformat()
        record.estimated_duration = assignment.estimated_duration
        record.notes = assignment.notes
        record.assigned_at = assignment.assigned_at
        record.assigned_by = assignment.assigned_by
        record.meta = assignment.metadata.model_dump(mode="json")
        record.version = assignment.version

    @staticmethod
    def _to_schema(record: AssignmentRecord, history: list[AssignmentHistoryEntry]) -> Assignment:
        return Assignment(
            id=record.id,
            installation_id=record.installation_id,
            lead_id=record.lead_id,
            assistant_id=record.assistant_id,
            status=record.status,
            priority=record.priority,
            scheduled_date=record.scheduled_date,
            scheduled_time=dt.time.fromisoformat(record.scheduled_time),
            estimated_duration=record.estimated_duration,
            notes=record.notes,
            assigned_at=record.assigned_at,
            assigned_by=record.assigned_by,
            version=record.version,
            metadata=AssignmentMetadata.model_validate(record.meta or {}),
            history=history,
        )
