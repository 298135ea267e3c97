import datetime as dt

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from field_scheduler.models import Base, AssignmentHistoryRecord
from field_scheduler.models.assignment import AssignmentAction, AssignmentStatus
from field_scheduler.schemas.assignment import AssignmentCreate, AssignmentUpdate
from field_scheduler.services.assignment_repository import AssignmentRepository
from field_scheduler.services.persistence import SqlAssignmentStore

from builders import installation


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def test_assignments_survive_reload(session_factory, settings) -> None:
    repository = AssignmentRepository(SqlAssignmentStore(session_factory), settings)
    await repository.load()
    created = await repository.create(
        AssignmentCreate(installation_id="i1", lead_id="alice", notes="Bring the ladder"),
        installation=installation("i1", start="10:15"),
    )
    await repository.update(created.id, AssignmentUpdate(assistant_id="bob", reason="Two-person job"))

    reloaded = AssignmentRepository(SqlAssignmentStore(session_factory), settings)
    await reloaded.load()
    restored = await reloaded.get(created.id)

    assert restored.assistant_id == "bob"
    assert restored.scheduled_time == dt.time(10, 15)
    assert restored.notes == "Bring the ladder"
    assert restored.version == 2
    assert [e.action for e in restored.history] == [AssignmentAction.CREATED, AssignmentAction.REASSIGNED]
    assert restored.metadata.reassignment_reason == "Two-person job"


async def test_history_rows_are_only_appended(session_factory, settings) -> None:
    repository = AssignmentRepository(SqlAssignmentStore(session_factory), settings)
    created = await repository.create(
        AssignmentCreate(installation_id="i1", lead_id="alice"), installation=installation("i1")
    )
    await repository.update(created.id, AssignmentUpdate(status=AssignmentStatus.IN_PROGRESS, reason="Started"))
    await repository.update(created.id, AssignmentUpdate(status=AssignmentStatus.COMPLETED, reason="Done"))

    async with session_factory() as db:
        result = await db.execute(
            select(AssignmentHistoryRecord).order_by(AssignmentHistoryRecord.position)
        )
        rows = result.scalars().all()

    assert [r.position for r in rows] == [0, 1, 2]
    assert [r.action for r in rows] == [
        AssignmentAction.CREATED, AssignmentAction.STARTED, AssignmentAction.COMPLETED
    ]


async def test_hard_delete_archives_history(session_factory, settings) -> None:
    repository = AssignmentRepository(SqlAssignmentStore(session_factory), settings)
    created = await repository.create(
        AssignmentCreate(installation_id="i1", lead_id="alice"), installation=installation("i1")
    )
    await repository.delete(created.id, reason="Duplicate entry", hard=True)

    reloaded = AssignmentRepository(SqlAssignmentStore(session_factory), settings)
    await reloaded.load()

    assert await reloaded.list_assignments() == []
    history = await reloaded.list_history(created.id)
    assert [e.action for e in history] == [AssignmentAction.CREATED, AssignmentAction.UNASSIGNED]
    assert history[-1].reason == "Duplicate entry"
