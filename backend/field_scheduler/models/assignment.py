from sqlalchemy import String, Text, Integer, ForeignKey, Date, DateTime, Enum as SQLEnum, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from .base import Base, TimestampMixin
import uuid
from datetime import date, datetime
from enum import Enum


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AssignmentStatus(str, Enum):
    """
    Assignment status flow:
    assigned -> in_progress -> completed
    assigned / in_progress -> cancelled
    cancelled -> assigned (повторная активация)
    """
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Статусы, которые занимают время участника и участвуют в проверке конфликтов
ACTIVE_STATUSES = (AssignmentStatus.ASSIGNED, AssignmentStatus.IN_PROGRESS)


class AssignmentAction(str, Enum):
    """Действия, фиксируемые в истории назначения"""
    CREATED = "created"
    ASSIGNED = "assigned"
    REASSIGNED = "reassigned"
    UNASSIGNED = "unassigned"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    CONFLICT_RESOLVED = "conflict_resolved"


class AssignmentRecord(Base, TimestampMixin):
    """
    Назначение (персистентная копия).
    Источник истины для движка - репозиторий в памяти, таблица - его durable-слой.
    """
    __tablename__ = "assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    installation_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    lead_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    assistant_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    status: Mapped[AssignmentStatus] = mapped_column(
        SQLEnum(AssignmentStatus), default=AssignmentStatus.ASSIGNED, nullable=False
    )
    priority: Mapped[Priority] = mapped_column(SQLEnum(Priority), default=Priority.MEDIUM, nullable=False)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_time: Mapped[str] = mapped_column(String(8), nullable=False)  # HH:MM[:SS]
    estimated_duration: Mapped[int] = mapped_column(Integer, nullable=False)  # Минуты
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    assigned_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    assigned_by: Mapped[str] = mapped_column(String(100), nullable=False)

    # metadata зарезервировано в Declarative API
    meta: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)

    # Optimistic Locking
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    history = relationship(
        "AssignmentHistoryRecord",
        back_populates="assignment",
        order_by="AssignmentHistoryRecord.position",
        passive_deletes=True,
    )


class AssignmentHistoryRecord(Base):
    """
    Запись истории назначения. Только добавление, position задаёт порядок.
    Без FK-каскада: история переживает физическое удаление назначения.
    """
    __tablename__ = "assignment_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    assignment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assignments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Сохраняем id отдельно, чтобы историю можно было прочитать после удаления
    source_assignment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[AssignmentAction] = mapped_column(SQLEnum(AssignmentAction), nullable=False)
    performed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    performed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    previous_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    assignment = relationship("AssignmentRecord", back_populates="history")

    __table_args__ = (
        UniqueConstraint('source_assignment_id', 'position', name='uix_assignment_history_position'),
    )
