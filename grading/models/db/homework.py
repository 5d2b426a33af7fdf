"""
Homework and HomeworkAssignment database models.
"""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grading.database import Base

if TYPE_CHECKING:
    from grading.models.db.student_answer import StudentAnswer


def _load_json(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


class AssignmentStatus(str, enum.Enum):
    """Status of a homework assignment."""

    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Homework(Base):
    """
    Homework content record.
    Holds the authored exercise structure and the uploaded CSV answer key.
    """

    __tablename__ = "homeworks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Exercise structure as authored (JSON text)
    exercise_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Raw CSV answer-key table
    csv_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Cumulative page -> {exerciseId, pageId}, built at creation time
    page_map_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    assignments: Mapped[list["HomeworkAssignment"]] = relationship(
        "HomeworkAssignment", back_populates="homework", cascade="all, delete-orphan"
    )

    @property
    def exercises(self) -> list[dict[str, Any]] | None:
        """Parse exercise structure from JSON."""
        data = _load_json(self.exercise_data, None)
        return data if isinstance(data, list) else None

    @property
    def page_map(self) -> list[dict[str, Any] | None]:
        """Parse page map from JSON."""
        data = _load_json(self.page_map_json, [])
        return data if isinstance(data, list) else []

    @page_map.setter
    def page_map(self, value: list[dict[str, Any] | None] | None) -> None:
        """Serialize page map to JSON."""
        self.page_map_json = json.dumps(value) if value else None


class HomeworkAssignment(Base):
    """
    Homework handed out to a set of students.
    """

    __tablename__ = "homework_assignments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    homework_id: Mapped[str] = mapped_column(
        ForeignKey("homeworks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_ids_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=AssignmentStatus.ASSIGNED.value, nullable=False
    )
    assigned_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    due_date: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Relationships
    homework: Mapped["Homework"] = relationship("Homework", back_populates="assignments")
    student_answers: Mapped[list["StudentAnswer"]] = relationship(
        "StudentAnswer", back_populates="assignment", cascade="all, delete-orphan"
    )

    @property
    def student_ids(self) -> list[str]:
        """Parse assigned student ids from JSON."""
        data = _load_json(self.student_ids_json, [])
        return [str(item) for item in data] if isinstance(data, list) else []

    @student_ids.setter
    def student_ids(self, value: list[str] | None) -> None:
        """Serialize assigned student ids to JSON."""
        self.student_ids_json = json.dumps([str(item) for item in value]) if value else None

    def is_assigned_to(self, student_id: str) -> bool:
        """An assignment without a student list is open to everyone."""
        ids = self.student_ids
        return not ids or str(student_id) in ids
