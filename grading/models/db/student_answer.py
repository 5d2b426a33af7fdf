"""
StudentAnswer database model: one student's progress on one assignment.
"""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grading.database import Base

if TYPE_CHECKING:
    from grading.models.db.homework import HomeworkAssignment


class SubmissionStatus(str, enum.Enum):
    """Status stored in the summary of a student answer record."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


def default_summary() -> dict[str, Any]:
    return {
        "totalQuestions": 0,
        "correct": 0,
        "percentage": 0,
        "status": SubmissionStatus.NOT_STARTED.value,
    }


class StudentAnswer(Base):
    """
    Student answer record.
    Pages hold the submitted components with their correctness flags,
    correct_answers holds the answer key extracted when the homework started.
    """

    __tablename__ = "student_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    assignment_id: Mapped[str] = mapped_column(
        ForeignKey("homework_assignments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    exercise_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    current_page: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_pages: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # JSON payloads
    pages_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    correct_answers_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_assignment_student"),
    )

    # Relationships
    assignment: Mapped["HomeworkAssignment"] = relationship(
        "HomeworkAssignment", back_populates="student_answers"
    )

    @property
    def pages(self) -> list[dict[str, Any]]:
        """Parse pages from JSON."""
        if not self.pages_json:
            return []
        try:
            return json.loads(self.pages_json)
        except (json.JSONDecodeError, TypeError):
            return []

    @pages.setter
    def pages(self, value: list[dict[str, Any]] | None) -> None:
        """Serialize pages to JSON."""
        self.pages_json = json.dumps(value) if value else None

    @property
    def correct_answers(self) -> dict[str, dict[str, Any]]:
        """Parse stored answer key from JSON."""
        if not self.correct_answers_json:
            return {}
        try:
            return json.loads(self.correct_answers_json)
        except (json.JSONDecodeError, TypeError):
            return {}

    @correct_answers.setter
    def correct_answers(self, value: dict[str, dict[str, Any]] | None) -> None:
        """Serialize answer key to JSON."""
        self.correct_answers_json = json.dumps(value) if value else None

    @property
    def summary(self) -> dict[str, Any]:
        """Parse summary from JSON."""
        if not self.summary_json:
            return default_summary()
        try:
            return json.loads(self.summary_json)
        except (json.JSONDecodeError, TypeError):
            return default_summary()

    @summary.setter
    def summary(self, value: dict[str, Any]) -> None:
        """Serialize summary to JSON."""
        self.summary_json = json.dumps(value) if value else None
