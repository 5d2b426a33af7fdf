"""Service layer for homework content and assignments."""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable

from fastapi import HTTPException
from sqlalchemy.orm import Session as DBSession

from grading.models.db.homework import Homework, HomeworkAssignment
from grading.models.validation import PageMapping
from grading.services.answer_key_service import build_page_map, load_exercise_structure
from grading.utils import parse_iso_timestamp, validate_id

logger = logging.getLogger(__name__)


def create_homework(
    db: DBSession,
    name: str,
    exercise_data: str | list[dict[str, Any]] | None = None,
    csv_content: str | None = None,
    description: str | None = None,
    homework_id: str | None = None,
) -> Homework:
    """
    Store homework content and build its page map.

    The page map records, for every cumulative page, which exercise and
    page id it belongs to so CSV keys can be addressed without guessing.
    """
    homework_id = validate_id("homeworkId", homework_id) if homework_id else uuid.uuid4().hex
    if db.get(Homework, homework_id):
        raise HTTPException(status_code=400, detail="Homework already exists")

    if exercise_data is not None and not isinstance(exercise_data, str):
        exercise_data = json.dumps(exercise_data)

    homework = Homework(
        id=homework_id,
        name=name,
        description=description,
        exercise_data=exercise_data,
        csv_content=csv_content,
    )
    page_map = build_page_map(load_exercise_structure(exercise_data))
    homework.page_map = [
        mapping.model_dump() if mapping is not None else None for mapping in page_map
    ]

    db.add(homework)
    db.commit()
    db.refresh(homework)
    logger.info(f"Created homework {homework_id} with {len(page_map)} pages")
    return homework


def create_assignment(
    db: DBSession,
    homework_id: str,
    student_ids: list[str] | None = None,
    due_date: str | datetime | None = None,
    assignment_id: str | None = None,
) -> HomeworkAssignment:
    """Assign homework to students."""
    homework = get_homework(db, homework_id)
    if homework is None:
        raise HTTPException(status_code=404, detail="Homework not found")

    assignment_id = (
        validate_id("assignmentId", assignment_id) if assignment_id else uuid.uuid4().hex
    )
    assignment = HomeworkAssignment(
        id=assignment_id,
        homework_id=homework.id,
        due_date=parse_iso_timestamp(due_date),
    )
    assignment.student_ids = [validate_id("studentId", item) for item in student_ids or []]

    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def get_homework(db: DBSession, homework_id: str) -> Homework | None:
    """Get homework by ID."""
    return db.get(Homework, homework_id)


def get_assignment(db: DBSession, assignment_id: str) -> HomeworkAssignment | None:
    """Get assignment by ID."""
    return db.get(HomeworkAssignment, assignment_id)


def require_assignment(db: DBSession, assignment_id: str) -> HomeworkAssignment:
    """Get assignment with its homework or raise 404."""
    assignment = get_assignment(db, validate_id("assignmentId", assignment_id))
    if assignment is None or assignment.homework is None:
        raise HTTPException(status_code=404, detail="Assignment or homework not found")
    return assignment


def get_exercise_structure(db: DBSession, homework_id: str) -> list[dict[str, Any]] | None:
    """Decoded exercise structure of a homework, if any."""
    homework = get_homework(db, homework_id)
    if homework is None:
        return None
    return homework.exercises


def get_csv_answer_key(db: DBSession, homework_id: str) -> str | None:
    """Raw CSV answer key of a homework, if any."""
    homework = get_homework(db, homework_id)
    if homework is None:
        return None
    return homework.csv_content or None


def get_page_map(homework: Homework) -> list[PageMapping | None]:
    """Stored page map as models."""
    return [
        PageMapping.model_validate(item) if isinstance(item, dict) else None
        for item in homework.page_map
    ]


def csv_loader_for(db: DBSession) -> Callable[[str], str | None]:
    """CSV answer-key loader keyed by assignment ID."""

    def load(assignment_id: str) -> str | None:
        assignment = require_assignment(db, assignment_id)
        return get_csv_answer_key(db, assignment.homework_id)

    return load
