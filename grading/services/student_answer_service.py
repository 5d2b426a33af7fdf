"""Service layer for student answer records (progress, grading, scores)."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from grading.models.db.homework import HomeworkAssignment
from grading.models.db.student_answer import (
    StudentAnswer,
    SubmissionStatus,
    default_summary,
)
from grading.models.exercise import TIMER_SELECTOR_TYPE, QuestionKind, question_kind
from grading.models.validation import (
    AnswerKeyEntry,
    ValidationRequest,
    ValidationResponse,
    ValidationVerdict,
)
from grading.services.answer_key_service import (
    TEXT_ANSWER_OPTION_ID,
    extract_correct_answers,
)
from grading.services.homework_service import (
    csv_loader_for,
    get_page_map,
    require_assignment,
)
from grading.services.validation_service import (
    UnresolvedPolicy,
    parse_question_key,
    resolve_policy,
    validate_answers,
)
from grading.utils import utc_now, validate_id

logger = logging.getLogger(__name__)

TEMPLATE_BY_PAGE_TYPE = {
    "reading": "story_with_questions",
    "math": "math_addition",
}
DEFAULT_TEMPLATE = "fill_in_blank"
QUESTION_PREFIX = "question_"
READING_TIME_FIELD = "readingTime"
BLANK_ID = "blank1"


def get_student_answer(
    db: DBSession, assignment_id: str, student_id: str
) -> StudentAnswer | None:
    """Get the record of one student for one assignment."""
    return db.execute(
        select(StudentAnswer).where(
            StudentAnswer.assignment_id == assignment_id,
            StudentAnswer.student_id == student_id,
        )
    ).scalar_one_or_none()


def _require_assigned(
    db: DBSession, assignment_id: str, student_id: str
) -> HomeworkAssignment:
    assignment = require_assignment(db, assignment_id)
    if not assignment.is_assigned_to(student_id):
        raise HTTPException(
            status_code=403, detail="Student is not assigned to this homework"
        )
    return assignment


def _new_record(assignment: HomeworkAssignment, student_id: str) -> StudentAnswer:
    homework = assignment.homework
    record = StudentAnswer(
        assignment_id=assignment.id,
        student_id=student_id,
        exercise_id=homework.name or "homework_exercise",
        title=homework.description or "Homework Exercise",
        current_page=0,
        total_pages=len(homework.page_map),
    )
    answer_key = extract_correct_answers(homework.csv_content)
    record.correct_answers = {
        key: entry.model_dump() for key, entry in answer_key.items()
    }
    record.summary = default_summary()
    return record


def start_homework(
    db: DBSession, assignment_id: str, student_id: str
) -> tuple[StudentAnswer, bool]:
    """
    Start homework for a student.

    Creates the record seeded with the answer key extracted from the
    homework CSV. Returns (record, created); an existing record is
    returned unchanged.
    """
    student_id = validate_id("studentId", student_id)
    assignment = _require_assigned(db, assignment_id, student_id)

    existing = get_student_answer(db, assignment.id, student_id)
    if existing:
        return existing, False

    record = _new_record(assignment, student_id)
    loaded = len(record.correct_answers)
    summary = record.summary
    summary["status"] = SubmissionStatus.IN_PROGRESS.value
    summary["totalQuestions"] = loaded
    record.summary = summary

    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        f"Started homework {assignment.id} for student {student_id} "
        f"with {loaded} correct answers loaded"
    )
    return record, True


def _build_page_components(page_type: str | None, answers: dict[str, Any]) -> list[dict[str, Any]]:
    components: list[dict[str, Any]] = []
    if page_type == "reading" and answers.get(READING_TIME_FIELD) is not None:
        components.append(
            {
                "type": TIMER_SELECTOR_TYPE,
                "studentAnswer": {
                    "selected": [answers[READING_TIME_FIELD]],
                    "isCorrect": False,
                },
            }
        )

    for key, answer in answers.items():
        if not key.startswith(QUESTION_PREFIX):
            continue
        try:
            question_number = int(key[len(QUESTION_PREFIX):])
        except ValueError:
            logger.warning(f"Skipping invalid answer key: {key}")
            continue

        if page_type == "reading":
            components.append(
                {
                    "type": QuestionKind.MULTIPLE_CHOICE.value,
                    "questionNumber": question_number,
                    "studentAnswer": {
                        "selected": answer if isinstance(answer, list) else [answer],
                        "isCorrect": False,
                    },
                }
            )
        else:
            components.append(
                {
                    "type": QuestionKind.FILL_BLANK.value,
                    "questionNumber": question_number,
                    "blanks": [
                        {
                            "id": BLANK_ID,
                            "studentAnswer": "" if answer is None else answer,
                            "isCorrect": False,
                        }
                    ],
                }
            )
    return components


def save_page_answers(
    db: DBSession,
    assignment_id: str,
    student_id: str,
    page_index: int,
    answers: dict[str, Any],
    page_type: str | None = None,
) -> StudentAnswer:
    """
    Save the answers of one page (0-based index), replacing earlier ones.

    Reading pages store multiple-choice selections and the reading time,
    other pages store fill-in-blank values. Correctness is set by grading.
    """
    student_id = validate_id("studentId", student_id)
    assignment = _require_assigned(db, assignment_id, student_id)

    record = get_student_answer(db, assignment.id, student_id)
    if record is None:
        record = _new_record(assignment, student_id)
        db.add(record)

    page_id = page_index + 1
    pages = record.pages
    page = next((item for item in pages if item.get("pageId") == page_id), None)
    if page is None:
        page = {
            "pageId": page_id,
            "templateType": TEMPLATE_BY_PAGE_TYPE.get(page_type or "", DEFAULT_TEMPLATE),
            "components": [],
        }
        pages.append(page)
    page["components"] = _build_page_components(page_type, answers)

    record.pages = pages
    record.current_page = page_index
    record.total_pages = max(record.total_pages, len(pages))

    summary = record.summary
    if summary.get("status") == SubmissionStatus.NOT_STARTED.value:
        summary["status"] = SubmissionStatus.IN_PROGRESS.value
    summary["lastUpdated"] = utc_now()
    record.summary = summary

    db.commit()
    db.refresh(record)
    return record


def _correct_options(correct_answer: Any) -> list[dict[str, str]]:
    if isinstance(correct_answer, list):
        return [
            {"id": f"option_{index}", "text": str(text)}
            for index, text in enumerate(correct_answer)
        ]
    return [{"id": TEXT_ANSWER_OPTION_ID, "text": str(correct_answer)}]


def _find_or_create_component(
    page: dict[str, Any], question_number: int, verdict: ValidationVerdict
) -> dict[str, Any]:
    components = page.setdefault("components", [])
    for component in components:
        if component.get("questionNumber") == question_number:
            return component

    component = {
        "type": QuestionKind.MULTIPLE_CHOICE.value,
        "questionNumber": question_number,
        "studentAnswer": {
            "selected": (
                verdict.userAnswer
                if isinstance(verdict.userAnswer, list)
                else [verdict.userAnswer]
            ),
            "isCorrect": False,
        },
    }
    components.append(component)
    return component


def apply_verdicts(
    pages: list[dict[str, Any]], verdicts: dict[str, ValidationVerdict]
) -> list[dict[str, Any]]:
    """Write per-component correctness flags into stored pages."""
    for question_key, verdict in verdicts.items():
        parsed = parse_question_key(question_key)
        if parsed is None:
            continue
        page_index, question_number = parsed

        page_id = page_index + 1
        page = next((item for item in pages if item.get("pageId") == page_id), None)
        if page is None:
            page = {
                "pageId": page_id,
                "templateType": TEMPLATE_BY_PAGE_TYPE["reading"],
                "components": [],
            }
            pages.append(page)

        component = _find_or_create_component(page, question_number, verdict)
        student_answer = component.setdefault(
            "studentAnswer",
            {
                "selected": (
                    verdict.userAnswer
                    if isinstance(verdict.userAnswer, list)
                    else [verdict.userAnswer]
                ),
            },
        )
        student_answer["isCorrect"] = verdict.isCorrect
        blanks = component.get("blanks")
        if isinstance(blanks, list) and blanks and isinstance(blanks[0], dict):
            blanks[0]["isCorrect"] = verdict.isCorrect

        if verdict.resolved:
            component["correctAnswer"] = {
                "correctOptions": _correct_options(verdict.correctAnswer)
            }
    return pages


def _score_summary(
    summary: dict[str, Any], response: ValidationResponse
) -> dict[str, Any]:
    total = response.totalQuestions
    summary["totalQuestions"] = total
    summary["correct"] = response.correctAnswers
    summary["unresolved"] = response.unresolvedQuestions
    summary["percentage"] = (response.correctAnswers / total) * 100 if total > 0 else 0
    summary["lastUpdated"] = utc_now()
    return summary


def validate_submission(
    db: DBSession,
    student_id: str,
    request: ValidationRequest | dict[str, Any],
    policy: UnresolvedPolicy | str | None = None,
) -> ValidationResponse:
    """
    Validate answers and store the verdicts on the student's record.

    The record must already exist (answers are saved before validation).
    The homework CSV is the fallback answer source.
    """
    if not isinstance(request, ValidationRequest):
        request = ValidationRequest.model_validate(request)
    student_id = validate_id("studentId", student_id)
    assignment = _require_assigned(db, request.assignmentId, student_id)

    record = get_student_answer(db, assignment.id, student_id)
    if record is None:
        raise HTTPException(
            status_code=400,
            detail="Student answers not found. Please save answers first before validating.",
        )

    response = validate_answers(
        request,
        csv_loader_for(db),
        page_map=get_page_map(assignment.homework),
        policy=policy,
    )

    record.pages = apply_verdicts(record.pages, response.validationResults)
    record.summary = _score_summary(record.summary, response)
    db.commit()
    db.refresh(record)
    return response


def get_correct_answers(
    db: DBSession, assignment_id: str, student_id: str
) -> dict[str, Any]:
    """Answer key stored on the student's record."""
    record = get_student_answer(db, assignment_id, validate_id("studentId", student_id))
    if record is None:
        raise HTTPException(
            status_code=404,
            detail="Student answer record not found. Please start the homework first.",
        )
    correct_answers = record.correct_answers
    return {
        "assignmentId": assignment_id,
        "totalCorrectAnswers": len(correct_answers),
        "correctAnswers": correct_answers,
    }


def _stored_answer(component: dict[str, Any]) -> Any:
    blanks = component.get("blanks")
    if isinstance(blanks, list) and blanks and isinstance(blanks[0], dict):
        return blanks[0].get("studentAnswer", "")
    student_answer = component.get("studentAnswer") or {}
    return student_answer.get("selected", [])


def _is_component_correct(component: dict[str, Any]) -> bool:
    if (component.get("studentAnswer") or {}).get("isCorrect"):
        return True
    blanks = component.get("blanks")
    if isinstance(blanks, list) and blanks and isinstance(blanks[0], dict):
        return bool(blanks[0].get("isCorrect"))
    return False


def _page_indicators(pages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    indicators = []
    for page in pages:
        correct_count = 0
        total = 0
        for component in page.get("components", []):
            if question_kind(component.get("type")) is None:
                continue
            total += 1
            if _is_component_correct(component):
                correct_count += 1
        indicators.append(
            {
                "pageId": page.get("pageId"),
                "status": "correct" if correct_count == total else "incorrect",
                "correctCount": correct_count,
                "totalQuestions": total,
                "needsEdit": correct_count < total,
            }
        )
    return indicators


def _indicator_summary(indicators: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "totalPages": len(indicators),
        "completedPages": sum(1 for item in indicators if item["status"] == "correct"),
        "pagesNeedingEdit": sum(1 for item in indicators if item["needsEdit"]),
        "overallStatus": (
            "all_correct"
            if all(item["status"] == "correct" for item in indicators)
            else "has_errors"
        ),
    }


def final_submit(
    db: DBSession,
    assignment_id: str,
    student_id: str,
    policy: UnresolvedPolicy | str | None = None,
) -> dict[str, Any]:
    """
    Re-grade every stored answer and finalize the score.

    Uses the homework exercise data first and the answer key stored at
    homework start as fallback. Returns the updated score with per-page
    indicators.
    """
    student_id = validate_id("studentId", student_id)
    assignment = _require_assigned(db, assignment_id, student_id)
    record = get_student_answer(db, assignment.id, student_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Assignment not found")

    answers: dict[str, Any] = {}
    pages = record.pages
    for page in pages:
        page_id = page.get("pageId")
        if not isinstance(page_id, int) or page_id < 1:
            continue
        for component in page.get("components", []):
            number = component.get("questionNumber")
            if question_kind(component.get("type")) is None or not isinstance(number, int):
                continue
            answers[f"page_{page_id - 1}_question_{number}"] = _stored_answer(component)

    answer_key = {
        key: AnswerKeyEntry.model_validate(entry)
        for key, entry in record.correct_answers.items()
    }
    request = ValidationRequest(
        assignmentId=assignment.id,
        answers=answers,
        homeworkData={"exerciseData": assignment.homework.exercise_data},
    )
    response = validate_answers(
        request,
        page_map=get_page_map(assignment.homework),
        policy=resolve_policy(policy),
        answer_key=answer_key,
    )

    pages = apply_verdicts(pages, response.validationResults)
    record.pages = pages
    summary = _score_summary(record.summary, response)
    summary["status"] = SubmissionStatus.SUBMITTED.value
    record.summary = summary
    db.commit()
    db.refresh(record)

    indicators = _page_indicators(pages)
    logger.info(
        f"Final submit for {assignment.id}: "
        f"{response.correctAnswers}/{response.totalQuestions}"
    )
    return {
        "assignmentId": assignment.id,
        "updatedScore": {
            "correct": response.correctAnswers,
            "total": response.totalQuestions,
            "percentage": summary["percentage"],
        },
        "pageIndicators": indicators,
        "summary": _indicator_summary(indicators),
    }


def review_submission(
    db: DBSession, assignment_id: str, student_id: str
) -> dict[str, Any]:
    """
    Review data of a submitted homework: stored pages, per-page
    indicators and the overall summary.
    """
    student_id = validate_id("studentId", student_id)
    record = get_student_answer(db, assignment_id, student_id)
    if record is None:
        raise HTTPException(
            status_code=404,
            detail="Assignment not found. Please complete the homework first.",
        )
    summary = record.summary
    if summary.get("status") != SubmissionStatus.SUBMITTED.value:
        raise HTTPException(
            status_code=400,
            detail="Assignment is not submitted yet. Please submit the assignment first.",
        )

    homework = record.assignment.homework
    indicators = _page_indicators(record.pages)
    return {
        "assignmentId": assignment_id,
        "assignment": {
            "id": record.assignment_id,
            "homeworkName": homework.name,
            "description": homework.description,
        },
        "pages": record.pages,
        "score": {
            "correct": summary.get("correct", 0),
            "total": summary.get("totalQuestions", 0),
            "percentage": summary.get("percentage", 0),
        },
        "pageIndicators": indicators,
        "summary": _indicator_summary(indicators),
    }


def edit_page(
    db: DBSession, assignment_id: str, student_id: str, page_id: int
) -> dict[str, Any]:
    """Components of one stored page (1-based page id); only wrong ones are editable."""
    student_id = validate_id("studentId", student_id)
    record = get_student_answer(db, assignment_id, student_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Assignment not found")

    page = next((item for item in record.pages if item.get("pageId") == page_id), None)
    if page is None:
        raise HTTPException(status_code=404, detail="Page not found")

    components = []
    for component in page.get("components", []):
        is_correct = _is_component_correct(component)
        components.append(
            {**component, "isCorrect": is_correct, "editable": not is_correct, "editMode": True}
        )
    logger.info(f"Edit mode for page {page_id} of {assignment_id} (student {student_id})")
    return {"pageId": page_id, "components": components, "editMode": True}
