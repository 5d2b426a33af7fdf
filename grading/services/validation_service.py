"""Service layer for validating submitted homework answers."""
from __future__ import annotations

import enum
import logging
import re
from typing import Any, Callable

from grading.config import UNRESOLVED_POLICY
from grading.models.validation import (
    AnswerKeyEntry,
    PageMapping,
    ValidationRequest,
    ValidationResponse,
    ValidationVerdict,
)
from grading.services.answer_key_service import (
    extract_correct_answers,
    find_correct_answer,
    load_exercise_structure,
    resolve_from_answer_key,
)
from grading.services.comparison_service import judge_answer, unresolved_verdict

log = logging.getLogger(__name__)

QUESTION_KEY_RE = re.compile(r"page_(\d+)_question_(\d+)")
READING_TIME_MARKER = "readingTime"

CsvLoader = Callable[[str], str | None]


class UnresolvedPolicy(str, enum.Enum):
    """How questions without correct-answer data count toward the score."""

    COUNT_AS_INCORRECT = "count_as_incorrect"
    EXCLUDE = "exclude"


def resolve_policy(policy: UnresolvedPolicy | str | None) -> UnresolvedPolicy:
    """Resolve a policy value, falling back to the configured default."""
    if policy is None:
        policy = UNRESOLVED_POLICY
    try:
        return UnresolvedPolicy(policy)
    except ValueError:
        log.warning("Unknown unresolved policy %r, counting as incorrect", policy)
        return UnresolvedPolicy.COUNT_AS_INCORRECT


def parse_question_key(key: str) -> tuple[int, int] | None:
    """Extract (0-based page index, question number) from "page_P_question_Q"."""
    match = QUESTION_KEY_RE.search(key)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def validate_answers(
    request: ValidationRequest | dict[str, Any],
    csv_loader: CsvLoader | None = None,
    *,
    page_map: list[PageMapping | None] | None = None,
    policy: UnresolvedPolicy | str | None = None,
    legacy_key_guessing: bool | None = None,
    answer_key: dict[str, AnswerKeyEntry] | None = None,
) -> ValidationResponse:
    """
    Validate every answer of a submission.

    Embedded exercise data is tried first; the CSV answer key returned by
    csv_loader(assignmentId) is the fallback and is loaded at most once.
    A pre-extracted answer_key replaces the loader. Questions resolved by
    neither source get an unresolved verdict.
    """
    if not isinstance(request, ValidationRequest):
        request = ValidationRequest.model_validate(request)
    policy = resolve_policy(policy)

    log.info(
        "Validating %d answers for assignment %s",
        len(request.answers),
        request.assignmentId,
    )

    exercises = load_exercise_structure(request.homeworkData.exerciseData)
    results: dict[str, ValidationVerdict] = {}

    for key, user_answer in request.answers.items():
        if READING_TIME_MARKER in key:
            continue
        parsed = parse_question_key(key)
        if parsed is None:
            log.warning("Skipping invalid question key format: %s", key)
            continue
        page_index, question_number = parsed

        verdict = None
        resolved = find_correct_answer(exercises, page_index, question_number)
        if resolved is not None:
            verdict = judge_answer(key, user_answer, resolved)

        if verdict is None:
            if answer_key is None:
                answer_key = _load_answer_key(csv_loader, request.assignmentId)
            resolved = resolve_from_answer_key(
                answer_key,
                page_index,
                question_number,
                page_map=page_map,
                legacy=legacy_key_guessing,
            )
            if resolved is not None:
                verdict = judge_answer(key, user_answer, resolved)

        if verdict is None:
            log.warning("No correct answer found in exercise data or CSV for %s", key)
            verdict = unresolved_verdict(key, user_answer)

        results[key] = verdict

    return summarize_verdicts(results, policy)


def _load_answer_key(
    csv_loader: CsvLoader | None, assignment_id: str
) -> dict[str, AnswerKeyEntry]:
    if csv_loader is None:
        return {}
    csv_content = csv_loader(assignment_id)
    if not csv_content:
        log.info("No CSV answer key for assignment %s", assignment_id)
        return {}
    return extract_correct_answers(csv_content)


def summarize_verdicts(
    results: dict[str, ValidationVerdict],
    policy: UnresolvedPolicy = UnresolvedPolicy.COUNT_AS_INCORRECT,
) -> ValidationResponse:
    """Aggregate verdicts into totals according to the unresolved policy."""
    unresolved = sum(1 for verdict in results.values() if not verdict.resolved)
    correct = sum(1 for verdict in results.values() if verdict.isCorrect)
    total = len(results)
    if policy is UnresolvedPolicy.EXCLUDE:
        total -= unresolved

    log.info(
        "Validation completed: %d/%d correct (%d unresolved)", correct, total, unresolved
    )
    return ValidationResponse(
        validationResults=results,
        totalQuestions=total,
        correctAnswers=correct,
        unresolvedQuestions=unresolved,
    )
