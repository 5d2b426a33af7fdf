"""
Correct-answer extraction.

Two sources are supported: the exercise JSON embedded in a homework
(authoritative, addressed by cumulative page index) and the CSV answer-key
table uploaded with it (fallback, addressed by composite key).
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from grading.config import LEGACY_CSV_KEY_GUESSING
from grading.models.exercise import (
    ChoiceOption,
    Exercise,
    FillBlankComponent,
    MultipleChoiceComponent,
    QuestionKind,
    iter_pages,
    parse_exercise_structure,
    question_kind,
)
from grading.models.validation import AnswerKeyEntry, CorrectOption, PageMapping
from grading.utils.answer_text import (
    clean_answer_text,
    is_usable_answer_text,
    normalize_correct_texts,
)

log = logging.getLogger(__name__)

SOURCE_EXERCISE = "exercise"
SOURCE_CSV = "csv"

TEXT_ANSWER_OPTION_ID = "text_answer"

READING_EXERCISE_ID = "reading_comprehension_1"
MATH_EXERCISE_ID = "math_word_problems_1"

_WRAPPING_QUOTE_RE = re.compile(r'^"|"$')
_LEADING_INT_RE = re.compile(r"-?\d+")


@dataclass
class ResolvedAnswer:
    """Correct answers resolved for one question."""

    kind: QuestionKind
    correct_texts: list[str]
    correct_options: list[CorrectOption] = field(default_factory=list)
    source: str = SOURCE_EXERCISE
    key: str | None = None
    options: list[ChoiceOption] = field(default_factory=list)


def composite_key(
    exercise_id: object, page_id: object, question_type: object, question_number: object
) -> str:
    return f"{exercise_id}_{page_id}_{question_type}_{question_number}"


# ---------------------------------------------------------------------------
# Exercise JSON
# ---------------------------------------------------------------------------


def load_exercise_structure(exercise_data: object) -> list[Exercise]:
    """Decode exercise data (JSON text or decoded list) into dataclasses."""
    if exercise_data is None or exercise_data == "":
        return []
    if isinstance(exercise_data, (bytes, str)):
        try:
            exercise_data = json.loads(exercise_data)
        except (json.JSONDecodeError, TypeError) as exc:
            log.warning("Invalid exercise data, ignoring embedded answers: %s", exc)
            return []
    return parse_exercise_structure(exercise_data)


def _resolve_multiple_choice(component: MultipleChoiceComponent) -> ResolvedAnswer | None:
    correct_options = []
    for option in component.options:
        if not option.correct:
            continue
        text = clean_answer_text(option.text)
        if is_usable_answer_text(text):
            correct_options.append(CorrectOption(id=option.id, text=text))

    if not correct_options and is_usable_answer_text(component.correct_answer):
        log.debug("No options marked correct, using component-level correct_answer")
        correct_options = [
            CorrectOption(
                id=TEXT_ANSWER_OPTION_ID,
                text=clean_answer_text(component.correct_answer),
            )
        ]

    texts = normalize_correct_texts([option.text for option in correct_options])
    if not texts:
        return None
    return ResolvedAnswer(
        kind=QuestionKind.MULTIPLE_CHOICE,
        correct_texts=texts,
        correct_options=correct_options,
        options=component.options,
    )


def _resolve_fill_blank(component: FillBlankComponent) -> ResolvedAnswer | None:
    answers = [answer for blank in component.blanks for answer in blank.correct_answers]
    texts = normalize_correct_texts(answers, fill_blank=True)
    if not texts and component.correct_answer is not None:
        texts = normalize_correct_texts([component.correct_answer], fill_blank=True)
    if not texts:
        return None
    return ResolvedAnswer(
        kind=QuestionKind.FILL_BLANK,
        correct_texts=texts,
        correct_options=[
            CorrectOption(id=TEXT_ANSWER_OPTION_ID, text=text) for text in texts
        ],
    )


def find_correct_answer(
    exercises: list[Exercise],
    page_index: int,
    question_number: int,
    question_type: QuestionKind | None = None,
) -> ResolvedAnswer | None:
    """
    Resolve correct answers from the exercise structure.

    Args:
        exercises: Parsed exercise structure
        page_index: 0-based page position counted across all exercises
        question_number: Question number within the page
        question_type: Restrict the match to one kind (any gradable kind if None)

    Returns None when the page, a matching component or any usable correct
    answer text is missing. The first matching component with usable text
    decides; components without usable text are skipped.
    """
    for cumulative, exercise, _, page in iter_pages(exercises):
        if cumulative != page_index:
            continue
        log.debug(
            "Found page %d (exercise=%s, page_id=%s, template=%s)",
            cumulative,
            exercise.exercise_id,
            page.page_id,
            page.template_type,
        )
        for component in page.components:
            if component.kind is None:
                continue
            if question_type is not None and component.kind is not question_type:
                continue
            number = component.question_number
            if number is not None and number != question_number:
                continue

            if isinstance(component, MultipleChoiceComponent):
                resolved = _resolve_multiple_choice(component)
            elif isinstance(component, FillBlankComponent):
                resolved = _resolve_fill_blank(component)
            else:
                raise ValueError(f"Unhandled question kind: {component.kind}")

            if resolved is None:
                log.info(
                    "Component for page %d question %d has no usable correct answer",
                    page_index,
                    question_number,
                )
                continue
            return resolved
        return None

    log.debug("No page at cumulative index %d", page_index)
    return None


def build_page_map(exercises: list[Exercise]) -> list[PageMapping | None]:
    """Explicit cumulative page -> (exercise id, page id) mapping."""
    page_map: list[PageMapping | None] = []
    for _, exercise, local_index, page in iter_pages(exercises):
        if not exercise.exercise_id:
            page_map.append(None)
            continue
        page_id = page.page_id if page.page_id not in (None, "") else local_index + 1
        page_map.append(PageMapping(exerciseId=str(exercise.exercise_id), pageId=page_id))
    return page_map


# ---------------------------------------------------------------------------
# CSV answer key
# ---------------------------------------------------------------------------


def split_csv_line(line: str) -> list[str]:
    """Split one CSV line, keeping commas that appear inside quotes."""
    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append(_finish_field(current))
            current = []
        else:
            current.append(char)
    values.append(_finish_field(current))
    return values


def _finish_field(chars: list[str]) -> str:
    return _WRAPPING_QUOTE_RE.sub("", "".join(chars).strip())


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    match = _LEADING_INT_RE.match(value.strip())
    return int(match.group()) if match else None


def extract_correct_answers(csv_content: str | None) -> dict[str, AnswerKeyEntry]:
    """
    Build the answer key from a CSV table.

    Expected columns: exercise_id, page_id, question_type, question_number,
    question, is_correct, correct_answer_text, answer_text, option_id.
    Rows with a wrong column count are logged and skipped.
    """
    if not csv_content or not isinstance(csv_content, str):
        log.info("No CSV content provided")
        return {}

    lines = csv_content.strip().split("\n")
    if len(lines) < 2:
        log.info("CSV content has no data rows")
        return {}

    headers = [header.replace('"', "").strip() for header in lines[0].split(",")]
    answer_key: dict[str, AnswerKeyEntry] = {}

    for row_number, line in enumerate(lines[1:], start=1):
        values = split_csv_line(line)
        if len(values) != len(headers):
            log.warning("Skipping malformed CSV row %d: %s", row_number, line)
            continue

        row = dict(zip(headers, values))
        is_correct = row.get("is_correct", "").lower() == "true"
        correct_answer_text = row.get("correct_answer_text", "")
        has_correct_text = bool(correct_answer_text.strip())
        if not (is_correct or has_correct_text):
            continue

        question_type = row.get("question_type", "")
        key = composite_key(
            row.get("exercise_id", ""),
            row.get("page_id", ""),
            question_type,
            row.get("question_number", ""),
        )
        entry = answer_key.get(key)
        if entry is None:
            entry = AnswerKeyEntry(
                exerciseId=row.get("exercise_id"),
                pageId=_parse_int(row.get("page_id")),
                questionType=question_type,
                questionNumber=_parse_int(row.get("question_number")),
                question=row.get("question"),
            )
            answer_key[key] = entry

        answer_text = row.get("answer_text", "")
        text = correct_answer_text if has_correct_text else answer_text
        if is_usable_answer_text(text) and text not in entry.correctAnswerText:
            entry.correctAnswerText.append(text)

        if (
            question_type == QuestionKind.MULTIPLE_CHOICE.value
            and is_correct
            and is_usable_answer_text(answer_text)
        ):
            entry.correctOptions.append(
                CorrectOption(
                    id=row.get("option_id") or str(len(entry.correctOptions)),
                    text=answer_text,
                )
            )

    log.info("Extracted correct answers for %d questions", len(answer_key))
    return answer_key


def legacy_candidate_keys(page_index: int, question_number: int) -> list[str]:
    """
    Guess composite keys for a 0-based page index.

    Assumes pages 0-2 belong to the reading exercise and pages from 2 on to
    the math exercise. The order is fixed and duplicates are kept.
    """
    fill = QuestionKind.FILL_BLANK.value
    choice = QuestionKind.MULTIPLE_CHOICE.value
    keys = []
    if 0 <= page_index <= 2:
        keys.append(composite_key(READING_EXERCISE_ID, page_index + 1, fill, question_number))
        keys.append(composite_key(READING_EXERCISE_ID, page_index + 1, choice, question_number))
    if page_index >= 2:
        keys.append(composite_key(MATH_EXERCISE_ID, page_index - 1, fill, question_number))
        keys.append(composite_key(MATH_EXERCISE_ID, page_index - 1, choice, question_number))
        keys.append(composite_key(MATH_EXERCISE_ID, page_index, fill, question_number))
        keys.append(composite_key(MATH_EXERCISE_ID, page_index, choice, question_number))
    keys.append(composite_key(READING_EXERCISE_ID, page_index + 1, fill, question_number))
    keys.append(composite_key(MATH_EXERCISE_ID, page_index + 1, fill, question_number))
    return keys


def candidate_keys(
    page_index: int,
    question_number: int,
    page_map: list[PageMapping | None] | None = None,
    legacy: bool | None = None,
) -> list[str]:
    """Composite keys to try for a question, explicit mapping first."""
    if legacy is None:
        legacy = LEGACY_CSV_KEY_GUESSING

    keys = []
    if page_map and 0 <= page_index < len(page_map):
        mapping = page_map[page_index]
        if mapping is not None:
            for kind in (QuestionKind.FILL_BLANK, QuestionKind.MULTIPLE_CHOICE):
                keys.append(
                    composite_key(mapping.exerciseId, mapping.pageId, kind.value, question_number)
                )
    if legacy:
        keys.extend(legacy_candidate_keys(page_index, question_number))
    return keys


def resolve_from_answer_key(
    answer_key: dict[str, AnswerKeyEntry],
    page_index: int,
    question_number: int,
    page_map: list[PageMapping | None] | None = None,
    legacy: bool | None = None,
) -> ResolvedAnswer | None:
    """Resolve correct answers from a CSV answer key by candidate keys."""
    keys = candidate_keys(page_index, question_number, page_map, legacy)
    for key in keys:
        entry = answer_key.get(key)
        if entry is None:
            continue
        kind = question_kind(entry.questionType) or QuestionKind.FILL_BLANK
        texts = normalize_correct_texts(
            entry.correctAnswerText, fill_blank=kind is QuestionKind.FILL_BLANK
        )
        if not texts:
            continue
        log.debug("Found CSV answer key entry %s", key)
        options = entry.correctOptions or [
            CorrectOption(id=TEXT_ANSWER_OPTION_ID, text=text) for text in texts
        ]
        return ResolvedAnswer(
            kind=kind,
            correct_texts=texts,
            correct_options=list(options),
            source=SOURCE_CSV,
            key=key,
        )

    log.debug("No CSV answer key entry for any of %s", keys)
    return None
