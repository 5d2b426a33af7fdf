"""Exercise structure dataclasses (exercises -> pages -> components)."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Union

log = logging.getLogger(__name__)


class QuestionKind(str, enum.Enum):
    """Gradable component types."""

    MULTIPLE_CHOICE = "multiple_choice_checkbox"
    FILL_BLANK = "fill_blank_question"


TIMER_SELECTOR_TYPE = "timer_selector"


def question_kind(type_tag: object) -> QuestionKind | None:
    """Map a component type tag to its gradable kind, if any."""
    try:
        return QuestionKind(type_tag)
    except ValueError:
        return None


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _is_true(value: object) -> bool:
    return value is True or value == "true"


@dataclass
class ChoiceOption:
    id: str
    text: Any
    correct: bool = False


@dataclass
class Blank:
    id: str
    correct_answers: list[Any] = field(default_factory=list)


@dataclass
class MultipleChoiceComponent:
    question_number: int | None
    options: list[ChoiceOption] = field(default_factory=list)
    correct_answer: Any = None
    kind: QuestionKind = QuestionKind.MULTIPLE_CHOICE


@dataclass
class FillBlankComponent:
    question_number: int | None
    blanks: list[Blank] = field(default_factory=list)
    correct_answer: Any = None
    kind: QuestionKind = QuestionKind.FILL_BLANK


@dataclass
class OtherComponent:
    type: str
    question_number: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)
    kind: None = None


Component = Union[MultipleChoiceComponent, FillBlankComponent, OtherComponent]


@dataclass
class Page:
    page_id: Any = None
    template_type: str | None = None
    components: list[Component] = field(default_factory=list)


@dataclass
class Exercise:
    exercise_id: str | None = None
    title: str | None = None
    pages: list[Page] = field(default_factory=list)


def _parse_option(raw: object, index: int) -> ChoiceOption:
    if not isinstance(raw, dict):
        # Bare string options carry their own text
        return ChoiceOption(id=str(index), text=raw, correct=False)
    text = raw.get("text") or raw.get("answer_text") or ""
    correct = _is_true(raw.get("correct")) or raw.get("is_correct") is True
    return ChoiceOption(id=str(raw.get("id") or index), text=text, correct=correct)


def _parse_blank(raw: object, index: int) -> Blank:
    if not isinstance(raw, dict):
        return Blank(id=str(index))
    answers = raw.get("correct_answers") or raw.get("correctAnswers") or []
    if not isinstance(answers, list):
        answers = [answers]
    return Blank(id=str(raw.get("id") or index), correct_answers=list(answers))


def parse_component(raw: dict[str, Any]) -> Component:
    """Build the tagged component for a raw component dict."""
    type_tag = raw.get("type")
    number = _as_int(raw.get("question_number") or raw.get("questionNumber"))
    if number == 0:
        number = None

    kind = question_kind(type_tag)
    if kind is QuestionKind.MULTIPLE_CHOICE:
        options = raw.get("options")
        if not isinstance(options, list):
            options = []
        return MultipleChoiceComponent(
            question_number=number,
            options=[_parse_option(opt, i) for i, opt in enumerate(options)],
            correct_answer=raw.get("correct_answer") or raw.get("correctAnswer"),
        )
    if kind is QuestionKind.FILL_BLANK:
        blanks = raw.get("blanks")
        if not isinstance(blanks, list):
            blanks = []
        return FillBlankComponent(
            question_number=number,
            blanks=[_parse_blank(blank, i) for i, blank in enumerate(blanks)],
            correct_answer=(
                raw.get("correct_answer")
                or raw.get("correctAnswer")
                or raw.get("answer")
            ),
        )
    return OtherComponent(type=str(type_tag), question_number=number, raw=raw)


def parse_page(raw: object) -> Page:
    if not isinstance(raw, dict):
        # Keep the slot so cumulative page positions stay aligned
        log.warning("Malformed page entry ignored: %r", raw)
        return Page()
    components = []
    raw_components = raw.get("components")
    if isinstance(raw_components, list):
        for item in raw_components:
            if not isinstance(item, dict):
                log.warning("Malformed component ignored: %r", item)
                continue
            components.append(parse_component(item))
    return Page(
        page_id=raw.get("page_id"),
        template_type=raw.get("template_type"),
        components=components,
    )


def parse_exercise_structure(data: object) -> list[Exercise]:
    """Parse already-decoded exercise JSON into dataclasses."""
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        log.warning("Exercise structure is not a list: %s", type(data).__name__)
        return []

    exercises = []
    for raw in data:
        if not isinstance(raw, dict):
            log.warning("Malformed exercise entry ignored: %r", raw)
            continue
        pages = raw.get("pages")
        if not isinstance(pages, list):
            log.debug(
                "Exercise %r has no pages", raw.get("exercise_id") or raw.get("title")
            )
            pages = []
        exercises.append(
            Exercise(
                exercise_id=raw.get("exercise_id"),
                title=raw.get("title"),
                pages=[parse_page(page) for page in pages],
            )
        )
    return exercises


def iter_pages(exercises: list[Exercise]):
    """Yield (cumulative_index, exercise, local_index, page) in order."""
    cumulative = 0
    for exercise in exercises:
        for local_index, page in enumerate(exercise.pages):
            yield cumulative, exercise, local_index, page
            cumulative += 1
