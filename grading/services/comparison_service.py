"""Answer comparison for multiple-select and fill-in-blank questions."""
from __future__ import annotations

import logging
from typing import Any

from grading.models.exercise import ChoiceOption, QuestionKind
from grading.models.validation import ValidationVerdict
from grading.services.answer_key_service import ResolvedAnswer
from grading.utils.answer_text import answer_to_text, clean_answer_text

log = logging.getLogger(__name__)


def _option_text(options: list[ChoiceOption], index: int) -> str:
    """Text of the option at a legacy numeric index ("" if out of range)."""
    if 0 <= index < len(options):
        return answer_to_text(options[index].text)
    return ""


def user_answer_texts(user_answer: Any, options: list[ChoiceOption] | None = None) -> list[str]:
    """Cleaned texts of a multiple-select submission."""
    options = options or []
    values = user_answer if isinstance(user_answer, list) else [user_answer]

    texts = []
    for value in values:
        if value is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            value = _option_text(options, value)
        text = clean_answer_text(value)
        if text:
            texts.append(text)
    return texts


def user_answer_text(user_answer: Any) -> str:
    """Cleaned text of a fill-in-blank submission (first element of a list)."""
    if isinstance(user_answer, list):
        user_answer = user_answer[0] if user_answer else ""
    return clean_answer_text(user_answer)


def compare_multiple_select(user_texts: list[str], correct_texts: list[str]) -> bool:
    """Case-insensitive set equality."""
    user_set = {text.lower() for text in user_texts}
    correct_set = {text.lower() for text in correct_texts}
    return user_set == correct_set


def compare_fill_blank(user_text: str, correct_texts: list[str]) -> bool:
    """Case-insensitive match against any accepted variant."""
    lowered = user_text.lower()
    return any(lowered == text.lower() for text in correct_texts)


def judge_answer(
    question_key: str,
    user_answer: Any,
    resolved: ResolvedAnswer,
) -> ValidationVerdict | None:
    """
    Compare one submitted answer against resolved correct answers.

    Returns None when the correct-answer set is empty, so the question is
    treated as not found rather than as wrong.
    """
    if not resolved.correct_texts:
        return None

    if resolved.kind is QuestionKind.MULTIPLE_CHOICE:
        texts = user_answer_texts(user_answer, resolved.options)
        is_correct = compare_multiple_select(texts, resolved.correct_texts)
        correct_answer: Any = list(resolved.correct_texts)
    elif resolved.kind is QuestionKind.FILL_BLANK:
        text = user_answer_text(user_answer)
        is_correct = compare_fill_blank(text, resolved.correct_texts)
        if len(resolved.correct_texts) == 1:
            correct_answer = resolved.correct_texts[0]
        else:
            correct_answer = list(resolved.correct_texts)
    else:
        raise ValueError(f"Unhandled question kind: {resolved.kind}")

    log.debug(
        "%s: %s (source=%s)",
        question_key,
        "correct" if is_correct else "incorrect",
        resolved.source,
    )
    return ValidationVerdict(
        isCorrect=is_correct,
        userAnswer=user_answer,
        correctAnswer=correct_answer,
        questionKey=question_key,
        resolved=True,
        source=resolved.source,
    )


def unresolved_verdict(question_key: str, user_answer: Any) -> ValidationVerdict:
    """Verdict for a question without any correct-answer data."""
    return ValidationVerdict(
        isCorrect=False,
        userAnswer=user_answer,
        correctAnswer=None,
        questionKey=question_key,
        resolved=False,
        source=None,
    )
