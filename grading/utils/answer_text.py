"""Answer text normalization.

Answer texts reach the grader after one or more JSON-stringify/parse or CSV
quoting round trips and often carry leftover quote and escape artifacts.
The same cleanup is applied to submitted answers and to correct answers so
both sides compare on equal terms.
"""
from __future__ import annotations

import logging
from typing import Any

from grading.config import NORMALIZE_MAX_ITERATIONS

log = logging.getLogger(__name__)

FORMULA_PREFIX = "= "


def answer_to_text(value: Any) -> str:
    """Render a raw answer value as text (JavaScript-style for numbers)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _strip_one_artifact(text: str) -> str | None:
    """Apply the first matching cleanup rule, or return None if none fires."""
    # Order matters: a plain quote is checked before its escaped form
    if text.endswith('"'):
        return text[:-1]
    if text.startswith('"'):
        return text[1:]
    if text.endswith('\\"'):
        return text[:-2]
    if text.startswith('\\"'):
        return text[2:]
    if text.endswith("\\"):
        return text[:-1]
    return None


def clean_answer_text(
    value: Any, max_iterations: int = NORMALIZE_MAX_ITERATIONS
) -> str:
    """
    Strip wrapping quotes, escaped quotes and trailing backslashes.

    Runs a bounded loop that applies one rule per iteration, trimming
    after each rule so artifacts exposed by the trim are caught by the
    next pass, and stops as soon as no rule fires.
    """
    text = answer_to_text(value).strip()
    original = text
    iterations = 0
    while iterations < max_iterations:
        cleaned = _strip_one_artifact(text)
        if cleaned is None:
            break
        text = cleaned.strip()
        iterations += 1

    if iterations:
        log.debug("Cleaned answer text %r -> %r (%d iterations)", original, text, iterations)
    return text


def strip_formula_prefix(text: str) -> str:
    """Drop the spreadsheet formula artifact ("= 42" -> "42")."""
    if text.startswith(FORMULA_PREFIX):
        return text[len(FORMULA_PREFIX):].strip()
    return text


def is_usable_answer_text(text: Any) -> bool:
    """Blank values and the literal string "null" do not count as answers."""
    if text is None:
        return False
    value = answer_to_text(text).strip()
    return bool(value) and value.lower() != "null"


def normalize_correct_texts(texts: list[Any], fill_blank: bool = False) -> list[str]:
    """Clean correct-answer texts, dropping unusable and duplicate values."""
    normalized: list[str] = []
    for raw in texts:
        text = clean_answer_text(raw)
        if fill_blank:
            text = strip_formula_prefix(text)
        if not is_usable_answer_text(text):
            continue
        if text not in normalized:
            normalized.append(text)
    return normalized
