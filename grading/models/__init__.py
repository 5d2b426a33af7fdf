"""Pydantic models."""
from grading.models.validation import (
    AnswerKeyEntry,
    CorrectOption,
    HomeworkData,
    PageMapping,
    ValidationRequest,
    ValidationResponse,
    ValidationVerdict,
)

__all__ = [
    "AnswerKeyEntry",
    "CorrectOption",
    "HomeworkData",
    "PageMapping",
    "ValidationRequest",
    "ValidationResponse",
    "ValidationVerdict",
]
