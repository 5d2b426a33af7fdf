"""Validation request/response Pydantic models."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HomeworkData(BaseModel):
    """Homework content sent along with a validation request."""

    model_config = ConfigDict(extra="allow")

    exerciseData: str | None = None


class ValidationRequest(BaseModel):
    """Model for validating a batch of answers."""

    assignmentId: str = Field(..., min_length=1)
    answers: dict[str, Any]
    homeworkData: HomeworkData = Field(default_factory=HomeworkData)


class ValidationVerdict(BaseModel):
    """Per-question correctness result."""

    model_config = ConfigDict(frozen=True)

    isCorrect: bool
    userAnswer: Any = None
    correctAnswer: Any = None
    questionKey: str
    resolved: bool = True
    source: str | None = None


class ValidationResponse(BaseModel):
    """Model for validation results."""

    validationResults: dict[str, ValidationVerdict]
    totalQuestions: int
    correctAnswers: int
    unresolvedQuestions: int = 0


class CorrectOption(BaseModel):
    """Correct option of a multiple-choice question."""

    id: str
    text: str
    isCorrect: bool = True


class AnswerKeyEntry(BaseModel):
    """Accepted answers for one composite question key."""

    exerciseId: str | None = None
    pageId: int | None = None
    questionType: str | None = None
    questionNumber: int | None = None
    question: str | None = None
    correctAnswerText: list[str] = Field(default_factory=list)
    correctOptions: list[CorrectOption] = Field(default_factory=list)


class PageMapping(BaseModel):
    """Exercise and page id of one cumulative page."""

    exerciseId: str
    pageId: int | str
