"""Database models."""
from grading.models.db.homework import AssignmentStatus, Homework, HomeworkAssignment
from grading.models.db.student_answer import StudentAnswer, SubmissionStatus

__all__ = [
    "AssignmentStatus",
    "Homework",
    "HomeworkAssignment",
    "StudentAnswer",
    "SubmissionStatus",
]
