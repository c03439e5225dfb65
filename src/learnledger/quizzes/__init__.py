"""Quizzes and assignments - gated listings and learner submissions."""

from learnledger.quizzes.models import (
    AssignmentSubmissionResult,
    AttemptSummary,
    QuizResult,
    QuizSubmissionEntry,
)
from learnledger.quizzes.service import CourseworkService, score_answers

__all__ = [
    "AssignmentSubmissionResult",
    "AttemptSummary",
    "CourseworkService",
    "QuizResult",
    "QuizSubmissionEntry",
    "score_answers",
]
