"""Data models for quiz and assignment submission."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from learnledger.store.models import QuizAttempt, Submission


@dataclass
class QuizResult:
    """Outcome of a quiz submission.

    Attributes:
        attempt: The stored attempt.
        score: Number of correctly answered questions.
        total: Number of questions in the quiz.
        correct_answers: Correct option index per question, revealed after submitting.
    """

    attempt: QuizAttempt
    score: int
    total: int
    correct_answers: list[int]


@dataclass
class QuizSubmissionEntry:
    """One row of a quiz's submission summary."""

    learner_id: str
    score: int
    total: int
    submitted_at: datetime


@dataclass
class AttemptSummary:
    """A learner's attempt with the quiz it belongs to."""

    attempt_id: str
    quiz_id: str
    quiz_title: str
    course_id: str
    course_title: str
    score: int
    total: int
    attempted_at: datetime


@dataclass
class AssignmentSubmissionResult:
    """Outcome of submitting an assignment.

    Attributes:
        submission: The learner's current submission.
        resubmitted: True if an earlier submission was replaced.
    """

    submission: Submission
    resubmitted: bool
