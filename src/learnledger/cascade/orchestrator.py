"""CourseDeletionOrchestrator - removes a course and everything that references it."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, or_, select

from learnledger.store.database import Database
from learnledger.store.exceptions import ForbiddenError, NotFoundError
from learnledger.store.models import (
    ActorContext,
    Assignment,
    Course,
    DoubtSession,
    Enrollment,
    Evaluation,
    ForumPost,
    Payment,
    Quiz,
    QuizAttempt,
    StudyPlan,
    Submission,
)

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CascadeStep:
    """One table to clear when a course is deleted.

    Attributes:
        name: Key used in the deletion report.
        model: Mapped class whose rows are removed.
        condition: Builds the WHERE clause selecting rows that belong to a course.
    """

    name: str
    model: type[Any]
    condition: Callable[[str], ColumnElement[bool]]


def _course_quizzes(course_id: str) -> Any:
    return select(Quiz.id).where(Quiz.course_id == course_id)


def _course_assignments(course_id: str) -> Any:
    return select(Assignment.id).where(Assignment.course_id == course_id)


# Children before parents
COURSE_DEPENDENTS: tuple[CascadeStep, ...] = (
    CascadeStep(
        "quiz_attempts",
        QuizAttempt,
        lambda cid: QuizAttempt.quiz_id.in_(_course_quizzes(cid)),
    ),
    CascadeStep(
        "submissions",
        Submission,
        lambda cid: or_(
            Submission.course_id == cid,
            Submission.assignment_id.in_(_course_assignments(cid)),
        ),
    ),
    CascadeStep("assignments", Assignment, lambda cid: Assignment.course_id == cid),
    CascadeStep("quizzes", Quiz, lambda cid: Quiz.course_id == cid),
    CascadeStep("evaluations", Evaluation, lambda cid: Evaluation.course_id == cid),
    CascadeStep("study_plans", StudyPlan, lambda cid: StudyPlan.course_id == cid),
    CascadeStep("forum_posts", ForumPost, lambda cid: ForumPost.course_id == cid),
    CascadeStep("doubt_sessions", DoubtSession, lambda cid: DoubtSession.course_id == cid),
    CascadeStep("payments", Payment, lambda cid: Payment.course_id == cid),
    CascadeStep("enrollments", Enrollment, lambda cid: Enrollment.course_id == cid),
)


class CourseDeletionOrchestrator:
    """Deletes a course with its full dependency graph in a single transaction.

    Either every step applies or none does; a failure part-way leaves the course and
    all of its records exactly as they were.
    """

    def __init__(self, db: Database, steps: Sequence[CascadeStep] = COURSE_DEPENDENTS) -> None:
        """Initialize the orchestrator.

        Args:
            db: Database holding the course graph.
            steps: Dependent tables in deletion order. The course row is removed last.
        """
        self._db = db
        self.steps = tuple(steps)

    def count_dependents(self, course_id: str) -> dict[str, int]:
        """Count the records each step would remove for a course."""
        session = self._db.get_session()
        try:
            return {
                step.name: session.execute(
                    select(func.count()).select_from(step.model).where(step.condition(course_id))
                ).scalar_one()
                for step in self.steps
            }
        finally:
            session.close()

    def delete_course(self, course_id: str, actor: ActorContext) -> dict[str, int]:
        """Delete a course and everything that belongs to it.

        Args:
            course_id: The course to delete.
            actor: The caller; must be a coordinator or admin.

        Returns:
            Number of rows removed per table, including ``courses``.

        Raises:
            NotFoundError: If the course doesn't exist.
            ForbiddenError: If the caller is not staff.
            InternalError: If the store fails; nothing is deleted.
        """
        with self._db.transaction("delete_course") as session:
            course = session.get(Course, course_id)
            if course is None:
                raise NotFoundError(f"Course with id '{course_id}' not found")
            if not actor.is_staff:
                raise ForbiddenError("Only coordinators can delete courses")
            title = course.title

            report: dict[str, int] = {}
            for step in self.steps:
                result = session.execute(
                    delete(step.model)
                    .where(step.condition(course_id))
                    .execution_options(synchronize_session=False)
                )
                report[step.name] = result.rowcount or 0
                logger.debug("Cascade %s: removed %d %s", course_id, report[step.name], step.name)

            session.expunge(course)
            result = session.execute(
                delete(Course)
                .where(Course.id == course_id)
                .execution_options(synchronize_session=False)
            )
            report["courses"] = result.rowcount or 0

        logger.info("Course %s (%s) deleted by %s: %s", course_id, title, actor.id, report)
        return report
