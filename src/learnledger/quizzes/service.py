"""CourseworkService - quiz attempts and assignment submissions."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from learnledger.access import (
    GRACE_PERIOD,
    can_access_course_content,
    is_quiz_open,
)
from learnledger.notifications import Notification, NullNotifier
from learnledger.quizzes.models import (
    AssignmentSubmissionResult,
    AttemptSummary,
    QuizResult,
    QuizSubmissionEntry,
)
from learnledger.store.database import Database
from learnledger.store.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from learnledger.store.models import (
    ActorContext,
    Assignment,
    Course,
    Enrollment,
    Quiz,
    QuizAttempt,
    Role,
    Submission,
    SubmissionStatus,
    User,
    utc_now,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from learnledger.notifications import Notifier

logger = logging.getLogger(__name__)


def score_answers(correct: list[int], answers: list[int]) -> int:
    """Count answers that exactly match the correct option index."""
    return sum(1 for expected, given in zip(correct, answers, strict=True) if expected == given)


class CourseworkService:
    """Gated access to quizzes and assignments, and the learner's submissions.

    A quiz may be attempted once per learner; the unique (learner, quiz) constraint on
    attempts decides concurrent submissions.
    """

    def __init__(
        self,
        db: Database,
        notifier: Notifier | None = None,
        grace_period: timedelta = GRACE_PERIOD,
    ) -> None:
        self._db = db
        self.notifier = notifier if notifier is not None else NullNotifier()
        self.grace_period = grace_period

    def _enrollment(self, session: Session, learner_id: str, course_id: str) -> Enrollment | None:
        return session.execute(
            select(Enrollment).where(
                Enrollment.learner_id == learner_id,
                Enrollment.course_id == course_id,
            )
        ).scalar_one_or_none()

    def _accessible_course_ids(self, session: Session, learner_id: str, now: datetime) -> list[str]:
        enrollments = session.execute(
            select(Enrollment).where(Enrollment.learner_id == learner_id)
        ).scalars()
        return [
            e.course_id
            for e in enrollments
            if can_access_course_content(e, now, self.grace_period)
        ]

    def _require_content_access(
        self, session: Session, learner_id: str, course_id: str, now: datetime
    ) -> Enrollment:
        enrollment = self._enrollment(session, learner_id, course_id)
        if enrollment is None:
            raise ForbiddenError("You are not enrolled in this course")
        if not can_access_course_content(enrollment, now, self.grace_period):
            raise ForbiddenError("Payment required to access course content")
        return enrollment

    # --- Quizzes ---

    def list_available_quizzes(
        self, actor: ActorContext, now: datetime | None = None
    ) -> list[Quiz]:
        """Open quizzes in every course the learner currently has access to."""
        now = now if now is not None else utc_now()
        session = self._db.get_session()
        try:
            course_ids = self._accessible_course_ids(session, actor.id, now)
            if not course_ids:
                return []
            quizzes = session.execute(
                select(Quiz)
                .where(Quiz.course_id.in_(course_ids), Quiz.published.is_(True))
                .order_by(Quiz.created_at.desc())
            ).scalars()
            return [q for q in quizzes if is_quiz_open(q, now)]
        finally:
            session.close()

    def get_quiz_for_learner(
        self, quiz_id: str, actor: ActorContext, now: datetime | None = None
    ) -> Quiz:
        """Get a quiz the learner may view.

        Raises:
            NotFoundError: If the quiz doesn't exist.
            ForbiddenError: If the quiz is closed or the learner lacks course access.
        """
        now = now if now is not None else utc_now()
        session = self._db.get_session()
        try:
            quiz = session.get(Quiz, quiz_id)
            if quiz is None:
                raise NotFoundError(f"Quiz with id '{quiz_id}' not found")
            _check_quiz_open(quiz, now)
            self._require_content_access(session, actor.id, quiz.course_id, now)
            return quiz
        finally:
            session.close()

    def submit_quiz(
        self,
        quiz_id: str,
        actor: ActorContext,
        answers: list[int],
        now: datetime | None = None,
    ) -> QuizResult:
        """Score and store a learner's single attempt at a quiz.

        Args:
            quiz_id: The quiz being answered.
            actor: The learner.
            answers: Selected option index per question, in question order.
            now: Submission time (defaults to current UTC time).

        Returns:
            Score, question count and the stored attempt.

        Raises:
            NotFoundError: If the quiz doesn't exist.
            ForbiddenError: If the quiz is unpublished, not yet available, or the
                learner lacks access to its course.
            ValidationError: If the answers don't match the question count.
            ConflictError: If the learner already attempted this quiz.
        """
        now = now if now is not None else utc_now()
        with self._db.transaction("submit_quiz") as session:
            quiz = session.get(Quiz, quiz_id)
            if quiz is None:
                raise NotFoundError(f"Quiz with id '{quiz_id}' not found")
            _check_quiz_open(quiz, now)
            self._require_content_access(session, actor.id, quiz.course_id, now)

            correct = quiz.correct_answers
            if len(answers) != len(correct):
                raise ValidationError(
                    f"Expected {len(correct)} answers, got {len(answers)}"
                )
            if any(isinstance(a, bool) or not isinstance(a, int) or a < 0 for a in answers):
                raise ValidationError("Answers must be non-negative option indexes")

            existing = session.execute(
                select(QuizAttempt.id).where(
                    QuizAttempt.learner_id == actor.id,
                    QuizAttempt.quiz_id == quiz_id,
                )
            ).scalar_one_or_none()
            if existing is not None:
                logger.warning("Repeat attempt rejected: learner=%s quiz=%s", actor.id, quiz_id)
                raise ConflictError("You have already attempted this quiz")

            score = score_answers(correct, answers)
            attempt = QuizAttempt(
                learner_id=actor.id,
                quiz_id=quiz_id,
                answers=[
                    {"question_index": i, "selected_option": selected}
                    for i, selected in enumerate(answers)
                ],
                score=score,
                total_questions=len(correct),
                attempted_at=now,
            )
            session.add(attempt)
            try:
                session.flush()
            except IntegrityError as e:
                logger.warning("Concurrent repeat attempt: learner=%s quiz=%s", actor.id, quiz_id)
                raise ConflictError("You have already attempted this quiz") from e

        logger.info("Quiz %s attempted by %s: %d/%d", quiz_id, actor.id, score, len(correct))
        return QuizResult(attempt=attempt, score=score, total=len(correct), correct_answers=correct)

    def quiz_submission_summary(
        self, quiz_id: str, actor: ActorContext
    ) -> list[QuizSubmissionEntry]:
        """Per-learner scores for a quiz, in submission order.

        Built from the attempt records, so it always agrees with them.

        Raises:
            NotFoundError: If the quiz doesn't exist.
            ForbiddenError: If the actor neither owns the course nor is staff.
        """
        session = self._db.get_session()
        try:
            quiz = session.get(Quiz, quiz_id)
            if quiz is None:
                raise NotFoundError(f"Quiz with id '{quiz_id}' not found")
            if not actor.is_staff:
                course = session.get(Course, quiz.course_id)
                if course is None or course.educator_id != actor.id:
                    raise ForbiddenError("Not authorized to view submissions for this quiz")

            attempts = session.execute(
                select(QuizAttempt)
                .where(QuizAttempt.quiz_id == quiz_id)
                .order_by(QuizAttempt.attempted_at, QuizAttempt.id)
            ).scalars()
            return [
                QuizSubmissionEntry(
                    learner_id=a.learner_id,
                    score=a.score,
                    total=a.total_questions,
                    submitted_at=a.attempted_at,
                )
                for a in attempts
            ]
        finally:
            session.close()

    def list_attempts(self, actor: ActorContext) -> list[AttemptSummary]:
        """The learner's own attempts, newest first."""
        session = self._db.get_session()
        try:
            rows = session.execute(
                select(QuizAttempt, Quiz, Course)
                .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
                .join(Course, Course.id == Quiz.course_id)
                .where(QuizAttempt.learner_id == actor.id)
                .order_by(QuizAttempt.attempted_at.desc())
            ).all()
            return [
                AttemptSummary(
                    attempt_id=attempt.id,
                    quiz_id=quiz.id,
                    quiz_title=quiz.title,
                    course_id=course.id,
                    course_title=course.title,
                    score=attempt.score,
                    total=attempt.total_questions,
                    attempted_at=attempt.attempted_at,
                )
                for attempt, quiz, course in rows
            ]
        finally:
            session.close()

    # --- Assignments ---

    def list_available_assignments(
        self,
        actor: ActorContext,
        course_id: str | None = None,
        now: datetime | None = None,
    ) -> list[Assignment]:
        """Assignments of courses the learner can access, soonest due first."""
        now = now if now is not None else utc_now()
        session = self._db.get_session()
        try:
            course_ids = self._accessible_course_ids(session, actor.id, now)
            if course_id is not None:
                course_ids = [c for c in course_ids if c == course_id]
            if not course_ids:
                return []
            stmt = (
                select(Assignment)
                .where(Assignment.course_id.in_(course_ids))
                .order_by(Assignment.due_date)
            )
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    def submit_assignment(
        self,
        assignment_id: str,
        actor: ActorContext,
        file_url: str,
        file_name: str | None = None,
        now: datetime | None = None,
    ) -> AssignmentSubmissionResult:
        """Submit or resubmit work for an assignment.

        Only a reference to the stored file is kept. A resubmission replaces the file
        reference of the existing submission and clears any earlier grade.

        Raises:
            NotFoundError: If the assignment doesn't exist.
            ForbiddenError: If the learner lacks access to the course.
            ValidationError: If no file reference is given.
        """
        if not file_url:
            raise ValidationError("A file reference is required")
        now = now if now is not None else utc_now()

        with self._db.transaction("submit_assignment") as session:
            assignment = session.get(Assignment, assignment_id)
            if assignment is None:
                raise NotFoundError(f"Assignment with id '{assignment_id}' not found")
            self._require_content_access(session, actor.id, assignment.course_id, now)

            submission = session.execute(
                select(Submission).where(
                    Submission.learner_id == actor.id,
                    Submission.assignment_id == assignment_id,
                )
            ).scalar_one_or_none()
            resubmitted = submission is not None
            if submission is None:
                submission = Submission(
                    assignment_id=assignment_id,
                    course_id=assignment.course_id,
                    learner_id=actor.id,
                    file_url=file_url,
                    file_name=file_name,
                    status=(
                        SubmissionStatus.LATE.value
                        if now > assignment.due_date
                        else SubmissionStatus.SUBMITTED.value
                    ),
                    submitted_at=now,
                )
                session.add(submission)
            else:
                submission.file_url = file_url
                submission.file_name = file_name
                submission.status = SubmissionStatus.RESUBMITTED.value
                submission.grade = None
                submission.feedback = None
                submission.submitted_at = now
            try:
                session.flush()
            except IntegrityError as e:
                raise ConflictError("Submission is already being recorded") from e
            assignment_name = assignment.name

        logger.info(
            "Assignment %s %s by %s", assignment_id, submission.status, actor.id
        )
        self._notify(
            actor.id,
            "Assignment resubmitted" if resubmitted else "Assignment submitted",
            f"Your submission for '{assignment_name}' was received.",
        )
        return AssignmentSubmissionResult(submission=submission, resubmitted=resubmitted)

    def grade_submission(
        self,
        submission_id: str,
        actor: ActorContext,
        grade: float,
        feedback: str | None = None,
    ) -> Submission:
        """Grade a submission.

        Raises:
            NotFoundError: If the submission doesn't exist.
            ForbiddenError: If the actor neither teaches the course nor is staff.
            ValidationError: If the grade is outside 0-100.
        """
        with self._db.transaction("grade_submission") as session:
            submission = session.get(Submission, submission_id)
            if submission is None:
                raise NotFoundError(f"Submission with id '{submission_id}' not found")
            if not actor.is_staff:
                course = session.get(Course, submission.course_id)
                if actor.role != Role.EDUCATOR or course is None or course.educator_id != actor.id:
                    raise ForbiddenError("Not authorized to grade this submission")
            if not 0 <= grade <= 100:
                raise ValidationError("Grade must be between 0 and 100")

            submission.grade = float(grade)
            submission.feedback = feedback
            submission.status = SubmissionStatus.GRADED.value
            session.flush()

        logger.info("Submission %s graded %.1f by %s", submission_id, grade, actor.id)
        self._notify(
            submission.learner_id,
            "Assignment graded",
            f"Your submission has been graded: {grade:g}/100.",
        )
        return submission

    def _notify(self, user_id: str, subject: str, body: str) -> None:
        session = self._db.get_session()
        try:
            user = session.get(User, user_id)
        finally:
            session.close()
        if user is None:
            logger.debug("No contact details for %s; '%s' not sent", user_id, subject)
            return
        self.notifier.notify(Notification(to=user.email, subject=subject, body=body))


def _check_quiz_open(quiz: Quiz, now: datetime) -> None:
    if not quiz.published:
        raise ForbiddenError("This quiz is not yet published")
    if not is_quiz_open(quiz, now):
        raise ForbiddenError(f"Quiz not yet available. Opens at {quiz.available_date.isoformat()}")
