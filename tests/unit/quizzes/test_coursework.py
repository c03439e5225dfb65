"""Unit tests for CourseworkService quizzes and assignments."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from learnledger.enrollment import EnrollmentLedger
from learnledger.payments import PaymentProcessor
from learnledger.quizzes import CourseworkService, score_answers
from learnledger.store import (
    ActorContext,
    Assignment,
    CatalogStore,
    ConflictError,
    Course,
    Database,
    ForbiddenError,
    NotFoundError,
    Quiz,
    QuizAttempt,
    Role,
    User,
    ValidationError,
)

QUESTIONS = [
    {"question_text": "2 + 2?", "options": ["3", "4", "5"], "correct_answer_index": 1},
    {"question_text": "x if 2x = 0?", "options": ["0", "1"], "correct_answer_index": 0},
    {"question_text": "3 squared?", "options": ["6", "8", "9"], "correct_answer_index": 2},
]


@pytest.fixture
def notifier() -> MagicMock:
    mock = MagicMock()
    mock.notify.return_value = True
    return mock


@pytest.fixture
def service(db: Database, notifier: MagicMock) -> CourseworkService:
    return CourseworkService(db, notifier=notifier)


@pytest.fixture
def enrolled(db: Database, learner: User, course: Course, t0: datetime) -> None:
    EnrollmentLedger(db).enroll(learner.id, course.id, now=t0)


@pytest.fixture
def quiz(catalog: CatalogStore, course: Course, educator: User) -> Quiz:
    return catalog.create_quiz(course.id, educator.id, "Week 1", QUESTIONS, published=True)


@pytest.fixture
def assignment(catalog: CatalogStore, course: Course, educator: User, t0: datetime) -> Assignment:
    return catalog.create_assignment(
        course.id, educator.id, "Problem set 1", due_date=t0 + timedelta(days=5)
    )


def _attempts(db: Database) -> list[QuizAttempt]:
    session = db.get_session()
    try:
        return list(session.query(QuizAttempt).all())
    finally:
        session.close()


@pytest.mark.unit
class TestScoreAnswers:
    """Tests for score_answers."""

    def test_counts_exact_matches(self) -> None:
        """Score is the number of matching indexes."""
        assert score_answers([1, 0, 2], [1, 0, 2]) == 3
        assert score_answers([1, 0, 2], [1, 1, 1]) == 1
        assert score_answers([], []) == 0


@pytest.mark.unit
@pytest.mark.usefixtures("enrolled")
class TestSubmitQuiz:
    """Tests for submit_quiz."""

    def test_full_marks(
        self,
        service: CourseworkService,
        quiz: Quiz,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """All-correct answers score the full quiz."""
        result = service.submit_quiz(quiz.id, learner_actor, [1, 0, 2], now=t0 + timedelta(hours=1))

        assert result.score == 3
        assert result.total == 3
        assert result.correct_answers == [1, 0, 2]
        assert result.attempt.answers == [
            {"question_index": 0, "selected_option": 1},
            {"question_index": 1, "selected_option": 0},
            {"question_index": 2, "selected_option": 2},
        ]
        assert result.attempt.attempted_at == t0 + timedelta(hours=1)

    def test_second_attempt_conflicts(
        self,
        service: CourseworkService,
        db: Database,
        quiz: Quiz,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """One attempt per learner; the stored score is unchanged."""
        service.submit_quiz(quiz.id, learner_actor, [1, 0, 2], now=t0)

        with pytest.raises(ConflictError):
            service.submit_quiz(quiz.id, learner_actor, [0, 0, 0], now=t0 + timedelta(minutes=1))

        attempts = _attempts(db)
        assert len(attempts) == 1
        assert attempts[0].score == 3

    def test_wrong_answer_count(
        self, service: CourseworkService, quiz: Quiz, learner_actor: ActorContext, t0: datetime
    ) -> None:
        """Answer list must match the question count."""
        with pytest.raises(ValidationError):
            service.submit_quiz(quiz.id, learner_actor, [1, 0], now=t0)

    def test_negative_answer(
        self, service: CourseworkService, quiz: Quiz, learner_actor: ActorContext, t0: datetime
    ) -> None:
        """Option indexes cannot be negative."""
        with pytest.raises(ValidationError):
            service.submit_quiz(quiz.id, learner_actor, [1, -1, 2], now=t0)

    def test_unpublished_quiz(
        self,
        service: CourseworkService,
        catalog: CatalogStore,
        course: Course,
        educator: User,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Unpublished quizzes cannot be attempted."""
        draft = catalog.create_quiz(course.id, educator.id, "Draft", QUESTIONS)

        with pytest.raises(ForbiddenError, match="not yet published"):
            service.submit_quiz(draft.id, learner_actor, [1, 0, 2], now=t0)

    def test_not_yet_available(
        self,
        service: CourseworkService,
        db: Database,
        catalog: CatalogStore,
        course: Course,
        educator: User,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """A quiz cannot be attempted before it opens."""
        later = catalog.create_quiz(
            course.id,
            educator.id,
            "Week 2",
            QUESTIONS,
            available_from=t0 + timedelta(days=1),
            published=True,
        )

        with pytest.raises(ForbiddenError, match="Opens at"):
            service.submit_quiz(later.id, learner_actor, [1, 0, 2], now=t0)

        assert _attempts(db) == []

    def test_not_enrolled(
        self,
        service: CourseworkService,
        quiz: Quiz,
        other_learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Learners outside the course are refused."""
        with pytest.raises(ForbiddenError, match="not enrolled"):
            service.submit_quiz(quiz.id, other_learner_actor, [1, 0, 2], now=t0)

    def test_unpaid_after_grace_period(
        self, service: CourseworkService, quiz: Quiz, learner_actor: ActorContext, t0: datetime
    ) -> None:
        """Unpaid learners lose quiz access after the grace period."""
        with pytest.raises(ForbiddenError, match="Payment required"):
            service.submit_quiz(quiz.id, learner_actor, [1, 0, 2], now=t0 + timedelta(days=8))

    def test_paid_after_grace_period(
        self,
        service: CourseworkService,
        db: Database,
        quiz: Quiz,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Paid learners keep quiz access."""
        enrollment = EnrollmentLedger(db).list_enrollments(learner_actor)[0]
        PaymentProcessor(db).record_payment(enrollment.id, learner_actor, "upi", now=t0)

        result = service.submit_quiz(quiz.id, learner_actor, [0, 0, 0], now=t0 + timedelta(days=8))

        assert result.score == 1

    def test_missing_quiz(
        self, service: CourseworkService, learner_actor: ActorContext, t0: datetime
    ) -> None:
        """NotFoundError for an unknown quiz."""
        with pytest.raises(NotFoundError):
            service.submit_quiz("missing", learner_actor, [], now=t0)


@pytest.mark.unit
@pytest.mark.usefixtures("enrolled")
class TestQuizReads:
    """Tests for quiz listing, viewing and summaries."""

    def test_available_quizzes(
        self,
        service: CourseworkService,
        catalog: CatalogStore,
        course: Course,
        educator: User,
        quiz: Quiz,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Only published, open quizzes in accessible courses are listed."""
        catalog.create_quiz(course.id, educator.id, "Draft", QUESTIONS)
        catalog.create_quiz(
            course.id, educator.id, "Later", QUESTIONS, available_from=t0 + timedelta(days=2),
            published=True,
        )

        available = service.list_available_quizzes(learner_actor, now=t0 + timedelta(hours=1))

        assert [q.id for q in available] == [quiz.id]

    def test_no_quizzes_without_enrollment(
        self,
        service: CourseworkService,
        quiz: Quiz,
        other_learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """A learner with no enrollments sees nothing."""
        assert service.list_available_quizzes(other_learner_actor, now=t0) == []

    def test_get_quiz_for_learner(
        self, service: CourseworkService, quiz: Quiz, learner_actor: ActorContext, t0: datetime
    ) -> None:
        """Enrolled learners can view an open quiz."""
        assert service.get_quiz_for_learner(quiz.id, learner_actor, now=t0).title == "Week 1"

    def test_submission_summary_matches_attempts(
        self,
        service: CourseworkService,
        db: Database,
        quiz: Quiz,
        course: Course,
        other_learner: User,
        learner_actor: ActorContext,
        other_learner_actor: ActorContext,
        educator_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """The summary is projected from the attempt records."""
        EnrollmentLedger(db).enroll(other_learner.id, course.id, now=t0)
        service.submit_quiz(quiz.id, learner_actor, [1, 0, 2], now=t0 + timedelta(hours=1))
        service.submit_quiz(quiz.id, other_learner_actor, [1, 1, 1], now=t0 + timedelta(hours=2))

        summary = service.quiz_submission_summary(quiz.id, educator_actor)

        assert [(e.learner_id, e.score, e.total) for e in summary] == [
            (learner_actor.id, 3, 3),
            (other_learner_actor.id, 1, 3),
        ]
        assert [(a.learner_id, a.score) for a in _attempts(db)] == [
            (e.learner_id, e.score) for e in summary
        ]

    def test_summary_requires_course_educator(
        self,
        service: CourseworkService,
        catalog: CatalogStore,
        quiz: Quiz,
        learner_actor: ActorContext,
        coordinator_actor: ActorContext,
    ) -> None:
        """Only the course educator or staff can see the summary."""
        other_educator = catalog.create_user("Dana", "Os", "dana@example.com", Role.EDUCATOR)

        with pytest.raises(ForbiddenError):
            service.quiz_submission_summary(
                quiz.id, ActorContext(id=other_educator.id, role=Role.EDUCATOR)
            )
        with pytest.raises(ForbiddenError):
            service.quiz_submission_summary(quiz.id, learner_actor)
        assert service.quiz_submission_summary(quiz.id, coordinator_actor) == []

    def test_list_attempts(
        self, service: CourseworkService, quiz: Quiz, learner_actor: ActorContext, t0: datetime
    ) -> None:
        """Attempts come back with quiz and course titles."""
        service.submit_quiz(quiz.id, learner_actor, [1, 0, 0], now=t0)

        attempts = service.list_attempts(learner_actor)

        assert len(attempts) == 1
        assert attempts[0].quiz_title == "Week 1"
        assert attempts[0].course_title == "Algebra101"
        assert attempts[0].score == 2


@pytest.mark.unit
@pytest.mark.usefixtures("enrolled")
class TestAssignments:
    """Tests for assignment submission and grading."""

    def test_submit(
        self,
        service: CourseworkService,
        notifier: MagicMock,
        assignment: Assignment,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """First submission before the due date is 'submitted'."""
        result = service.submit_assignment(
            assignment.id, learner_actor, "files/ps1.pdf", "ps1.pdf", now=t0 + timedelta(days=1)
        )

        assert not result.resubmitted
        assert result.submission.status == "submitted"
        assert result.submission.file_url == "files/ps1.pdf"
        assert notifier.notify.call_args.args[0].subject == "Assignment submitted"

    def test_late_submission(
        self,
        service: CourseworkService,
        db: Database,
        assignment: Assignment,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Submitting after the due date marks the submission late."""
        enrollment = EnrollmentLedger(db).list_enrollments(learner_actor)[0]
        PaymentProcessor(db).record_payment(enrollment.id, learner_actor, "upi", now=t0)

        result = service.submit_assignment(
            assignment.id, learner_actor, "files/ps1.pdf", now=t0 + timedelta(days=6)
        )

        assert result.submission.status == "late"

    def test_resubmit_clears_grade(
        self,
        service: CourseworkService,
        assignment: Assignment,
        learner_actor: ActorContext,
        educator_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Resubmitting replaces the file and clears the grade."""
        first = service.submit_assignment(assignment.id, learner_actor, "files/v1.pdf", now=t0)
        service.grade_submission(first.submission.id, educator_actor, 72, "Show your working")

        second = service.submit_assignment(assignment.id, learner_actor, "files/v2.pdf", now=t0)

        assert second.resubmitted
        assert second.submission.id == first.submission.id
        assert second.submission.status == "resubmitted"
        assert second.submission.file_url == "files/v2.pdf"
        assert second.submission.grade is None
        assert second.submission.feedback is None

    def test_requires_file(
        self, service: CourseworkService, assignment: Assignment, learner_actor: ActorContext
    ) -> None:
        """A file reference is required."""
        with pytest.raises(ValidationError):
            service.submit_assignment(assignment.id, learner_actor, "")

    def test_requires_access(
        self,
        service: CourseworkService,
        assignment: Assignment,
        other_learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Learners outside the course cannot submit."""
        with pytest.raises(ForbiddenError):
            service.submit_assignment(assignment.id, other_learner_actor, "f.pdf", now=t0)

    def test_grade(
        self,
        service: CourseworkService,
        assignment: Assignment,
        learner_actor: ActorContext,
        educator_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """The course educator grades a submission."""
        submitted = service.submit_assignment(assignment.id, learner_actor, "f.pdf", now=t0)

        graded = service.grade_submission(submitted.submission.id, educator_actor, 88.5, "Good")

        assert graded.status == "graded"
        assert graded.grade == 88.5
        assert graded.feedback == "Good"

    def test_grade_out_of_range(
        self,
        service: CourseworkService,
        assignment: Assignment,
        learner_actor: ActorContext,
        educator_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Grades must be within 0-100."""
        submitted = service.submit_assignment(assignment.id, learner_actor, "f.pdf", now=t0)

        with pytest.raises(ValidationError):
            service.grade_submission(submitted.submission.id, educator_actor, 101)

    def test_learner_cannot_grade(
        self,
        service: CourseworkService,
        assignment: Assignment,
        learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Learners cannot grade their own work."""
        submitted = service.submit_assignment(assignment.id, learner_actor, "f.pdf", now=t0)

        with pytest.raises(ForbiddenError):
            service.grade_submission(submitted.submission.id, learner_actor, 100)

    def test_available_assignments(
        self,
        service: CourseworkService,
        assignment: Assignment,
        course: Course,
        learner_actor: ActorContext,
        other_learner_actor: ActorContext,
        t0: datetime,
    ) -> None:
        """Assignments are listed for accessible courses only."""
        assert [a.id for a in service.list_available_assignments(learner_actor, now=t0)] == [
            assignment.id
        ]
        assert service.list_available_assignments(learner_actor, "other-course", now=t0) == []
        assert service.list_available_assignments(other_learner_actor, now=t0) == []
