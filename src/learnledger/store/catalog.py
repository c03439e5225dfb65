"""CatalogStore - users, courses and the records that hang off a course."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from learnledger.store.database import Database
from learnledger.store.exceptions import ConflictError, NotFoundError, ValidationError
from learnledger.store.models import (
    Assignment,
    Course,
    DoubtSession,
    Evaluation,
    ForumPost,
    Quiz,
    Role,
    StudyPlan,
    User,
)


class CatalogStore:
    """CRUD for catalog entities.

    The enrollment/payment/access core reads from these tables; writes here are
    single-row and need no cross-table atomicity.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # --- Users ---

    def create_user(
        self,
        first_name: str,
        last_name: str,
        email: str,
        role: Role,
        is_approved: bool = True,
        is_active: bool = True,
    ) -> User:
        """Create a user record.

        Raises:
            ConflictError: If the email is already registered.
        """
        session = self._db.get_session()
        try:
            user = User(
                first_name=first_name,
                last_name=last_name,
                email=email,
                role=role.value,
                is_approved=is_approved,
                is_active=is_active,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
        except IntegrityError as e:
            session.rollback()
            raise ConflictError(f"User with email '{email}' already exists") from e
        finally:
            session.close()

    def find_user(self, user_id: str) -> User:
        """Get user by ID.

        Raises:
            NotFoundError: If user doesn't exist.
        """
        session = self._db.get_session()
        try:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError(f"User with id '{user_id}' not found")
            return user
        finally:
            session.close()

    # --- Courses ---

    def create_course(
        self,
        title: str,
        educator_id: str,
        start_date: datetime,
        end_date: datetime,
        fee: float = 0.0,
        category: str = "General",
    ) -> Course:
        """Create a new course.

        Raises:
            ValidationError: If the fee is negative or the dates are inverted.
        """
        if fee < 0:
            raise ValidationError("Fee cannot be negative")
        if end_date <= start_date:
            raise ValidationError("End date must be after start date")

        session = self._db.get_session()
        try:
            course = Course(
                title=title,
                educator_id=educator_id,
                start_date=start_date,
                end_date=end_date,
                fee=fee,
                category=category,
            )
            session.add(course)
            session.commit()
            session.refresh(course)
            return course
        finally:
            session.close()

    def get_course(self, course_id: str) -> Course:
        """Get course by ID.

        Raises:
            NotFoundError: If course doesn't exist.
        """
        session = self._db.get_session()
        try:
            course = session.get(Course, course_id)
            if course is None:
                raise NotFoundError(f"Course with id '{course_id}' not found")
            return course
        finally:
            session.close()

    def list_courses(self, educator_id: str | None = None) -> list[Course]:
        """List courses, optionally only those owned by one educator."""
        session = self._db.get_session()
        try:
            stmt = select(Course)
            if educator_id is not None:
                stmt = stmt.where(Course.educator_id == educator_id)
            stmt = stmt.order_by(Course.start_date)
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    # --- Course children ---

    def _add_child(self, record: Any) -> Any:
        session = self._db.get_session()
        try:
            if session.get(Course, record.course_id) is None:
                raise NotFoundError(f"Course with id '{record.course_id}' not found")
            session.add(record)
            session.commit()
            session.refresh(record)
            return record
        finally:
            session.close()

    def create_assignment(
        self,
        course_id: str,
        educator_id: str,
        name: str,
        due_date: datetime,
        description: str = "",
    ) -> Assignment:
        """Create an assignment for a course."""
        return self._add_child(
            Assignment(
                course_id=course_id,
                educator_id=educator_id,
                name=name,
                due_date=due_date,
                description=description,
            )
        )

    def get_assignment(self, assignment_id: str) -> Assignment:
        """Get assignment by ID.

        Raises:
            NotFoundError: If assignment doesn't exist.
        """
        session = self._db.get_session()
        try:
            assignment = session.get(Assignment, assignment_id)
            if assignment is None:
                raise NotFoundError(f"Assignment with id '{assignment_id}' not found")
            return assignment
        finally:
            session.close()

    def create_quiz(
        self,
        course_id: str,
        educator_id: str,
        title: str,
        questions: list[dict[str, Any]],
        scheduled_date_time: datetime | None = None,
        available_from: datetime | None = None,
        duration_minutes: int = 30,
        published: bool = False,
    ) -> Quiz:
        """Create a quiz.

        Each question is ``{"question_text": str, "options": [str, ...],
        "correct_answer_index": int}``.

        Raises:
            ValidationError: If a question has no options or its correct index is
                out of range.
        """
        for i, question in enumerate(questions):
            options = question.get("options") or []
            index = question.get("correct_answer_index")
            if not options:
                raise ValidationError(f"Question {i} has no options")
            if not isinstance(index, int) or not 0 <= index < len(options):
                raise ValidationError(f"Question {i} has an invalid correct_answer_index")

        return self._add_child(
            Quiz(
                course_id=course_id,
                educator_id=educator_id,
                title=title,
                questions=questions,
                scheduled_date_time=scheduled_date_time,
                available_from=available_from,
                duration_minutes=duration_minutes,
                published=published,
            )
        )

    def get_quiz(self, quiz_id: str) -> Quiz:
        """Get quiz by ID.

        Raises:
            NotFoundError: If quiz doesn't exist.
        """
        session = self._db.get_session()
        try:
            quiz = session.get(Quiz, quiz_id)
            if quiz is None:
                raise NotFoundError(f"Quiz with id '{quiz_id}' not found")
            return quiz
        finally:
            session.close()

    def create_evaluation(
        self,
        course_id: str,
        learner_id: str,
        educator_id: str,
        feedback: str,
        grade: str | None = None,
    ) -> Evaluation:
        """Record an educator's evaluation of a learner."""
        return self._add_child(
            Evaluation(
                course_id=course_id,
                learner_id=learner_id,
                educator_id=educator_id,
                feedback=feedback,
                grade=grade,
            )
        )

    def create_study_plan(
        self,
        course_id: str,
        educator_id: str,
        title: str,
        description: str = "",
        schedule: list[dict[str, Any]] | None = None,
    ) -> StudyPlan:
        """Create a study plan. Material files are stored elsewhere; only references here."""
        return self._add_child(
            StudyPlan(
                course_id=course_id,
                educator_id=educator_id,
                title=title,
                description=description,
                schedule=schedule or [],
            )
        )

    def create_forum_post(
        self,
        course_id: str,
        author_id: str,
        content: str,
        parent_post_id: str | None = None,
    ) -> ForumPost:
        """Create a forum post or reply."""
        return self._add_child(
            ForumPost(
                course_id=course_id,
                author_id=author_id,
                content=content,
                parent_post_id=parent_post_id,
            )
        )

    def create_doubt_session(
        self,
        course_id: str,
        educator_id: str,
        topic: str,
        scheduled_date: datetime,
        duration_minutes: int = 60,
        description: str = "",
        link: str | None = None,
    ) -> DoubtSession:
        """Schedule a doubt session."""
        if not 1 <= duration_minutes <= 180:
            raise ValidationError("Duration must be between 1 and 180 minutes")
        return self._add_child(
            DoubtSession(
                course_id=course_id,
                educator_id=educator_id,
                topic=topic,
                scheduled_date=scheduled_date,
                duration_minutes=duration_minutes,
                description=description,
                link=link,
            )
        )
