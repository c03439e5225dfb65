"""EnrollmentLedger - the learner/course enrollment state machine."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from learnledger.access import (
    GRACE_PERIOD,
    UNENROLL_WINDOW,
    can_access_course_content,
    can_self_unenroll,
)
from learnledger.enrollment.models import EnrolledCourse, EnrollmentUpdate, LearnerEnrollments
from learnledger.store.database import Database
from learnledger.store.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from learnledger.store.models import (
    ActorContext,
    Course,
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    Role,
    User,
    utc_now,
)

logger = logging.getLogger(__name__)

PAID_ENROLLMENT_STATUSES = {EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value}


class EnrollmentLedger:
    """Creates, updates and removes enrollments.

    One enrollment exists per (learner, course); the unique constraint on that pair
    is the concurrency guard, so duplicate requests racing each other end with one
    success and the rest failing with ConflictError.
    """

    def __init__(
        self,
        db: Database,
        grace_period: timedelta = GRACE_PERIOD,
        unenroll_window: timedelta = UNENROLL_WINDOW,
    ) -> None:
        """Initialize the ledger.

        Args:
            db: Database holding courses and enrollments.
            grace_period: Content access window after enrolling, independent of payment.
            unenroll_window: How long after course start a learner may unenroll.
        """
        self._db = db
        self.grace_period = grace_period
        self.unenroll_window = unenroll_window

    def enroll(self, learner_id: str, course_id: str, now: datetime | None = None) -> Enrollment:
        """Enroll a learner in a course.

        The enrollment starts active with a pending payment; payment is a separate step.

        Args:
            learner_id: The learner's user ID.
            course_id: The course to enroll in.
            now: Enrollment time (defaults to current UTC time).

        Returns:
            The created Enrollment.

        Raises:
            NotFoundError: If the course doesn't exist.
            ConflictError: If the learner is already enrolled in the course.
        """
        now = now if now is not None else utc_now()
        with self._db.transaction("enroll") as session:
            if session.get(Course, course_id) is None:
                raise NotFoundError(f"Course with id '{course_id}' not found")

            existing = session.execute(
                select(Enrollment.id).where(
                    Enrollment.learner_id == learner_id,
                    Enrollment.course_id == course_id,
                )
            ).scalar_one_or_none()
            if existing is not None:
                logger.warning(
                    "Duplicate enrollment rejected: learner=%s course=%s", learner_id, course_id
                )
                raise ConflictError("You are already enrolled in this course")

            enrollment = Enrollment(
                learner_id=learner_id,
                course_id=course_id,
                enrollment_date=now,
                status=EnrollmentStatus.ACTIVE.value,
                payment_status=EnrollmentPaymentStatus.PENDING.value,
                progress_percentage=0.0,
            )
            session.add(enrollment)
            try:
                session.flush()
            except IntegrityError as e:
                logger.warning(
                    "Concurrent duplicate enrollment: learner=%s course=%s", learner_id, course_id
                )
                raise ConflictError("You are already enrolled in this course") from e

        logger.info("Enrolled learner %s in course %s (%s)", learner_id, course_id, enrollment.id)
        return enrollment

    def get_enrollment(self, enrollment_id: str, actor: ActorContext) -> Enrollment:
        """Get an enrollment the actor is allowed to see.

        Learners see their own, educators those of courses they teach, staff all.

        Raises:
            NotFoundError: If the enrollment doesn't exist.
            ForbiddenError: If the actor may not view it.
        """
        session = self._db.get_session()
        try:
            enrollment = session.get(Enrollment, enrollment_id)
            if enrollment is None:
                raise NotFoundError(f"Enrollment with id '{enrollment_id}' not found")
            if not actor.is_staff and enrollment.learner_id != actor.id:
                course = session.get(Course, enrollment.course_id)
                teaches = (
                    actor.role == Role.EDUCATOR
                    and course is not None
                    and course.educator_id == actor.id
                )
                if not teaches:
                    raise ForbiddenError("Not authorized to view this enrollment")
            return enrollment
        finally:
            session.close()

    def list_enrollments(self, actor: ActorContext) -> list[Enrollment]:
        """List enrollments visible to the actor, newest first."""
        session = self._db.get_session()
        try:
            stmt = select(Enrollment)
            if actor.role == Role.LEARNER:
                stmt = stmt.where(Enrollment.learner_id == actor.id)
            elif actor.role == Role.EDUCATOR:
                taught = select(Course.id).where(Course.educator_id == actor.id)
                stmt = stmt.where(Enrollment.course_id.in_(taught))
            stmt = stmt.order_by(Enrollment.enrollment_date.desc())
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    def find_enrollment(self, learner_id: str, course_id: str) -> Enrollment | None:
        """Get the learner's enrollment in a course, if any."""
        session = self._db.get_session()
        try:
            stmt = select(Enrollment).where(
                Enrollment.learner_id == learner_id,
                Enrollment.course_id == course_id,
            )
            return session.execute(stmt).scalar_one_or_none()
        finally:
            session.close()

    def list_learners_with_enrollments(self, actor: ActorContext) -> list[LearnerEnrollments]:
        """Group all enrollments by learner.

        Raises:
            ForbiddenError: If the actor is not a coordinator or admin.
        """
        if not actor.is_staff:
            raise ForbiddenError("Only coordinators can access this data")

        session = self._db.get_session()
        try:
            rows = session.execute(
                select(Enrollment, Course, User)
                .join(Course, Course.id == Enrollment.course_id)
                .outerjoin(User, User.id == Enrollment.learner_id)
                .order_by(Enrollment.enrollment_date)
            ).all()

            grouped: dict[str, LearnerEnrollments] = {}
            for enrollment, course, user in rows:
                entry = grouped.get(enrollment.learner_id)
                if entry is None:
                    entry = LearnerEnrollments(
                        learner_id=enrollment.learner_id,
                        name=user.full_name if user is not None else None,
                        email=user.email if user is not None else None,
                    )
                    grouped[enrollment.learner_id] = entry
                entry.enrolled_courses.append(
                    EnrolledCourse(
                        course_id=course.id,
                        title=course.title,
                        enrolled_at=enrollment.enrollment_date,
                        enrollment_id=enrollment.id,
                        status=enrollment.status,
                        payment_status=enrollment.payment_status,
                    )
                )
            return list(grouped.values())
        finally:
            session.close()

    def update_status(
        self, enrollment_id: str, actor: ActorContext, update: EnrollmentUpdate
    ) -> Enrollment:
        """Update status, progress or payment status of an enrollment.

        Learners may only change the progress of their own enrollment; coordinators
        may change any field.

        Raises:
            NotFoundError: If the enrollment doesn't exist.
            ForbiddenError: If the actor may not make this change.
            ValidationError: If a value is out of range or breaks the status invariants.
        """
        with self._db.transaction("update_enrollment") as session:
            enrollment = session.get(Enrollment, enrollment_id)
            if enrollment is None:
                raise NotFoundError(f"Enrollment with id '{enrollment_id}' not found")

            if actor.role == Role.LEARNER:
                if enrollment.learner_id != actor.id:
                    raise ForbiddenError("Not authorized to update this enrollment")
                if update.status is not None or update.payment_status is not None:
                    raise ForbiddenError("Learners may only update their progress")
            elif not actor.is_staff:
                raise ForbiddenError("Not authorized to update this enrollment")

            status = enrollment.status if update.status is None else update.status
            payment_status = update.payment_status
            if payment_status is None:
                payment_status = enrollment.payment_status
            _validate_update(update, status, payment_status)

            enrollment.status = status
            enrollment.payment_status = payment_status
            if update.progress_percentage is not None:
                enrollment.progress_percentage = float(update.progress_percentage)
            session.flush()

        logger.info(
            "Enrollment %s updated by %s: status=%s payment_status=%s progress=%s",
            enrollment_id,
            actor.role,
            enrollment.status,
            enrollment.payment_status,
            enrollment.progress_percentage,
        )
        return enrollment

    def unenroll(
        self, enrollment_id: str, actor: ActorContext, now: datetime | None = None
    ) -> None:
        """Delete an enrollment.

        Learners may remove only their own enrollment, and only within the unenroll
        window after the course starts; coordinators bypass the window. Payments are
        kept for audit.

        Raises:
            NotFoundError: If the enrollment doesn't exist.
            ForbiddenError: If the actor is not the owner or the window has expired.
        """
        now = now if now is not None else utc_now()
        with self._db.transaction("unenroll") as session:
            enrollment = session.get(Enrollment, enrollment_id)
            if enrollment is None:
                raise NotFoundError(f"Enrollment with id '{enrollment_id}' not found")

            if actor.role == Role.LEARNER:
                if enrollment.learner_id != actor.id:
                    raise ForbiddenError("Not authorized to delete this enrollment")
                course = session.get(Course, enrollment.course_id)
                window_open = course is not None and can_self_unenroll(
                    course.start_date, now, self.unenroll_window
                )
                if not window_open:
                    logger.warning("Unenroll window expired for enrollment %s", enrollment_id)
                    raise ForbiddenError(
                        "Unenrollment window expired. You can only unenroll within "
                        f"{self.unenroll_window.days} days after the course starts."
                    )
            elif not actor.is_staff:
                raise ForbiddenError("Not authorized to delete this enrollment")

            session.delete(enrollment)

        logger.info("Enrollment %s removed by %s %s", enrollment_id, actor.role, actor.id)

    def check_access(
        self, enrollment_id: str, actor: ActorContext, now: datetime | None = None
    ) -> bool:
        """Evaluate content access for an enrollment right now."""
        now = now if now is not None else utc_now()
        enrollment = self.get_enrollment(enrollment_id, actor)
        return can_access_course_content(enrollment, now, self.grace_period)


def _validate_update(update: EnrollmentUpdate, status: str, payment_status: str) -> None:
    if update.progress_percentage is not None and not 0 <= update.progress_percentage <= 100:
        raise ValidationError("Progress percentage must be between 0 and 100")
    if status not in {s.value for s in EnrollmentStatus}:
        raise ValidationError(f"Invalid enrollment status '{status}'")
    if payment_status not in {s.value for s in EnrollmentPaymentStatus}:
        raise ValidationError(f"Invalid payment status '{payment_status}'")
    paid = payment_status == EnrollmentPaymentStatus.SUCCESS.value
    if paid and status not in PAID_ENROLLMENT_STATUSES:
        raise ValidationError("A paid enrollment must be active or completed")
    refunded = payment_status == EnrollmentPaymentStatus.REFUNDED.value
    if refunded and status != EnrollmentStatus.DROPPED.value:
        raise ValidationError("A refunded enrollment must be dropped")
