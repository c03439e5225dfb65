"""Access policy - pure decisions over enrollment, quiz and time.

Nothing here touches the database or caches results: the grace window is relative to
``now``, so callers evaluate these per request.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from learnledger.store.models import EnrollmentPaymentStatus, EnrollmentStatus

if TYPE_CHECKING:
    from learnledger.store.models import Enrollment, Quiz

GRACE_PERIOD = timedelta(days=7)
UNENROLL_WINDOW = timedelta(days=7)

PAID_STATUSES = frozenset({EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value})


def elapsed(reference: datetime, now: datetime) -> timedelta:
    """Time elapsed from ``reference`` to ``now`` (negative if reference is in the future)."""
    return now - reference


def within_window(reference: datetime, now: datetime, window: timedelta) -> bool:
    """True while ``now`` is at most ``window`` after ``reference``, inclusive.

    Times before ``reference`` also count as inside the window.
    """
    return elapsed(reference, now) <= window


def is_paid(enrollment: Enrollment) -> bool:
    """Successful payment on an enrollment that is still active or completed."""
    return (
        enrollment.payment_status == EnrollmentPaymentStatus.SUCCESS.value
        and enrollment.status in PAID_STATUSES
    )


def in_grace_period(
    enrollment: Enrollment, now: datetime, grace_period: timedelta = GRACE_PERIOD
) -> bool:
    """Enrollment is still inside its grace period, regardless of payment state."""
    return within_window(enrollment.enrollment_date, now, grace_period)


def can_access_course_content(
    enrollment: Enrollment, now: datetime, grace_period: timedelta = GRACE_PERIOD
) -> bool:
    """Decide whether a learner may view or submit course content.

    Access is granted to paid, non-dropped enrollments, and to any enrollment during
    the grace period that follows its creation.

    Args:
        enrollment: The learner's enrollment in the course.
        now: Current time (naive UTC).
        grace_period: Length of the grace window.

    Returns:
        True if content access is granted.
    """
    return is_paid(enrollment) or in_grace_period(enrollment, now, grace_period)


def is_quiz_open(quiz: Quiz, now: datetime) -> bool:
    """Quiz is published and its availability date has passed.

    A quiz with neither ``available_from`` nor ``scheduled_date_time`` is open as soon
    as it is published.
    """
    if not quiz.published:
        return False
    available = quiz.available_date
    return available is None or now >= available


def can_view_quiz(
    quiz: Quiz,
    enrollment: Enrollment | None,
    now: datetime,
    grace_period: timedelta = GRACE_PERIOD,
) -> bool:
    """Quiz visibility for a learner: open quiz plus content access to its course."""
    if enrollment is None or enrollment.course_id != quiz.course_id:
        return False
    return is_quiz_open(quiz, now) and can_access_course_content(enrollment, now, grace_period)


def can_self_unenroll(
    course_start: datetime, now: datetime, window: timedelta = UNENROLL_WINDOW
) -> bool:
    """Learners may unenroll only between course start and ``window`` after it."""
    since_start = elapsed(course_start, now)
    return timedelta(0) <= since_start <= window
