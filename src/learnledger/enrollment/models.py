"""Data models for the Enrollment Ledger."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class EnrollmentUpdate:
    """Partial update of an enrollment. ``None`` means leave unchanged.

    Attributes:
        status: New academic status (coordinator only).
        progress_percentage: New progress, 0-100.
        payment_status: New payment status (coordinator only).
    """

    status: str | None = None
    progress_percentage: float | None = None
    payment_status: str | None = None

    def is_empty(self) -> bool:
        return (
            self.status is None
            and self.progress_percentage is None
            and self.payment_status is None
        )


@dataclass
class EnrolledCourse:
    """One course in a learner's enrollment summary."""

    course_id: str
    title: str
    enrolled_at: datetime
    enrollment_id: str
    status: str
    payment_status: str


@dataclass
class LearnerEnrollments:
    """A learner together with every course they are enrolled in."""

    learner_id: str
    name: str | None
    email: str | None
    enrolled_courses: list[EnrolledCourse] = field(default_factory=list)
