"""Enrollment Ledger - learner/course enrollment state."""

from learnledger.enrollment.ledger import EnrollmentLedger
from learnledger.enrollment.models import EnrolledCourse, EnrollmentUpdate, LearnerEnrollments

__all__ = [
    "EnrolledCourse",
    "EnrollmentLedger",
    "EnrollmentUpdate",
    "LearnerEnrollments",
]
