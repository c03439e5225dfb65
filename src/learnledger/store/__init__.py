"""Store - Persistent storage for courses, enrollments, payments and course content."""

from learnledger.store.catalog import CatalogStore
from learnledger.store.database import Database
from learnledger.store.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from learnledger.store.models import (
    ActorContext,
    Assignment,
    Course,
    DoubtSession,
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    Evaluation,
    ForumPost,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Quiz,
    QuizAttempt,
    RefundRecord,
    Role,
    StudyPlan,
    Submission,
    SubmissionStatus,
    User,
    utc_now,
)

__all__ = [
    "ActorContext",
    "Assignment",
    "AuthenticationError",
    "CatalogStore",
    "ConflictError",
    "Course",
    "Database",
    "DoubtSession",
    "Enrollment",
    "EnrollmentPaymentStatus",
    "EnrollmentStatus",
    "Evaluation",
    "ForbiddenError",
    "ForumPost",
    "InternalError",
    "InvalidStateError",
    "LedgerError",
    "NotFoundError",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Quiz",
    "QuizAttempt",
    "RefundRecord",
    "Role",
    "StudyPlan",
    "Submission",
    "SubmissionStatus",
    "User",
    "ValidationError",
    "utc_now",
]
