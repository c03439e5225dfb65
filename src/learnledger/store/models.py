"""SQLAlchemy models for the learnledger store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)

PAYMENT_EXPIRY = timedelta(hours=24)


class Role(StrEnum):
    """Caller role, resolved upstream by the identity service."""

    LEARNER = "learner"
    EDUCATOR = "educator"
    COORDINATOR = "coordinator"
    ADMIN = "admin"


class EnrollmentStatus(StrEnum):
    """Academic state of an enrollment."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"


class EnrollmentPaymentStatus(StrEnum):
    """Payment state as seen from the enrollment."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentStatus(StrEnum):
    """Payment transaction state."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(StrEnum):
    """Accepted payment methods."""

    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"
    FREE = "free"


class SubmissionStatus(StrEnum):
    """Assignment submission state."""

    SUBMITTED = "submitted"
    GRADED = "graded"
    LATE = "late"
    RESUBMITTED = "resubmitted"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current time as naive UTC, the representation used by every column."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class User(Base):
    """User record mirrored from the identity service."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, role={self.role!r})>"


class Course(Base):
    """Course catalog entry."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    fee: Mapped[float] = mapped_column(Float, nullable=False)
    educator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    def __init__(
        self,
        title: str,
        educator_id: str,
        start_date: datetime,
        end_date: datetime,
        id: str | None = None,
        category: str = "General",
        fee: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.title = title
        self.educator_id = educator_id
        self.start_date = start_date
        self.end_date = end_date
        self.category = category
        self.fee = fee

    def __repr__(self) -> str:
        return f"<Course(id={self.id!r}, title={self.title!r}, fee={self.fee!r})>"


class Enrollment(Base):
    """One learner's enrollment in one course."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("learner_id", "course_id", name="uq_enrollment_learner_course"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    enrollment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    progress_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    def __init__(
        self,
        learner_id: str,
        course_id: str,
        id: str | None = None,
        enrollment_date: datetime | None = None,
        status: str | None = None,
        payment_status: str | None = None,
        progress_percentage: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.learner_id = learner_id
        self.course_id = course_id
        self.enrollment_date = enrollment_date if enrollment_date is not None else utc_now()
        self.status = status if status is not None else EnrollmentStatus.ACTIVE.value
        self.payment_status = (
            payment_status if payment_status is not None else EnrollmentPaymentStatus.PENDING.value
        )
        self.progress_percentage = progress_percentage

    @property
    def enrollment_status(self) -> EnrollmentStatus:
        """Get status as EnrollmentStatus enum."""
        return EnrollmentStatus(self.status)

    @property
    def enrollment_payment_status(self) -> EnrollmentPaymentStatus:
        """Get payment_status as EnrollmentPaymentStatus enum."""
        return EnrollmentPaymentStatus(self.payment_status)

    def __repr__(self) -> str:
        return (
            f"<Enrollment(id={self.id!r}, learner_id={self.learner_id!r}, "
            f"course_id={self.course_id!r}, status={self.status!r}, "
            f"payment_status={self.payment_status!r})>"
        )


@dataclass
class RefundRecord:
    """Refund sub-record of a payment."""

    is_refunded: bool
    refund_amount: float
    refund_transaction_id: str | None
    refund_date: datetime | None
    refund_reason: str | None


class Payment(Base):
    """A payment transaction against an enrollment."""

    __tablename__ = "payments"
    __table_args__ = (
        # At most one successful payment per enrollment
        Index(
            "uq_payment_enrollment_success",
            "enrollment_id",
            unique=True,
            sqlite_where=text("status = 'success'"),
            postgresql_where=text("status = 'success'"),
        ),
        Index("ix_payments_learner_created", "learner_id", "created_at"),
        Index("ix_payments_status_date", "status", "payment_date"),
        Index("ix_payments_course_status", "course_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    enrollment_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True
    )
    learner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_provider: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    gateway_response: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    card_last4: Mapped[str | None] = mapped_column(String(4), nullable=True)
    card_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    upi_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_refunded: Mapped[bool] = mapped_column(Boolean, nullable=False)
    refund_amount: Mapped[float] = mapped_column(Float, nullable=False)
    refund_transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    refund_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    def __init__(
        self,
        enrollment_id: str | None,
        learner_id: str,
        course_id: str,
        transaction_id: str,
        amount: float,
        payment_method: str,
        id: str | None = None,
        order_id: str | None = None,
        currency: str = "INR",
        payment_provider: str = "gateway",
        status: str | None = None,
        gateway_response: dict[str, Any] | None = None,
        payment_date: datetime | None = None,
        expiry_date: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.enrollment_id = enrollment_id
        self.learner_id = learner_id
        self.course_id = course_id
        self.transaction_id = transaction_id
        self.order_id = order_id if order_id is not None else f"ORDER_{transaction_id}"
        self.amount = amount
        self.currency = currency
        self.payment_method = payment_method
        self.payment_provider = payment_provider
        self.status = status if status is not None else PaymentStatus.PENDING.value
        self.gateway_response = gateway_response if gateway_response is not None else {}
        self.payment_date = payment_date if payment_date is not None else utc_now()
        self.expiry_date = (
            expiry_date if expiry_date is not None else self.payment_date + PAYMENT_EXPIRY
        )
        self.is_refunded = False
        self.refund_amount = 0.0

    @property
    def payment_status(self) -> PaymentStatus:
        """Get status as PaymentStatus enum."""
        return PaymentStatus(self.status)

    @property
    def refund(self) -> RefundRecord:
        """Refund sub-record view."""
        return RefundRecord(
            is_refunded=self.is_refunded,
            refund_amount=self.refund_amount,
            refund_transaction_id=self.refund_transaction_id,
            refund_date=self.refund_date,
            refund_reason=self.refund_reason,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """An unsettled payment past its expiry date is stale."""
        now = now if now is not None else utc_now()
        in_flight = self.status in (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value)
        return in_flight and now > self.expiry_date

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id!r}, transaction_id={self.transaction_id!r}, "
            f"status={self.status!r}, amount={self.amount!r})>"
        )


class Assignment(Base):
    """Course assignment."""

    __tablename__ = "assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    educator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class Submission(Base):
    """A learner's current submission for an assignment."""

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("learner_id", "assignment_id", name="uq_submission_learner_assignment"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    assignment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assignments.id"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    learner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    file_url: Mapped[str] = mapped_column(String(500), nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubmissionStatus.SUBMITTED.value
    )
    grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )


class Quiz(Base):
    """Quiz with embedded questions.

    ``questions`` holds a list of ``{"question_text", "options", "correct_answer_index"}``.
    Learner submissions are not stored here; see ``QuizAttempt``.
    """

    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    educator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    questions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    scheduled_date_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    available_from: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    @property
    def available_date(self) -> datetime | None:
        """When the quiz opens; falls back to the scheduled time."""
        return self.available_from if self.available_from is not None else self.scheduled_date_time

    @property
    def correct_answers(self) -> list[int]:
        return [int(q["correct_answer_index"]) for q in self.questions]

    def __repr__(self) -> str:
        return f"<Quiz(id={self.id!r}, title={self.title!r}, published={self.published!r})>"


class QuizAttempt(Base):
    """A learner's single, immutable attempt at a quiz."""

    __tablename__ = "quiz_attempts"
    __table_args__ = (UniqueConstraint("learner_id", "quiz_id", name="uq_attempt_learner_quiz"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    quiz_id: Mapped[str] = mapped_column(String(36), ForeignKey("quizzes.id"), nullable=False)
    answers: Mapped[list[dict[str, int]]] = mapped_column(JSON, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        learner_id: str,
        quiz_id: str,
        answers: list[dict[str, int]],
        score: int,
        total_questions: int,
        id: str | None = None,
        attempted_at: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.learner_id = learner_id
        self.quiz_id = quiz_id
        self.answers = answers
        self.score = score
        self.total_questions = total_questions
        self.attempted_at = attempted_at if attempted_at is not None else utc_now()

    def __repr__(self) -> str:
        return (
            f"<QuizAttempt(id={self.id!r}, quiz_id={self.quiz_id!r}, "
            f"learner_id={self.learner_id!r}, score={self.score!r})>"
        )


class Evaluation(Base):
    """Educator evaluation of a learner in a course."""

    __tablename__ = "evaluations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    learner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    educator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    feedback: Mapped[str] = mapped_column(Text, nullable=False)
    grade: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class StudyPlan(Base):
    """Study plan; ``schedule`` holds ``{"date", "topic", "notes_url"}`` entries."""

    __tablename__ = "study_plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    educator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    schedule: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class ForumPost(Base):
    """Course discussion post."""

    __tablename__ = "forum_posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_post_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


class DoubtSession(Base):
    """Scheduled doubt-clearing session."""

    __tablename__ = "doubt_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    educator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    topic: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)


@dataclass
class ActorContext:
    """Already-authenticated caller identity, passed explicitly into core operations."""

    id: str
    role: Role

    @property
    def is_learner(self) -> bool:
        return self.role == Role.LEARNER

    @property
    def is_staff(self) -> bool:
        """Coordinators and admins may act on any record."""
        return self.role in (Role.COORDINATOR, Role.ADMIN)
