"""Pydantic models for REST API."""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from learnledger.store import PaymentMethod

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


# Course models


class CourseCreate(BaseModel):
    """Request model for creating a course."""

    title: str = Field(..., min_length=1, max_length=150)
    category: str = Field(default="General", min_length=1, max_length=100)
    fee: float = Field(default=0.0, ge=0)
    start_date: datetime
    end_date: datetime
    educator_id: str | None = Field(
        default=None, description="Owning educator; defaults to the caller"
    )


class CourseResponse(BaseModel):
    """Response model for a course."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    category: str
    fee: float
    educator_id: str
    start_date: datetime
    end_date: datetime
    created_at: datetime


class CascadeReport(BaseModel):
    """Rows removed per table by a course deletion."""

    course_id: str
    deleted: dict[str, int]


# Enrollment models


class EnrollmentCreate(BaseModel):
    """Request model for enrolling in a course."""

    course_id: str = Field(..., min_length=1)


class EnrollmentUpdateRequest(BaseModel):
    """Request model for updating an enrollment (partial update)."""

    status: str | None = None
    progress_percentage: float | None = None
    payment_status: str | None = None


class EnrollmentResponse(BaseModel):
    """Response model for an enrollment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    learner_id: str
    course_id: str
    enrollment_date: datetime
    status: str
    payment_status: str
    progress_percentage: float


class EnrolledCourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: str
    title: str
    enrolled_at: datetime
    enrollment_id: str
    status: str
    payment_status: str


class LearnerEnrollmentsResponse(BaseModel):
    """A learner and the courses they are enrolled in."""

    model_config = ConfigDict(from_attributes=True)

    learner_id: str
    name: str | None
    email: str | None
    enrolled_courses: list[EnrolledCourseResponse]


class AccessResponse(BaseModel):
    enrollment_id: str
    can_access: bool


# Payment models


class PaymentCreate(BaseModel):
    """Request model for paying for an enrollment. The amount comes from the course fee."""

    payment_method: PaymentMethod
    transaction_id: str | None = Field(default=None, min_length=1, max_length=100)
    order_id: str | None = Field(default=None, max_length=100)
    gateway_response: dict[str, Any] = Field(default_factory=dict)


class PaymentSettle(BaseModel):
    """Request model for settling a pending payment."""

    succeeded: bool
    failure_reason: str | None = None


class RefundRequest(BaseModel):
    """Request model for refunding a payment."""

    refund_amount: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    refund_reason: str | None = Field(default=None, max_length=500)


class RefundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_refunded: bool
    refund_amount: float
    refund_transaction_id: str | None
    refund_date: datetime | None
    refund_reason: str | None


class PaymentResponse(BaseModel):
    """Response model for a payment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    enrollment_id: str | None
    learner_id: str
    course_id: str
    transaction_id: str
    order_id: str
    amount: float
    currency: str
    payment_method: str
    status: str
    card_last4: str | None
    card_type: str | None
    upi_id: str | None
    failure_reason: str | None
    refund: RefundResponse
    payment_date: datetime
    expiry_date: datetime


class PaymentSummaryResponse(BaseModel):
    """Payment together with the enrollment state it produced."""

    payment: PaymentResponse
    enrollment: EnrollmentResponse


class RefundResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment: PaymentResponse
    refund: RefundResponse
    enrollment_dropped: bool


class PaginationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_page: int
    total_pages: int
    total_payments: int
    has_next_page: bool
    has_prev_page: bool


class SpendingSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_spent: float
    total_transactions: int
    avg_transaction_value: float


class PaymentHistoryResponse(BaseModel):
    """A learner's payments with paging and spending totals."""

    model_config = ConfigDict(from_attributes=True)

    payments: list[PaymentResponse]
    pagination: PaginationResponse
    summary: SpendingSummaryResponse


class MethodRevenueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    method: str
    count: int
    revenue: float


class DailyRevenueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: str
    revenue: float
    transactions: int


class CourseRevenueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: str
    course_name: str
    category: str
    revenue: float
    enrollments: int


class FailureCountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reason: str
    count: int


class PaymentAnalyticsResponse(BaseModel):
    """Revenue roll-up over successful payments."""

    model_config = ConfigDict(from_attributes=True)

    total_revenue: float
    total_transactions: int
    avg_transaction_value: float
    payment_method_breakdown: dict[str, int]
    date_range: int
    method_breakdown: list[MethodRevenueResponse]
    daily_trend: list[DailyRevenueResponse]
    top_courses: list[CourseRevenueResponse]
    failed_payments: list[FailureCountResponse]


class ReceiptResponse(BaseModel):
    """Receipt content for one payment."""

    model_config = ConfigDict(from_attributes=True)

    receipt_id: str
    transaction_id: str
    payment_date: datetime
    learner_name: str
    learner_email: str | None
    course_title: str
    course_category: str
    amount: float
    currency: str
    payment_method: str
    status: str
    enrollment_date: datetime | None
    organization_name: str
    organization_contact: str


class ExpiredPaymentsResponse(BaseModel):
    expired: int


# Quiz and assignment models


class QuestionResponse(BaseModel):
    """A quiz question as shown to learners (no correct answer)."""

    question_text: str
    options: list[str]


class QuizResponse(BaseModel):
    """Response model for a quiz."""

    id: str
    course_id: str
    title: str
    questions: list[QuestionResponse]
    available_from: datetime | None
    duration_minutes: int


class QuizSubmit(BaseModel):
    """Request model for submitting a quiz: one option index per question."""

    answers: list[int]


class QuizResultResponse(BaseModel):
    score: int
    total: int
    correct_answers: list[int]
    attempted_at: datetime


class QuizSubmissionEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    learner_id: str
    score: int
    total: int
    submitted_at: datetime


class AttemptSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempt_id: str
    quiz_id: str
    quiz_title: str
    course_id: str
    course_title: str
    score: int
    total: int
    attempted_at: datetime


class AssignmentResponse(BaseModel):
    """Response model for an assignment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: str
    name: str
    description: str
    due_date: datetime


class SubmissionCreate(BaseModel):
    """Request model for submitting an assignment. Files are uploaded elsewhere."""

    file_url: str = Field(..., min_length=1, max_length=500)
    file_name: str | None = Field(default=None, max_length=255)


class SubmissionGrade(BaseModel):
    grade: float = Field(..., ge=0, le=100)
    feedback: str | None = None


class SubmissionResponse(BaseModel):
    """Response model for an assignment submission."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    assignment_id: str
    course_id: str
    learner_id: str
    file_url: str
    file_name: str | None
    status: str
    grade: float | None
    feedback: str | None
    submitted_at: datetime


def quiz_to_response(quiz: Any) -> QuizResponse:
    """Convert a Quiz model to QuizResponse, leaving out the correct answers."""
    return QuizResponse(
        id=quiz.id,
        course_id=quiz.course_id,
        title=quiz.title,
        questions=[
            QuestionResponse(question_text=q["question_text"], options=q["options"])
            for q in quiz.questions
        ],
        available_from=quiz.available_date,
        duration_minutes=quiz.duration_minutes,
    )
