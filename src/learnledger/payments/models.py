"""Data models for the Payment Processor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from learnledger.store.models import Enrollment, Payment, RefundRecord


@dataclass
class PaymentResult:
    """Outcome of recording or settling a payment.

    Attributes:
        payment: The persisted payment.
        enrollment: The enrollment after the payment was applied.
    """

    payment: Payment
    enrollment: Enrollment


@dataclass
class RefundResult:
    """Outcome of a refund.

    Attributes:
        payment: The payment after the refund.
        refund: The refund sub-record.
        enrollment_dropped: Whether the linked enrollment was dropped (full refund).
    """

    payment: Payment
    refund: RefundRecord
    enrollment_dropped: bool


@dataclass
class MethodRevenue:
    """Revenue for one payment method."""

    method: str
    count: int
    revenue: float


@dataclass
class DailyRevenue:
    """Revenue for one calendar day (UTC)."""

    day: str
    revenue: float
    transactions: int


@dataclass
class CourseRevenue:
    """Revenue for one course."""

    course_id: str
    course_name: str
    category: str
    revenue: float
    enrollments: int


@dataclass
class FailureCount:
    """Number of failed payments sharing a failure reason."""

    reason: str
    count: int


@dataclass
class PaymentAnalytics:
    """Roll-up over successful payments within a date range."""

    total_revenue: float
    total_transactions: int
    avg_transaction_value: float
    payment_method_breakdown: dict[str, int]
    date_range: int
    method_breakdown: list[MethodRevenue] = field(default_factory=list)
    daily_trend: list[DailyRevenue] = field(default_factory=list)
    top_courses: list[CourseRevenue] = field(default_factory=list)
    failed_payments: list[FailureCount] = field(default_factory=list)


@dataclass
class Pagination:
    current_page: int
    total_pages: int
    total_payments: int
    has_next_page: bool
    has_prev_page: bool


@dataclass
class SpendingSummary:
    """A learner's successful-payment totals."""

    total_spent: float
    total_transactions: int
    avg_transaction_value: float


@dataclass
class PaymentHistory:
    payments: list[Payment]
    pagination: Pagination
    summary: SpendingSummary


@dataclass
class Receipt:
    """Receipt content for one payment. Rendering is left to the report service."""

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
