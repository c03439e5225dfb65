"""Payment Processor - payments, refunds and revenue reporting."""

from learnledger.payments.models import (
    CourseRevenue,
    DailyRevenue,
    FailureCount,
    MethodRevenue,
    Pagination,
    PaymentAnalytics,
    PaymentHistory,
    PaymentResult,
    Receipt,
    RefundResult,
    SpendingSummary,
)
from learnledger.payments.processor import PaymentProcessor, generate_transaction_id

__all__ = [
    "CourseRevenue",
    "DailyRevenue",
    "FailureCount",
    "MethodRevenue",
    "Pagination",
    "PaymentAnalytics",
    "PaymentHistory",
    "PaymentProcessor",
    "PaymentResult",
    "Receipt",
    "RefundResult",
    "SpendingSummary",
    "generate_transaction_id",
]
