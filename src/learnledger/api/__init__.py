"""REST API for LearnLedger."""

from learnledger.api.app import create_app
from learnledger.api.models import (
    APIResponse,
    EnrollmentCreate,
    EnrollmentResponse,
    PaymentCreate,
    PaymentResponse,
)

__all__ = [
    "APIResponse",
    "EnrollmentCreate",
    "EnrollmentResponse",
    "PaymentCreate",
    "PaymentResponse",
    "create_app",
]
