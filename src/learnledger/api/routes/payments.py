"""Payment endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query

from learnledger.api.dependencies import (
    LearnerDep,
    LearnerOrStaffDep,
    PaymentsDep,
    ServicesDep,
    StaffDep,
)
from learnledger.api.models import (
    APIResponse,
    EnrollmentResponse,
    ExpiredPaymentsResponse,
    PaymentAnalyticsResponse,
    PaymentHistoryResponse,
    PaymentResponse,
    PaymentSettle,
    PaymentSummaryResponse,
    ReceiptResponse,
    RefundRequest,
    RefundResultResponse,
)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/my-history", response_model=APIResponse[PaymentHistoryResponse])
def payment_history(
    actor: LearnerDep,
    payments: PaymentsDep,
    status: str | None = Query(default=None, description="Filter by payment status"),
    method: str | None = Query(default=None, description="Filter by payment method"),
    date_from: datetime | None = Query(default=None, description="Earliest payment date"),
    date_to: datetime | None = Query(default=None, description="Latest payment date"),
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Payments per page"),
) -> APIResponse[PaymentHistoryResponse]:
    """The caller's payments, newest first."""
    history = payments.payment_history(
        actor,
        status=status,
        method=method,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return APIResponse(data=PaymentHistoryResponse.model_validate(history))


@router.get("/analytics", response_model=APIResponse[PaymentAnalyticsResponse])
def payment_analytics(
    _actor: StaffDep,
    services: ServicesDep,
    date_range: int | None = Query(default=None, ge=1, le=3650, description="Days to include"),
) -> APIResponse[PaymentAnalyticsResponse]:
    """Revenue roll-up over successful payments."""
    days = date_range if date_range is not None else services.settings.analytics_default_days
    analytics = services.payments.get_analytics(days)
    return APIResponse(data=PaymentAnalyticsResponse.model_validate(analytics))


@router.post("/expire", response_model=APIResponse[ExpiredPaymentsResponse])
def expire_payments(
    _actor: StaffDep, payments: PaymentsDep
) -> APIResponse[ExpiredPaymentsResponse]:
    """Cancel pending payments past their expiry date."""
    expired = payments.expire_stale_payments()
    return APIResponse(data=ExpiredPaymentsResponse(expired=expired))


@router.get("/receipt/{transaction_id}", response_model=APIResponse[ReceiptResponse])
def get_receipt(
    transaction_id: str, actor: LearnerOrStaffDep, payments: PaymentsDep
) -> APIResponse[ReceiptResponse]:
    """Receipt content for a payment."""
    receipt = payments.build_receipt(transaction_id, actor)
    return APIResponse(data=ReceiptResponse.model_validate(receipt))


@router.get("/{payment_id}", response_model=APIResponse[PaymentResponse])
def get_payment(
    payment_id: str, actor: LearnerOrStaffDep, payments: PaymentsDep
) -> APIResponse[PaymentResponse]:
    """Get a payment by ID."""
    payment = payments.get_payment(payment_id, actor)
    return APIResponse(data=PaymentResponse.model_validate(payment))


@router.post("/{payment_id}/settle", response_model=APIResponse[PaymentSummaryResponse])
def settle_payment(
    payment_id: str, body: PaymentSettle, _actor: StaffDep, payments: PaymentsDep
) -> APIResponse[PaymentSummaryResponse]:
    """Apply the gateway's final outcome to a pending payment."""
    result = payments.settle_payment(
        payment_id, succeeded=body.succeeded, failure_reason=body.failure_reason
    )
    return APIResponse(
        data=PaymentSummaryResponse(
            payment=PaymentResponse.model_validate(result.payment),
            enrollment=EnrollmentResponse.model_validate(result.enrollment),
        )
    )


@router.post("/{payment_id}/refund", response_model=APIResponse[RefundResultResponse])
def refund_payment(
    payment_id: str, body: RefundRequest, actor: StaffDep, payments: PaymentsDep
) -> APIResponse[RefundResultResponse]:
    """Refund a successful payment, fully or in part."""
    result = payments.refund(
        payment_id,
        actor,
        refund_amount=body.refund_amount,
        refund_reason=body.refund_reason,
    )
    return APIResponse(data=RefundResultResponse.model_validate(result))
