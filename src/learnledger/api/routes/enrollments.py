"""Enrollment endpoints."""

from fastapi import APIRouter, status

from learnledger.api.dependencies import (
    ActorDep,
    LearnerDep,
    LearnerOrStaffDep,
    LedgerDep,
    PaymentsDep,
    StaffDep,
)
from learnledger.api.models import (
    AccessResponse,
    APIResponse,
    EnrollmentCreate,
    EnrollmentResponse,
    EnrollmentUpdateRequest,
    LearnerEnrollmentsResponse,
    PaymentCreate,
    PaymentResponse,
    PaymentSummaryResponse,
)
from learnledger.enrollment import EnrollmentUpdate

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=APIResponse[EnrollmentResponse],
    status_code=status.HTTP_201_CREATED,
)
def enroll(
    body: EnrollmentCreate, actor: LearnerDep, ledger: LedgerDep
) -> APIResponse[EnrollmentResponse]:
    """Enroll the calling learner in a course."""
    enrollment = ledger.enroll(actor.id, body.course_id)
    return APIResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.get("", response_model=APIResponse[list[EnrollmentResponse]])
def list_enrollments(actor: ActorDep, ledger: LedgerDep) -> APIResponse[list[EnrollmentResponse]]:
    """List enrollments visible to the caller."""
    enrollments = ledger.list_enrollments(actor)
    return APIResponse(data=[EnrollmentResponse.model_validate(e) for e in enrollments])


@router.get("/by-learner", response_model=APIResponse[list[LearnerEnrollmentsResponse]])
def list_by_learner(
    actor: StaffDep, ledger: LedgerDep
) -> APIResponse[list[LearnerEnrollmentsResponse]]:
    """Enrollments grouped by learner."""
    grouped = ledger.list_learners_with_enrollments(actor)
    return APIResponse(data=[LearnerEnrollmentsResponse.model_validate(g) for g in grouped])


@router.get("/{enrollment_id}", response_model=APIResponse[EnrollmentResponse])
def get_enrollment(
    enrollment_id: str, actor: ActorDep, ledger: LedgerDep
) -> APIResponse[EnrollmentResponse]:
    """Get an enrollment by ID."""
    enrollment = ledger.get_enrollment(enrollment_id, actor)
    return APIResponse(data=EnrollmentResponse.model_validate(enrollment))


@router.patch("/{enrollment_id}", response_model=APIResponse[EnrollmentResponse])
def update_enrollment(
    enrollment_id: str,
    body: EnrollmentUpdateRequest,
    actor: LearnerOrStaffDep,
    ledger: LedgerDep,
) -> APIResponse[EnrollmentResponse]:
    """Update an enrollment (partial update)."""
    updated = ledger.update_status(
        enrollment_id,
        actor,
        EnrollmentUpdate(
            status=body.status,
            progress_percentage=body.progress_percentage,
            payment_status=body.payment_status,
        ),
    )
    return APIResponse(data=EnrollmentResponse.model_validate(updated))


@router.delete("/{enrollment_id}", response_model=APIResponse[None])
def unenroll(enrollment_id: str, actor: LearnerOrStaffDep, ledger: LedgerDep) -> APIResponse[None]:
    """Remove an enrollment. Its payments are kept."""
    ledger.unenroll(enrollment_id, actor)
    return APIResponse(data=None)


@router.get("/{enrollment_id}/access", response_model=APIResponse[AccessResponse])
def check_access(
    enrollment_id: str, actor: ActorDep, ledger: LedgerDep
) -> APIResponse[AccessResponse]:
    """Whether the enrollment currently grants content access."""
    allowed = ledger.check_access(enrollment_id, actor)
    return APIResponse(data=AccessResponse(enrollment_id=enrollment_id, can_access=allowed))


@router.post("/{enrollment_id}/payment", response_model=APIResponse[PaymentSummaryResponse])
def pay_for_enrollment(
    enrollment_id: str,
    body: PaymentCreate,
    actor: LearnerDep,
    payments: PaymentsDep,
) -> APIResponse[PaymentSummaryResponse]:
    """Record the learner's payment for an enrollment."""
    result = payments.record_payment(
        enrollment_id,
        actor,
        payment_method=body.payment_method.value,
        transaction_id=body.transaction_id,
        gateway_response=body.gateway_response,
        order_id=body.order_id,
    )
    return APIResponse(
        data=PaymentSummaryResponse(
            payment=PaymentResponse.model_validate(result.payment),
            enrollment=EnrollmentResponse.model_validate(result.enrollment),
        )
    )
