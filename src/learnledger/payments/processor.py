"""PaymentProcessor - payments, refunds and revenue reporting for enrollments."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError

from learnledger.logging import sanitize_for_log
from learnledger.notifications import Notification, NullNotifier
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
from learnledger.store.database import Database
from learnledger.store.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from learnledger.store.models import (
    ActorContext,
    Course,
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    User,
    utc_now,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from learnledger.notifications import Notifier

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Coordinator initiated refund"
EXPIRED_REASON = "Payment expired"

# Gateway-reported outcomes that do not settle the payment immediately
IN_FLIGHT_OUTCOMES = {PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value}


def generate_transaction_id(prefix: str = "TXN") -> str:
    """Generate a collision-resistant transaction reference."""
    return f"{prefix}_{uuid.uuid4().hex.upper()}"


class PaymentProcessor:
    """Records payments against enrollments and keeps enrollment payment state in step.

    Every operation that touches both a payment and its enrollment runs in a single
    transaction, so readers see either both writes or neither.
    """

    def __init__(
        self,
        db: Database,
        notifier: Notifier | None = None,
        currency: str = "INR",
        payment_expiry: timedelta = timedelta(hours=24),
        organization_name: str = "Learning Dashboard",
        organization_contact: str = "support@learningdashboard.com",
    ) -> None:
        """Initialize the processor.

        Args:
            db: Database holding enrollments and payments.
            notifier: Where payment notifications go. Defaults to dropping them.
            currency: Currency recorded on new payments.
            payment_expiry: How long a pending payment stays valid.
            organization_name: Printed on receipts.
            organization_contact: Printed on receipts.
        """
        self._db = db
        self.notifier = notifier if notifier is not None else NullNotifier()
        self.currency = currency
        self.payment_expiry = payment_expiry
        self.organization_name = organization_name
        self.organization_contact = organization_contact

    # --- Payments ---

    def record_payment(
        self,
        enrollment_id: str,
        actor: ActorContext,
        payment_method: str,
        transaction_id: str | None = None,
        gateway_response: dict[str, Any] | None = None,
        order_id: str | None = None,
        now: datetime | None = None,
    ) -> PaymentResult:
        """Record a payment attempt for an enrollment.

        The amount is always the course fee. The gateway's reported ``status`` decides
        the outcome: "failed" records a failed payment, "pending"/"processing" leaves
        the payment open for settlement, anything else is a success.

        Args:
            enrollment_id: The enrollment being paid for.
            actor: The caller; must be the enrollment's learner.
            payment_method: One of PaymentMethod.
            transaction_id: Gateway transaction ID (generated when omitted).
            gateway_response: Raw gateway payload.
            order_id: Gateway order ID (derived from the transaction ID when omitted).
            now: Payment time (defaults to current UTC time).

        Returns:
            The payment and the enrollment after it was applied.

        Raises:
            NotFoundError: If the enrollment doesn't exist.
            ForbiddenError: If the caller is not the enrollment's learner.
            ConflictError: If the enrollment is already paid or the transaction ID is taken.
            ValidationError: If the payment method is unknown.
        """
        now = now if now is not None else utc_now()
        gateway_response = dict(gateway_response or {})

        with self._db.transaction("record_payment") as session:
            enrollment = session.get(Enrollment, enrollment_id)
            if enrollment is None:
                raise NotFoundError(f"Enrollment with id '{enrollment_id}' not found")
            if enrollment.learner_id != actor.id:
                raise ForbiddenError("Not authorized to process payment for this enrollment")
            if enrollment.payment_status == EnrollmentPaymentStatus.SUCCESS.value:
                logger.warning("Duplicate payment rejected for enrollment %s", enrollment_id)
                raise ConflictError("Payment has already been completed for this enrollment")
            if payment_method not in {m.value for m in PaymentMethod}:
                raise ValidationError(f"Unsupported payment method '{payment_method}'")

            course = session.get(Course, enrollment.course_id)
            if course is None:
                raise NotFoundError(f"Course with id '{enrollment.course_id}' not found")

            outcome = _gateway_outcome(gateway_response)
            payment = Payment(
                enrollment_id=enrollment.id,
                learner_id=enrollment.learner_id,
                course_id=course.id,
                transaction_id=transaction_id or generate_transaction_id(),
                order_id=order_id,
                amount=course.fee,
                currency=self.currency,
                payment_method=payment_method,
                status=outcome,
                gateway_response=gateway_response,
                payment_date=now,
                expiry_date=now + self.payment_expiry,
            )
            payment.card_last4 = gateway_response.get("cardLast4")
            payment.card_type = gateway_response.get("cardType")
            payment.upi_id = gateway_response.get("upiId")
            if outcome == PaymentStatus.FAILED.value:
                payment.failure_reason = (
                    gateway_response.get("responseMessage") or "Declined by gateway"
                )

            session.add(payment)
            try:
                self._apply_outcome(session, payment, enrollment)
                session.flush()
            except IntegrityError as e:
                raise ConflictError("Payment has already been recorded") from e
            session.refresh(enrollment)

        logger.info(
            "Payment %s for enrollment %s recorded as %s (amount=%s %s, gateway=%s)",
            payment.transaction_id,
            enrollment_id,
            payment.status,
            payment.amount,
            payment.currency,
            sanitize_for_log(str(gateway_response)),
        )
        self._notify_outcome(payment)
        return PaymentResult(payment=payment, enrollment=enrollment)

    def settle_payment(
        self,
        payment_id: str,
        succeeded: bool,
        failure_reason: str | None = None,
        now: datetime | None = None,
    ) -> PaymentResult:
        """Settle a pending payment once the gateway reports its final outcome.

        Raises:
            NotFoundError: If the payment doesn't exist.
            InvalidStateError: If the payment is not pending or has expired.
            ConflictError: If the enrollment was paid by another payment meanwhile.
        """
        now = now if now is not None else utc_now()
        with self._db.transaction("settle_payment") as session:
            payment = session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError(f"Payment with id '{payment_id}' not found")
            if payment.status not in IN_FLIGHT_OUTCOMES:
                raise InvalidStateError(f"Payment is already {payment.status}")
            if payment.is_expired(now):
                raise InvalidStateError("Payment has expired")
            enrollment = (
                session.get(Enrollment, payment.enrollment_id) if payment.enrollment_id else None
            )
            if enrollment is None:
                raise NotFoundError("Enrollment for this payment no longer exists")

            if succeeded:
                payment.status = PaymentStatus.SUCCESS.value
            else:
                payment.status = PaymentStatus.FAILED.value
                payment.failure_reason = failure_reason or "Declined by gateway"
            payment.payment_date = now
            try:
                self._apply_outcome(session, payment, enrollment)
                session.flush()
            except IntegrityError as e:
                raise ConflictError("Payment has already been completed for this enrollment") from e
            session.refresh(enrollment)

        logger.info("Payment %s settled as %s", payment.transaction_id, payment.status)
        self._notify_outcome(payment)
        return PaymentResult(payment=payment, enrollment=enrollment)

    def _apply_outcome(self, session: Session, payment: Payment, enrollment: Enrollment) -> None:
        """Move the enrollment's payment status to match the payment."""
        if payment.status == PaymentStatus.SUCCESS.value:
            # Conditional write: a concurrent success commits first and this one matches no row
            result = session.execute(
                update(Enrollment)
                .where(
                    Enrollment.id == enrollment.id,
                    Enrollment.payment_status != EnrollmentPaymentStatus.SUCCESS.value,
                )
                .values(
                    payment_status=EnrollmentPaymentStatus.SUCCESS.value,
                    status=case(
                        (
                            Enrollment.status.in_(
                                [EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value]
                            ),
                            Enrollment.status,
                        ),
                        else_=EnrollmentStatus.ACTIVE.value,
                    ),
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning("Concurrent payment lost the race for enrollment %s", enrollment.id)
                raise ConflictError("Payment has already been completed for this enrollment")
        elif payment.status == PaymentStatus.FAILED.value:
            # A failure never overrides a success recorded by another payment
            session.execute(
                update(Enrollment)
                .where(
                    Enrollment.id == enrollment.id,
                    Enrollment.payment_status != EnrollmentPaymentStatus.SUCCESS.value,
                )
                .values(payment_status=EnrollmentPaymentStatus.FAILED.value, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )

    def _notify_outcome(self, payment: Payment) -> None:
        if payment.status == PaymentStatus.SUCCESS.value:
            subject = "Payment successful"
            body = (
                f"Your payment of {payment.amount:.2f} {payment.currency} was received. "
                f"Transaction ID: {payment.transaction_id}."
            )
        elif payment.status == PaymentStatus.FAILED.value:
            subject = "Payment failed"
            body = (
                f"Your payment (transaction {payment.transaction_id}) could not be completed: "
                f"{payment.failure_reason}."
            )
        else:
            return
        self._notify_learner(payment.learner_id, subject, body)

    def _notify_learner(self, learner_id: str, subject: str, body: str) -> None:
        session = self._db.get_session()
        try:
            learner = session.get(User, learner_id)
        finally:
            session.close()
        if learner is None:
            logger.debug("No contact details for learner %s; '%s' not sent", learner_id, subject)
            return
        self.notifier.notify(Notification(to=learner.email, subject=subject, body=body))

    def get_payment(self, payment_id: str, actor: ActorContext) -> Payment:
        """Get a payment. Learners may only see their own.

        Raises:
            NotFoundError: If the payment doesn't exist.
            ForbiddenError: If a learner asks for someone else's payment.
        """
        session = self._db.get_session()
        try:
            payment = session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError(f"Payment with id '{payment_id}' not found")
            if not actor.is_staff and payment.learner_id != actor.id:
                raise ForbiddenError("Not authorized to view this payment")
            return payment
        finally:
            session.close()

    # --- Refunds ---

    def refund(
        self,
        payment_id: str,
        actor: ActorContext,
        refund_amount: float | None = None,
        refund_reason: str | None = None,
        now: datetime | None = None,
    ) -> RefundResult:
        """Refund a successful payment.

        A full refund marks the payment refunded and drops the enrollment in the same
        transaction. A partial refund is recorded on the refund sub-record only; the
        payment stays successful and the enrollment is untouched.

        Args:
            payment_id: The payment to refund.
            actor: The caller; must be a coordinator or admin.
            refund_amount: Amount to return. Defaults to the full payment amount.
            refund_reason: Free-text reason.
            now: Refund time (defaults to current UTC time).

        Raises:
            NotFoundError: If the payment doesn't exist.
            ForbiddenError: If the caller is not staff.
            ConflictError: If the payment was already refunded.
            InvalidStateError: If the payment is not successful.
            ValidationError: If the amount is not positive or exceeds the payment.
        """
        now = now if now is not None else utc_now()
        with self._db.transaction("refund") as session:
            payment = session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError(f"Payment with id '{payment_id}' not found")
            if not actor.is_staff:
                raise ForbiddenError("Only coordinators can refund payments")
            if payment.is_refunded or payment.status == PaymentStatus.REFUNDED.value:
                raise ConflictError("Payment has already been refunded")
            if payment.status != PaymentStatus.SUCCESS.value:
                raise InvalidStateError("Can only refund successful payments")

            amount = payment.amount if refund_amount is None else float(refund_amount)
            if not math.isfinite(amount):
                raise ValidationError("Refund amount must be a finite number")
            if amount < 0 or (amount == 0 and payment.amount > 0):
                raise ValidationError("Refund amount must be positive")
            if amount > payment.amount:
                raise ValidationError("Refund amount cannot exceed payment amount")

            payment.is_refunded = True
            payment.refund_amount = amount
            payment.refund_transaction_id = generate_transaction_id("REFUND")
            payment.refund_date = now
            payment.refund_reason = refund_reason or DEFAULT_REFUND_REASON

            enrollment_dropped = False
            if math.isclose(amount, payment.amount):
                payment.status = PaymentStatus.REFUNDED.value
                enrollment = None
                if payment.enrollment_id:
                    enrollment = session.get(Enrollment, payment.enrollment_id)
                if enrollment is not None:
                    enrollment.payment_status = EnrollmentPaymentStatus.REFUNDED.value
                    enrollment.status = EnrollmentStatus.DROPPED.value
                    enrollment_dropped = True
            session.flush()

        logger.info(
            "Refund %s of %s %s on payment %s (full=%s)",
            payment.refund_transaction_id,
            amount,
            payment.currency,
            payment.transaction_id,
            payment.status == PaymentStatus.REFUNDED.value,
        )
        self._notify_learner(
            payment.learner_id,
            "Refund processed",
            f"A refund of {amount:.2f} {payment.currency} for transaction "
            f"{payment.transaction_id} has been processed.",
        )
        return RefundResult(
            payment=payment, refund=payment.refund, enrollment_dropped=enrollment_dropped
        )

    # --- Maintenance ---

    def expire_stale_payments(self, now: datetime | None = None) -> int:
        """Cancel pending payments whose expiry date has passed.

        Returns:
            Number of payments cancelled.
        """
        now = now if now is not None else utc_now()
        with self._db.transaction("expire_payments") as session:
            result = session.execute(
                update(Payment)
                .where(
                    Payment.status.in_(IN_FLIGHT_OUTCOMES),
                    Payment.expiry_date < now,
                )
                .values(
                    status=PaymentStatus.CANCELLED.value,
                    failure_reason=EXPIRED_REASON,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            expired = result.rowcount or 0
        if expired:
            logger.info("Cancelled %d stale pending payments", expired)
        return expired

    # --- Reporting ---

    def payment_history(
        self,
        actor: ActorContext,
        status: str | None = None,
        method: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> PaymentHistory:
        """A learner's own payments, newest first, with paging and spending totals.

        Raises:
            ValidationError: If page or limit is not positive.
        """
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive")

        conditions = [Payment.learner_id == actor.id]
        if status is not None:
            conditions.append(Payment.status == status)
        if method is not None:
            conditions.append(Payment.payment_method == method)
        if date_from is not None:
            conditions.append(Payment.payment_date >= date_from)
        if date_to is not None:
            conditions.append(Payment.payment_date <= date_to)

        session = self._db.get_session()
        try:
            total = session.execute(select(func.count(Payment.id)).where(*conditions)).scalar_one()
            payments = list(
                session.execute(
                    select(Payment)
                    .where(*conditions)
                    .order_by(Payment.payment_date.desc(), Payment.id)
                    .limit(limit)
                    .offset((page - 1) * limit)
                )
                .scalars()
                .all()
            )
            totals = session.execute(
                select(
                    func.sum(Payment.amount).label("spent"),
                    func.count(Payment.id).label("count"),
                    func.avg(Payment.amount).label("avg"),
                ).where(
                    Payment.learner_id == actor.id,
                    Payment.status == PaymentStatus.SUCCESS.value,
                )
            ).one()
        finally:
            session.close()

        total_pages = math.ceil(total / limit)
        return PaymentHistory(
            payments=payments,
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_payments=total,
                has_next_page=page < total_pages,
                has_prev_page=page > 1,
            ),
            summary=SpendingSummary(
                total_spent=float(totals.spent or 0.0),
                total_transactions=totals.count or 0,
                avg_transaction_value=round(float(totals.avg or 0.0), 2),
            ),
        )

    def get_analytics(
        self, date_range_days: int = 30, now: datetime | None = None
    ) -> PaymentAnalytics:
        """Revenue roll-up over successful payments in the last ``date_range_days``.

        Read-only; repeated calls over unchanged data return identical results.

        Raises:
            ValidationError: If the date range is not positive.
        """
        if date_range_days < 1:
            raise ValidationError("Date range must be at least one day")
        now = now if now is not None else utc_now()
        start = now - timedelta(days=date_range_days)
        in_window = (Payment.payment_date >= start, Payment.payment_date <= now)
        succeeded = (Payment.status == PaymentStatus.SUCCESS.value, *in_window)

        session = self._db.get_session()
        try:
            overall = session.execute(
                select(
                    func.sum(Payment.amount).label("revenue"),
                    func.count(Payment.id).label("count"),
                    func.avg(Payment.amount).label("avg"),
                ).where(*succeeded)
            ).one()

            by_method = session.execute(
                select(
                    Payment.payment_method,
                    func.count(Payment.id).label("count"),
                    func.sum(Payment.amount).label("revenue"),
                )
                .where(*succeeded)
                .group_by(Payment.payment_method)
                .order_by(func.sum(Payment.amount).desc(), Payment.payment_method)
            ).all()

            day = func.date(Payment.payment_date)
            daily = session.execute(
                select(
                    day.label("day"),
                    func.sum(Payment.amount).label("revenue"),
                    func.count(Payment.id).label("count"),
                )
                .where(*succeeded)
                .group_by(day)
                .order_by(day)
            ).all()

            top = session.execute(
                select(
                    Course.id,
                    Course.title,
                    Course.category,
                    func.sum(Payment.amount).label("revenue"),
                    func.count(Payment.id).label("count"),
                )
                .join(Course, Course.id == Payment.course_id)
                .where(*succeeded)
                .group_by(Course.id, Course.title, Course.category)
                .order_by(func.sum(Payment.amount).desc(), Course.id)
                .limit(10)
            ).all()

            reason = func.coalesce(Payment.failure_reason, "unknown")
            failed = session.execute(
                select(reason.label("reason"), func.count(Payment.id).label("count"))
                .where(Payment.status == PaymentStatus.FAILED.value, *in_window)
                .group_by(reason)
                .order_by(func.count(Payment.id).desc(), reason)
            ).all()
        finally:
            session.close()

        return PaymentAnalytics(
            total_revenue=float(overall.revenue or 0.0),
            total_transactions=overall.count or 0,
            avg_transaction_value=round(float(overall.avg or 0.0), 2),
            payment_method_breakdown={row.payment_method: row.count for row in by_method},
            date_range=date_range_days,
            method_breakdown=[
                MethodRevenue(
                    method=row.payment_method, count=row.count, revenue=float(row.revenue)
                )
                for row in by_method
            ],
            daily_trend=[
                DailyRevenue(day=str(row.day), revenue=float(row.revenue), transactions=row.count)
                for row in daily
            ],
            top_courses=[
                CourseRevenue(
                    course_id=row.id,
                    course_name=row.title,
                    category=row.category,
                    revenue=float(row.revenue),
                    enrollments=row.count,
                )
                for row in top
            ],
            failed_payments=[FailureCount(reason=row.reason, count=row.count) for row in failed],
        )

    def build_receipt(self, transaction_id: str, actor: ActorContext) -> Receipt:
        """Assemble receipt content for a payment.

        Raises:
            NotFoundError: If no payment has this transaction ID.
            ForbiddenError: If a learner asks for someone else's receipt.
        """
        session = self._db.get_session()
        try:
            payment = session.execute(
                select(Payment).where(Payment.transaction_id == transaction_id)
            ).scalar_one_or_none()
            if payment is None:
                raise NotFoundError(f"Payment with transaction '{transaction_id}' not found")
            if not actor.is_staff and payment.learner_id != actor.id:
                raise ForbiddenError("Not authorized to view this receipt")

            course = session.get(Course, payment.course_id)
            learner = session.get(User, payment.learner_id)
            enrollment = (
                session.get(Enrollment, payment.enrollment_id) if payment.enrollment_id else None
            )
        finally:
            session.close()

        return Receipt(
            receipt_id=payment.transaction_id,
            transaction_id=payment.transaction_id,
            payment_date=payment.payment_date,
            learner_name=learner.full_name if learner is not None else payment.learner_id,
            learner_email=learner.email if learner is not None else None,
            course_title=course.title if course is not None else "N/A",
            course_category=course.category if course is not None else "N/A",
            amount=payment.amount,
            currency=payment.currency,
            payment_method=payment.payment_method,
            status=payment.status,
            enrollment_date=enrollment.enrollment_date if enrollment is not None else None,
            organization_name=self.organization_name,
            organization_contact=self.organization_contact,
        )


def _gateway_outcome(gateway_response: dict[str, Any]) -> str:
    reported = str(gateway_response.get("status", "")).lower()
    if reported == PaymentStatus.FAILED.value:
        return PaymentStatus.FAILED.value
    if reported in IN_FLIGHT_OUTCOMES:
        return PaymentStatus.PENDING.value
    return PaymentStatus.SUCCESS.value
