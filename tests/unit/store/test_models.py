"""Unit tests for store model defaults and helpers."""

from datetime import datetime, timedelta

import pytest

from learnledger.store import (
    ActorContext,
    Enrollment,
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    Payment,
    PaymentStatus,
    Quiz,
    Role,
)

T = datetime(2026, 3, 2, 9, 0, 0)


def _payment(**kwargs) -> Payment:
    return Payment(
        enrollment_id="enr-1",
        learner_id="learner-1",
        course_id="course-1",
        transaction_id="TXN_1",
        amount=500.0,
        payment_method="upi",
        payment_date=T,
        **kwargs,
    )


@pytest.mark.unit
class TestEnrollmentModel:
    """Tests for Enrollment defaults."""

    def test_defaults(self) -> None:
        """New enrollments are active with a pending payment."""
        enrollment = Enrollment(learner_id="learner-1", course_id="course-1", enrollment_date=T)

        assert enrollment.id
        assert enrollment.enrollment_status == EnrollmentStatus.ACTIVE
        assert enrollment.enrollment_payment_status == EnrollmentPaymentStatus.PENDING
        assert enrollment.progress_percentage == 0.0


@pytest.mark.unit
class TestPaymentModel:
    """Tests for Payment defaults and helpers."""

    def test_defaults(self) -> None:
        """Order id, expiry and refund fields get defaults."""
        payment = _payment()

        assert payment.payment_status == PaymentStatus.PENDING
        assert payment.order_id == "ORDER_TXN_1"
        assert payment.currency == "INR"
        assert payment.expiry_date == T + timedelta(hours=24)
        assert payment.gateway_response == {}
        assert not payment.refund.is_refunded
        assert payment.refund.refund_amount == 0.0

    def test_is_expired(self) -> None:
        """Only pending payments past expiry are expired."""
        pending = _payment()
        settled = _payment(status="success")

        assert not pending.is_expired(T + timedelta(hours=24))
        assert pending.is_expired(T + timedelta(hours=24, seconds=1))
        assert not settled.is_expired(T + timedelta(days=2))


@pytest.mark.unit
class TestQuizModel:
    """Tests for Quiz helpers."""

    def test_available_date_fallback(self) -> None:
        """available_from wins over the scheduled time."""
        quiz = Quiz(course_id="c", educator_id="e", title="Q", questions=[])
        assert quiz.available_date is None

        quiz.scheduled_date_time = T
        assert quiz.available_date == T

        quiz.available_from = T + timedelta(hours=1)
        assert quiz.available_date == T + timedelta(hours=1)

    def test_correct_answers(self) -> None:
        """Correct option index per question, in order."""
        quiz = Quiz(
            course_id="c",
            educator_id="e",
            title="Q",
            questions=[
                {"question_text": "a", "options": ["x", "y"], "correct_answer_index": 1},
                {"question_text": "b", "options": ["x", "y"], "correct_answer_index": 0},
            ],
        )

        assert quiz.correct_answers == [1, 0]


@pytest.mark.unit
class TestActorContext:
    """Tests for ActorContext role helpers."""

    @pytest.mark.parametrize(
        ("role", "staff"),
        [
            (Role.LEARNER, False),
            (Role.EDUCATOR, False),
            (Role.COORDINATOR, True),
            (Role.ADMIN, True),
        ],
    )
    def test_is_staff(self, role: Role, staff: bool) -> None:
        """Coordinators and admins are staff."""
        actor = ActorContext(id="u1", role=role)

        assert actor.is_staff is staff
        assert actor.is_learner is (role == Role.LEARNER)
