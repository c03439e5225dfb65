"""Unit tests for enrollment routes."""

from datetime import timedelta

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from learnledger.api.dependencies import Services
from learnledger.store import ActorContext, Course, Enrollment, User, utc_now


def _headers(actor: ActorContext) -> dict[str, str]:
    return {"X-Actor-Id": actor.id, "X-Actor-Role": str(actor.role)}


@pytest.fixture
def enrollment(services: Services, learner: User, live_course: Course) -> Enrollment:
    return services.ledger.enroll(learner.id, live_course.id)


@pytest.mark.unit
class TestIdentityHeaders:
    """Caller identity is required on every route."""

    def test_missing_headers(self, client: TestClient) -> None:
        """Requests without identity headers get 401."""
        response = client.get("/api/v1/enrollments")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "Missing caller identity"

    def test_unknown_role(self, client: TestClient) -> None:
        """Unknown roles get 401."""
        response = client.get(
            "/api/v1/enrollments", headers={"X-Actor-Id": "u1", "X-Actor-Role": "superuser"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_role_header_case_insensitive(self, client: TestClient) -> None:
        """Role names are matched case-insensitively."""
        response = client.get(
            "/api/v1/enrollments", headers={"X-Actor-Id": "u1", "X-Actor-Role": "Coordinator"}
        )

        assert response.status_code == status.HTTP_200_OK


@pytest.mark.unit
class TestEnroll:
    """Tests for POST /api/v1/enrollments."""

    def test_enroll(
        self, client: TestClient, live_course: Course, learner_actor: ActorContext
    ) -> None:
        """Learner enrolls and gets an active, unpaid enrollment."""
        response = client.post(
            "/api/v1/enrollments",
            json={"course_id": live_course.id},
            headers=_headers(learner_actor),
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["learner_id"] == learner_actor.id
        assert data["status"] == "active"
        assert data["payment_status"] == "pending"
        assert data["progress_percentage"] == 0.0

    def test_enroll_twice(
        self, client: TestClient, live_course: Course, learner_actor: ActorContext
    ) -> None:
        """A second enrollment in the same course is a conflict."""
        client.post(
            "/api/v1/enrollments",
            json={"course_id": live_course.id},
            headers=_headers(learner_actor),
        )
        response = client.post(
            "/api/v1/enrollments",
            json={"course_id": live_course.id},
            headers=_headers(learner_actor),
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "You are already enrolled in this course"

    def test_enroll_unknown_course(self, client: TestClient, learner_actor: ActorContext) -> None:
        """Unknown course returns 404."""
        response = client.post(
            "/api/v1/enrollments", json={"course_id": "missing"}, headers=_headers(learner_actor)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_only_learners_enroll(
        self, client: TestClient, live_course: Course, coordinator_actor: ActorContext
    ) -> None:
        """Coordinators cannot enroll themselves."""
        response = client.post(
            "/api/v1/enrollments",
            json={"course_id": live_course.id},
            headers=_headers(coordinator_actor),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.unit
class TestReadEnrollments:
    """Tests for the enrollment read routes."""

    def test_list_own(
        self,
        client: TestClient,
        enrollment: Enrollment,
        learner_actor: ActorContext,
        other_learner_actor: ActorContext,
    ) -> None:
        """Learners list only their own enrollments."""
        own = client.get("/api/v1/enrollments", headers=_headers(learner_actor)).json()["data"]
        other = client.get("/api/v1/enrollments", headers=_headers(other_learner_actor)).json()[
            "data"
        ]

        assert [e["id"] for e in own] == [enrollment.id]
        assert other == []

    def test_get_other_learners_enrollment(
        self, client: TestClient, enrollment: Enrollment, other_learner_actor: ActorContext
    ) -> None:
        """Reading someone else's enrollment is forbidden."""
        response = client.get(
            f"/api/v1/enrollments/{enrollment.id}", headers=_headers(other_learner_actor)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_by_learner(
        self, client: TestClient, enrollment: Enrollment, coordinator_actor: ActorContext
    ) -> None:
        """Coordinators see enrollments grouped by learner."""
        response = client.get("/api/v1/enrollments/by-learner", headers=_headers(coordinator_actor))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data[0]["name"] == "Asha Rao"
        assert data[0]["enrolled_courses"][0]["title"] == "Statistics"

    def test_by_learner_requires_staff(
        self, client: TestClient, learner_actor: ActorContext
    ) -> None:
        """Learners cannot see the grouped view."""
        response = client.get("/api/v1/enrollments/by-learner", headers=_headers(learner_actor))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_access(
        self, client: TestClient, enrollment: Enrollment, learner_actor: ActorContext
    ) -> None:
        """A fresh enrollment is inside its grace period."""
        response = client.get(
            f"/api/v1/enrollments/{enrollment.id}/access", headers=_headers(learner_actor)
        )

        assert response.json()["data"] == {"enrollment_id": enrollment.id, "can_access": True}


@pytest.mark.unit
class TestUpdateAndUnenroll:
    """Tests for PATCH and DELETE /api/v1/enrollments/{id}."""

    def test_learner_updates_progress(
        self, client: TestClient, enrollment: Enrollment, learner_actor: ActorContext
    ) -> None:
        """Learners may update their own progress."""
        response = client.patch(
            f"/api/v1/enrollments/{enrollment.id}",
            json={"progress_percentage": 40},
            headers=_headers(learner_actor),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["progress_percentage"] == 40.0

    def test_learner_cannot_mark_paid(
        self, client: TestClient, enrollment: Enrollment, learner_actor: ActorContext
    ) -> None:
        """Payment status is not learner-editable."""
        response = client.patch(
            f"/api/v1/enrollments/{enrollment.id}",
            json={"payment_status": "success"},
            headers=_headers(learner_actor),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_invalid_progress(
        self, client: TestClient, enrollment: Enrollment, coordinator_actor: ActorContext
    ) -> None:
        """Progress outside 0-100 is rejected with 400."""
        response = client.patch(
            f"/api/v1/enrollments/{enrollment.id}",
            json={"progress_percentage": 120},
            headers=_headers(coordinator_actor),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unenroll(
        self,
        client: TestClient,
        services: Services,
        enrollment: Enrollment,
        learner_actor: ActorContext,
    ) -> None:
        """Learners may leave a course in its first week."""
        response = client.delete(
            f"/api/v1/enrollments/{enrollment.id}", headers=_headers(learner_actor)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"data": None, "error": None}
        assert services.ledger.find_enrollment(learner_actor.id, enrollment.course_id) is None

    def test_unenroll_after_window(
        self,
        client: TestClient,
        services: Services,
        learner: User,
        educator: User,
        learner_actor: ActorContext,
    ) -> None:
        """Self-unenrollment is refused once the window has passed."""
        start = utc_now() - timedelta(days=30)
        old = services.catalog.create_course("Old", educator.id, start, start + timedelta(days=90))
        enrollment = services.ledger.enroll(learner.id, old.id)

        response = client.delete(
            f"/api/v1/enrollments/{enrollment.id}", headers=_headers(learner_actor)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.unit
class TestPayForEnrollment:
    """Tests for POST /api/v1/enrollments/{id}/payment."""

    def test_pay(
        self, client: TestClient, enrollment: Enrollment, learner_actor: ActorContext
    ) -> None:
        """Payment is recorded at the course fee and the enrollment is marked paid."""
        response = client.post(
            f"/api/v1/enrollments/{enrollment.id}/payment",
            json={"payment_method": "upi", "gateway_response": {"upiId": "asha@okbank"}},
            headers=_headers(learner_actor),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["payment"]["amount"] == 250.0
        assert data["payment"]["status"] == "success"
        assert data["payment"]["upi_id"] == "asha@okbank"
        assert data["payment"]["refund"]["is_refunded"] is False
        assert data["enrollment"]["payment_status"] == "success"

    def test_pay_twice(
        self, client: TestClient, enrollment: Enrollment, learner_actor: ActorContext
    ) -> None:
        """A paid enrollment rejects another payment with 409."""
        url = f"/api/v1/enrollments/{enrollment.id}/payment"
        client.post(url, json={"payment_method": "upi"}, headers=_headers(learner_actor))

        response = client.post(
            url, json={"payment_method": "card"}, headers=_headers(learner_actor)
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unknown_method(
        self, client: TestClient, enrollment: Enrollment, learner_actor: ActorContext
    ) -> None:
        """Unknown payment methods fail request validation."""
        response = client.post(
            f"/api/v1/enrollments/{enrollment.id}/payment",
            json={"payment_method": "cheque"},
            headers=_headers(learner_actor),
        )

        assert response.status_code == 422

    def test_other_learner_cannot_pay(
        self, client: TestClient, enrollment: Enrollment, other_learner_actor: ActorContext
    ) -> None:
        """Only the enrolled learner may pay."""
        response = client.post(
            f"/api/v1/enrollments/{enrollment.id}/payment",
            json={"payment_method": "upi"},
            headers=_headers(other_learner_actor),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
