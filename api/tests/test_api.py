"""HTTP contract tests over the full application."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.auth.security import create_access_token


def auth_headers(user_id, role: UserRole) -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "role": role.value})
    return {"Authorization": f"Bearer {token}"}


def create_user(
    client: TestClient, admin_headers: dict, role: UserRole = UserRole.STUDENT
) -> dict[str, str]:
    """Create a user and return auth headers for them."""
    response = client.post(
        "/v1/admin/users",
        json={
            "email": f"{role.value}_{uuid4().hex[:8]}@test.com",
            "name": "Test User",
            "role": role.value,
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    return auth_headers(response.json()["id"], role)


def user_id_of(client: TestClient, headers: dict) -> str:
    return client.get("/v1/users/me", headers=headers).json()["id"]


def published_session(
    client: TestClient,
    admin_headers: dict,
    price: int = 0,
    max_students: int = 5,
) -> tuple[dict, dict]:
    """Trainer-created, admin-approved course with one session."""
    trainer = create_user(client, admin_headers, UserRole.TRAINER)
    course = client.post(
        "/v1/courses",
        json={"title": "Pharmacology", "price": price, "max_students": max_students},
        headers=trainer,
    ).json()
    review = client.post(f"/v1/courses/{course['id']}/submit", headers=trainer)
    assert review.status_code == 201
    approved = client.post(
        f"/v1/approvals/{review.json()['id']}/approve", headers=admin_headers
    )
    assert approved.status_code == 200

    session = client.post(
        f"/v1/courses/{course['id']}/sessions",
        json={"scheduled_at": (datetime.now(UTC) + timedelta(days=3)).isoformat()},
        headers=trainer,
    )
    assert session.status_code == 201
    return course, session.json()


class TestAuthentication:
    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/v1/enrollments/my")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get(
            "/v1/enrollments/my", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    def test_admin_route_requires_admin(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        student = create_user(client, admin_headers)
        response = client.get("/v1/approvals", headers=student)
        assert response.status_code == 403

    def test_unknown_user_rejected(self, client: TestClient) -> None:
        response = client.get(
            "/v1/enrollments/my", headers=auth_headers(uuid4(), UserRole.STUDENT)
        )
        assert response.status_code == 401

    def test_deactivated_admin_locked_out(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        other_admin = create_user(client, admin_headers, UserRole.ADMIN)
        admin_id = user_id_of(client, other_admin)
        deactivated = client.post(
            f"/v1/admin/users/{admin_id}/deactivate", headers=admin_headers
        )
        assert deactivated.status_code == 200

        response = client.get("/v1/approvals", headers=other_admin)

        assert response.status_code == 403
        assert response.json()["message"] == "Account is disabled"

    def test_demoted_admin_loses_admin_routes(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        """The stored role wins over the role claim in the token."""
        other_admin = create_user(client, admin_headers, UserRole.ADMIN)
        admin_id = user_id_of(client, other_admin)
        assert client.get("/v1/approvals", headers=other_admin).status_code == 200
        demoted = client.patch(
            f"/v1/admin/users/{admin_id}/role",
            json={"role": UserRole.STUDENT.value},
            headers=admin_headers,
        )
        assert demoted.status_code == 200

        response = client.get("/v1/approvals", headers=other_admin)

        assert response.status_code == 403


class TestEnrollmentEndpoints:
    def test_enroll_and_cancel(self, client: TestClient, admin_headers: dict) -> None:
        _, session = published_session(client, admin_headers)
        student = create_user(client, admin_headers)

        response = client.post(
            "/v1/enrollments", json={"session_id": session["id"]}, headers=student
        )
        assert response.status_code == 201
        enrollment = response.json()
        assert enrollment["state"] == "confirmed"

        detail = client.get(f"/v1/sessions/{session['id']}", headers=student).json()
        assert detail["occupied"] == 1
        assert detail["available"] == 4

        response = client.post(
            "/v1/enrollments/cancel",
            json={"enrollment_id": enrollment["id"]},
            headers=student,
        )
        assert response.status_code == 200
        assert response.json()["state"] == "cancelled"

        response = client.post(
            "/v1/enrollments/cancel",
            json={"enrollment_id": enrollment["id"]},
            headers=student,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "not_confirmed"

    def test_double_enroll_conflict(self, client: TestClient, admin_headers: dict) -> None:
        _, session = published_session(client, admin_headers)
        student = create_user(client, admin_headers)
        client.post("/v1/enrollments", json={"session_id": session["id"]}, headers=student)

        response = client.post(
            "/v1/enrollments", json={"session_id": session["id"]}, headers=student
        )

        assert response.status_code == 409
        assert response.json()["code"] == "already_enrolled"

    def test_full_session(self, client: TestClient, admin_headers: dict) -> None:
        _, session = published_session(client, admin_headers, max_students=1)
        first = create_user(client, admin_headers)
        second = create_user(client, admin_headers)
        client.post("/v1/enrollments", json={"session_id": session["id"]}, headers=first)

        response = client.post(
            "/v1/enrollments", json={"session_id": session["id"]}, headers=second
        )

        assert response.status_code == 409
        assert response.json()["code"] == "capacity_exceeded"

    def test_paid_course_denied(self, client: TestClient, admin_headers: dict) -> None:
        _, session = published_session(client, admin_headers, price=4900)
        student = create_user(client, admin_headers)

        response = client.post(
            "/v1/enrollments", json={"session_id": session["id"]}, headers=student
        )

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "entitlement_denied"
        assert body["reason"] == "subscription_required"

    def test_cannot_enroll_someone_else(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        _, session = published_session(client, admin_headers)
        student = create_user(client, admin_headers)

        response = client.post(
            "/v1/enrollments",
            json={"session_id": session["id"], "user_id": str(uuid4())},
            headers=student,
        )

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_unknown_session(self, client: TestClient, admin_headers: dict) -> None:
        student = create_user(client, admin_headers)
        response = client.post(
            "/v1/enrollments", json={"session_id": str(uuid4())}, headers=student
        )
        assert response.status_code == 404

    def test_malformed_body(self, client: TestClient, admin_headers: dict) -> None:
        student = create_user(client, admin_headers)
        response = client.post(
            "/v1/enrollments", json={"session_id": "nope"}, headers=student
        )
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_roster_requires_course_owner(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        _, session = published_session(client, admin_headers)
        student = create_user(client, admin_headers)

        response = client.get(f"/v1/sessions/{session['id']}/enrollments", headers=student)
        assert response.status_code == 403

        response = client.get(
            f"/v1/sessions/{session['id']}/enrollments", headers=admin_headers
        )
        assert response.status_code == 200


class TestApprovalEndpoints:
    def test_student_cannot_approve(self, client: TestClient, admin_headers: dict) -> None:
        trainer = create_user(client, admin_headers, UserRole.TRAINER)
        course = client.post(
            "/v1/courses",
            json={"title": "Dermocosmetics", "max_students": 5},
            headers=trainer,
        ).json()
        review = client.post(f"/v1/courses/{course['id']}/submit", headers=trainer).json()

        response = client.post(
            f"/v1/approvals/{review['id']}/approve",
            headers=create_user(client, admin_headers),
        )
        assert response.status_code == 403

    def test_reject_requires_notes(self, client: TestClient, admin_headers: dict) -> None:
        trainer = create_user(client, admin_headers, UserRole.TRAINER)
        course = client.post(
            "/v1/courses",
            json={"title": "Dermocosmetics", "max_students": 5},
            headers=trainer,
        ).json()
        review = client.post(f"/v1/courses/{course['id']}/submit", headers=trainer).json()

        response = client.post(
            f"/v1/approvals/{review['id']}/reject",
            json={"notes": "  "},
            headers=admin_headers,
        )
        assert response.status_code == 422

        response = client.post(
            f"/v1/approvals/{review['id']}/reject",
            json={"notes": "Needs references"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

        response = client.post(
            f"/v1/approvals/{review['id']}/approve", headers=admin_headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "not_pending"

    def test_unapproved_course_hidden(self, client: TestClient, admin_headers: dict) -> None:
        trainer = create_user(client, admin_headers, UserRole.TRAINER)
        course = client.post(
            "/v1/courses",
            json={"title": "Dermocosmetics", "max_students": 5},
            headers=trainer,
        ).json()

        student = create_user(client, admin_headers)
        assert client.get(f"/v1/courses/{course['id']}", headers=student).status_code == 404
        assert client.get(f"/v1/courses/{course['id']}", headers=trainer).status_code == 200


class TestPaymentEndpoints:
    def test_purchase_approve_refund(self, client: TestClient, admin_headers: dict) -> None:
        course, session = published_session(client, admin_headers, price=10000)
        student = create_user(client, admin_headers)

        response = client.post(
            "/v1/payments",
            json={"kind": "course_purchase", "course_id": course["id"]},
            headers=student,
        )
        assert response.status_code == 201
        payment = response.json()
        assert payment["status"] == "pending"
        assert payment["amount"] == 10000

        response = client.post(
            f"/v1/approvals/{payment['approval_request_id']}/approve",
            headers=admin_headers,
        )
        assert response.status_code == 200

        payment = client.get(f"/v1/payments/{payment['id']}", headers=student).json()
        assert payment["status"] == "approved"
        assert payment["platform_fee"] + payment["trainer_share"] == 10000

        access = client.get(f"/v1/courses/{course['id']}/access", headers=student).json()
        assert access == {
            "course_id": course["id"],
            "allowed": True,
            "rule": "access_grant",
            "reason": None,
        }
        response = client.post(
            "/v1/enrollments", json={"session_id": session["id"]}, headers=student
        )
        assert response.status_code == 201

        response = client.patch(
            f"/v1/payments/{payment['id']}",
            json={"status": "refunded", "notes": "Requested by customer"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "refunded"

        response = client.patch(
            f"/v1/payments/{payment['id']}",
            json={"status": "refunded"},
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_subscription_purchase(self, client: TestClient, admin_headers: dict) -> None:
        student = create_user(client, admin_headers)

        response = client.post(
            "/v1/payments",
            json={"kind": "subscription", "plan": "monthly"},
            headers=student,
        )

        assert response.status_code == 201
        assert response.json()["payment_type"] == "subscription"
        mine = client.get("/v1/payments/my", headers=student).json()
        assert len(mine) == 1

    def test_unknown_kind(self, client: TestClient, admin_headers: dict) -> None:
        student = create_user(client, admin_headers)
        response = client.post(
            "/v1/payments", json={"kind": "gift", "course_id": str(uuid4())}, headers=student
        )
        assert response.status_code == 422

    def test_other_users_payment_forbidden(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        student = create_user(client, admin_headers)
        payment = client.post(
            "/v1/payments",
            json={"kind": "subscription", "plan": "annual"},
            headers=student,
        ).json()

        other = create_user(client, admin_headers)
        response = client.get(f"/v1/payments/{payment['id']}", headers=other)
        assert response.status_code == 403

    @pytest.mark.parametrize("status_value", ["approved", "pending"])
    def test_only_refund_transition(
        self, client: TestClient, admin_headers: dict, status_value: str
    ) -> None:
        response = client.patch(
            f"/v1/payments/{uuid4()}",
            json={"status": status_value},
            headers=admin_headers,
        )
        assert response.status_code == 422


class TestNotificationEndpoints:
    def test_enrollment_notification_and_read(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        _, session = published_session(client, admin_headers)
        student = create_user(client, admin_headers)
        client.post("/v1/enrollments", json={"session_id": session["id"]}, headers=student)

        listing = client.get("/v1/notifications", headers=student).json()
        assert listing["unread_count"] == 1
        assert listing["items"][0]["type"] == "enrollment"

        response = client.post("/v1/notifications/read", json={}, headers=student)
        assert response.json() == {"marked_count": 1, "unread_count": 0}

    def test_delete_notification(self, client: TestClient, admin_headers: dict) -> None:
        _, session = published_session(client, admin_headers)
        student = create_user(client, admin_headers)
        other = create_user(client, admin_headers)
        client.post("/v1/enrollments", json={"session_id": session["id"]}, headers=student)
        notification_id = client.get("/v1/notifications", headers=student).json()[
            "items"
        ][0]["id"]

        foreign = client.delete(f"/v1/notifications/{notification_id}", headers=other)
        assert foreign.status_code == 404

        response = client.delete(f"/v1/notifications/{notification_id}", headers=student)
        assert response.status_code == 204
        assert client.get("/v1/notifications", headers=student).json()["items"] == []
        again = client.delete(f"/v1/notifications/{notification_id}", headers=student)
        assert again.status_code == 404

    def test_broadcast_to_session(self, client: TestClient, admin_headers: dict) -> None:
        _, session = published_session(client, admin_headers)
        students = [create_user(client, admin_headers) for _ in range(2)]
        for student in students:
            client.post(
                "/v1/enrollments", json={"session_id": session["id"]}, headers=student
            )

        response = client.post(
            "/v1/notifications/broadcast",
            json={
                "target": {"kind": "session_enrollees", "session_id": session["id"]},
                "message": "Room changed",
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"recipient_count": 2}

    def test_broadcast_requires_admin(
        self, client: TestClient, admin_headers: dict
    ) -> None:
        student = create_user(client, admin_headers)
        response = client.post(
            "/v1/notifications/broadcast",
            json={"target": {"kind": "all_users"}, "message": "Hi"},
            headers=student,
        )
        assert response.status_code == 403


class TestErrorHandling:
    def test_services_unavailable(self, bare_client: TestClient) -> None:
        response = bare_client.get(
            "/v1/enrollments/my", headers=auth_headers(uuid4(), UserRole.STUDENT)
        )
        assert response.status_code == 503

    def test_internal_error_is_generic(
        self, cassandra, client: TestClient, admin_headers: dict
    ) -> None:
        student = create_user(client, admin_headers)
        cassandra.fail_on("enrollments_by_user", RuntimeError("node down"))
        quiet = TestClient(client.app, raise_server_exceptions=False)

        response = quiet.get("/v1/enrollments/my", headers=student)

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "internal_error"
        assert "node down" not in body["message"]

    def test_request_id_echoed(self, client: TestClient) -> None:
        response = client.get("/health/live", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
