"""End-to-end tests for the HTTP adapter."""

import pytest
from fastapi.testclient import TestClient

from memberguard.api.deps import get_session_factory
from memberguard.api.main import create_app
from memberguard.core.config import get_settings
from memberguard.core.security import create_session_token
from memberguard.db.models import AuditLog, ResourceState

from tests.factories import create_assignment, create_employee, create_resource, create_user


pytestmark = [pytest.mark.integration]


@pytest.fixture
def client(settings, session_factory):
    app = create_app(settings)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(db_session, settings):
    """Create a user with the given role facts and return bearer headers."""
    def _login(base_role="member", role_category=None):
        user = create_user(db_session, base_role=base_role)
        if role_category:
            create_employee(db_session, user=user, role_category=role_category)
        token = create_session_token(user.id, db_session, settings=settings)
        return user, {"Authorization": f"Bearer {token}"}
    return _login


class TestAuthentication:

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["code"] == "unauthenticated"

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_me(self, client, login):
        user, headers = login("manager_admin", "chairman")
        body = client.get("/api/auth/me", headers=headers).json()
        assert body["user_id"] == user.id
        assert body["is_chairman"] is True
        assert "identity_verification:approve" in body["permissions"]

    def test_logout_revokes_session(self, client, login):
        _, headers = login()
        assert client.post("/api/auth/logout", headers=headers).json() == {"revoked": 1}
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_logout_everywhere_keeps_current(self, client, login, db_session, settings):
        user, headers = login()
        create_session_token(user.id, db_session, settings=settings)
        assert client.post("/api/auth/logout-all", headers=headers).json() == {"revoked": 1}
        assert client.get("/api/auth/me", headers=headers).status_code == 200


class TestFinancialPeriodFlow:

    def test_close_lock_unlock(self, client, login):
        _, manager = login("manager_admin")
        _, chairman = login("worker_admin", "chairman")

        response = client.post(
            "/api/resources/financial_period",
            json={"resource_id": "2026-01", "fields": {"period_year": 2026, "period_month": 1}},
            headers=manager,
        )
        assert response.status_code == 201
        assert response.json()["resource"]["state"] == "open"

        response = client.post("/api/resources/financial_period/2026-01/close", json={}, headers=chairman)
        assert response.status_code == 200
        assert response.json()["resource"]["state"] == "closed"

        response = client.post("/api/resources/financial_period/2026-01/close", json={}, headers=chairman)
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_transition"

        client.post("/api/resources/financial_period/2026-01/lock", json={}, headers=chairman)
        response = client.post("/api/resources/financial_period/2026-01/unlock", json={}, headers=chairman)
        assert response.status_code == 422
        assert response.json()["field"] == "reason"

        response = client.post(
            "/api/resources/financial_period/2026-01/unlock",
            json={"reason": "Audit adjustment"},
            headers=chairman,
        )
        assert response.status_code == 200
        assert response.json()["resource"]["fields"]["unlock_reason"] == "Audit adjustment"

    def test_super_admin_override(self, client, login, db_session):
        _, super_admin = login("super_admin")
        create_resource(db_session, kind="financial_period", resource_id="P9", state="open")

        response = client.post("/api/resources/financial_period/P9/close", json={}, headers=super_admin)

        assert response.status_code == 200
        assert response.json()["via_override"] is True
        phases = sorted(log.phase for log in db_session.query(AuditLog).filter_by(resource_id="P9"))
        assert phases == ["committed", "intent"]

    def test_duplicate_create_conflicts(self, client, login):
        _, manager = login("manager_admin")
        body = {"resource_id": "2026-02", "fields": {"period_year": 2026, "period_month": 2}}
        assert client.post("/api/resources/financial_period", json=body, headers=manager).status_code == 201
        response = client.post("/api/resources/financial_period", json=body, headers=manager)
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"


class TestGuardedResources:

    def test_member_cannot_approve(self, client, login, db_session):
        _, member = login()
        create_resource(db_session, kind="identity_verification", resource_id="V1", state="PENDING")

        response = client.post("/api/resources/identity_verification/V1/approve", json={}, headers=member)

        assert response.status_code == 403
        assert response.json()["violation_type"] == "insufficient_role"
        denied = db_session.query(AuditLog).filter_by(resource_id="V1").one()
        assert denied.action == "permission_denied"
        assert denied.severity == "critical"

    def test_not_found(self, client, login):
        _, chairman = login("manager_admin", "chairman")
        response = client.post("/api/resources/scam_report/missing/verify", json={}, headers=chairman)
        assert response.status_code == 404

    def test_unknown_kind(self, client, login):
        _, chairman = login("manager_admin", "chairman")
        response = client.get("/api/resources/spaceship/X1", headers=chairman)
        assert response.status_code == 422

    def test_available_actions(self, client, login, db_session):
        _, chairman = login("manager_admin", "chairman")
        create_resource(
            db_session, kind="job_listing", resource_id="J1", state="draft",
            fields={"title": "Clerk", "is_published": False, "archived_at": None},
        )
        response = client.get("/api/resources/job_listing/J1/actions", headers=chairman)
        assert response.status_code == 200
        assert set(response.json()["actions"]) == {"update", "toggle_publish", "archive"}

    def test_publish_takes_explicit_target(self, client, login, db_session):
        _, chairman = login("manager_admin", "chairman")
        create_resource(
            db_session, kind="job_listing", resource_id="J3", state="draft",
            fields={"title": "Clerk", "is_published": False, "archived_at": None},
        )
        url = "/api/resources/job_listing/J3/toggle_publish"

        response = client.post(url, json={}, headers=chairman)
        assert response.status_code == 422
        assert response.json()["field"] == "published"

        response = client.post(url, json={"published": True}, headers=chairman)
        assert response.status_code == 200
        assert response.json()["resource"]["state"] == "open"
        assert response.json()["resource"]["fields"]["is_published"] is True

        response = client.post(url, json={"published": True}, headers=chairman)
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_transition"

    def test_archive_unpublishes(self, client, login, db_session):
        _, chairman = login("manager_admin", "chairman")
        create_resource(
            db_session, kind="job_listing", resource_id="J2", state="open",
            fields={"title": "Clerk", "is_published": True, "archived_at": None},
        )

        response = client.post("/api/resources/job_listing/J2/archive", json={}, headers=chairman)

        fields = response.json()["resource"]["fields"]
        assert fields["archived_at"] is not None
        assert fields["is_published"] is False
        db_session.expire_all()
        stored = db_session.query(ResourceState).filter_by(resource_id="J2").one()
        assert stored.fields["is_published"] is False
        assert stored.version == 2

    def test_required_audit_outage_returns_503(self, client, login, db_session, db_engine):
        _, chairman = login("manager_admin", "chairman")
        create_resource(db_session, kind="identity_verification", resource_id="V2", state="PENDING")
        AuditLog.__table__.drop(db_engine)

        response = client.post(
            "/api/resources/identity_verification/V2/reject",
            json={"reason": "Document expired"},
            headers=chairman,
        )

        assert response.status_code == 503
        db_session.expire_all()
        stored = db_session.query(ResourceState).filter_by(resource_id="V2").one()
        assert stored.state == "PENDING"


class TestConversationAccess:

    def test_agent_needs_assignment(self, client, login, db_session):
        agent, headers = login("agent")
        member = create_user(db_session)

        body = client.get(f"/api/conversations/access/{member.id}", headers=headers).json()
        assert body["allowed"] is False
        assert body["violation_type"] == "not_assigned"

        create_assignment(db_session, agent=agent, member=member)
        body = client.get(f"/api/conversations/access/{member.id}", headers=headers).json()
        assert body["allowed"] is True

    def test_member_is_denied_by_role(self, client, login):
        _, headers = login("member")
        body = client.get("/api/conversations/access/someone", headers=headers).json()
        assert body["violation_type"] == "insufficient_role"


class TestPrizeDraws:

    def test_entering_twice(self, client, login):
        _, headers = login()
        first = client.post("/api/prize-draws/draw-1/entries", headers=headers)
        second = client.post("/api/prize-draws/draw-1/entries", headers=headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["created"] is False
        assert first.json()["entered_at"] == second.json()["entered_at"]
