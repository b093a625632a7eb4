"""
Authorization tests for the request guard.

Verifies:
- Unauthenticated requests return 401
- Cashier and technician roles are denied higher-rank operations (403)
- Owner can perform every privileged operation
- Public endpoints and CORS preflight need no token
- Unrouted URLs get 404 / 405 without a token
- Denials are written to the security audit trail
"""

import pytest

from phoneshop.extensions import db
from phoneshop.guard import unmapped_endpoints
from phoneshop.models import SecurityEvent
from phoneshop.permissions import ROUTE_REQUIREMENTS

from conftest import auth_headers


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/customers"),
            ("POST", "/api/customers"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/phones"),
            ("GET", "/api/phones/statistics"),
            ("POST", "/api/purchases"),
            ("GET", "/api/sales"),
            ("GET", "/api/repairs"),
            ("POST", "/api/payments"),
            ("DELETE", "/api/payments/1"),
            ("GET", "/api/reports/financial-summary"),
            ("GET", "/api/workers"),
            ("POST", "/api/workers/payments"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["error_code"] == "UNAUTHENTICATED"

    def test_garbage_token_is_unauthenticated(self, client, users):
        resp = client.get("/api/phones", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401

    def test_revoked_token_is_unauthenticated(self, client, cashier_headers):
        assert client.post("/api/auth/logout", headers=cashier_headers).status_code == 200
        resp = client.get("/api/phones", headers=cashier_headers)
        assert resp.status_code == 401


# =============================================================================
# PUBLIC ENDPOINTS
# =============================================================================


class TestPublicAccess:

    def test_health_is_public(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"

    def test_version_is_public(self, client):
        resp = client.get("/api/version")
        assert resp.status_code == 200
        assert "api_version" in resp.json

    def test_login_is_public(self, client, users):
        resp = client.post("/api/auth/login", json={"username": "owner1", "password": "wrong"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid credentials"

    def test_options_preflight_passes(self, client):
        resp = client.options("/api/payments", headers={"Origin": "http://localhost:5173"})
        assert resp.status_code in (200, 204)

    def test_unknown_url_is_404_without_token(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert db.session.query(SecurityEvent).count() == 0

    def test_wrong_method_is_405_without_token(self, client):
        resp = client.put("/api/version")
        assert resp.status_code == 405


# =============================================================================
# ROLE DENIALS - 403
# =============================================================================


class TestCashierDeniedHighRisk:
    """Cashier role cannot perform manager or owner operations."""

    def test_cannot_list_users(self, client, cashier_headers):
        resp = client.get("/api/users", headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.json["error_code"] == "FORBIDDEN"

    def test_cannot_create_customer(self, client, cashier_headers):
        resp = client.post(
            "/api/customers",
            json={"full_name": "X", "phone_number": "+1000"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_create_purchase(self, client, cashier_headers):
        resp = client.post("/api/purchases", json={}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_delete_payment(self, client, cashier_headers):
        resp = client.delete("/api/payments/1", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_view_financial_summary(self, client, cashier_headers):
        resp = client.get("/api/reports/financial-summary", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_pay_supplier_through_generic_endpoint(self, client, cashier_headers, users, supplier):
        resp = client.post(
            "/api/payments",
            json={"target_kind": "SUPPLIER", "target_id": supplier.id, "amount": "10.00", "method": "CASH"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403
        assert resp.json["error_code"] == "FORBIDDEN"

        event = db.session.query(SecurityEvent).filter_by(event_type="FORBIDDEN").one()
        assert event.user_id == users["CASHIER"].id
        assert event.resource == "/api/payments"
        assert event.action == "POST"


class TestTechnicianAccess:

    def test_can_list_repairs(self, client, technician_headers):
        resp = client.get("/api/repairs", headers=technician_headers)
        assert resp.status_code == 200

    def test_cannot_sell(self, client, technician_headers):
        resp = client.post("/api/sales", json={}, headers=technician_headers)
        assert resp.status_code == 403

    def test_cannot_list_customers(self, client, technician_headers):
        resp = client.get("/api/customers", headers=technician_headers)
        assert resp.status_code == 403


class TestOwnerAccess:
    """Owner outranks every requirement."""

    @pytest.mark.parametrize(
        "path",
        [
            "/api/users",
            "/api/customers",
            "/api/phones/statistics",
            "/api/repairs",
            "/api/payments",
            "/api/reports/financial-summary",
            "/api/reports/dashboard",
        ],
    )
    def test_owner_allowed(self, client, owner_headers, path):
        resp = client.get(path, headers=owner_headers)
        assert resp.status_code == 200, f"GET {path} returned {resp.status_code}"

    def test_manager_inherits_cashier_routes(self, client, manager_headers):
        resp = client.get("/api/sales", headers=manager_headers)
        assert resp.status_code == 200


# =============================================================================
# AUDIT TRAIL AND TABLE COVERAGE
# =============================================================================


class TestDenialAudit:

    def test_forbidden_is_logged(self, client, cashier_headers, users):
        client.get("/api/users", headers=cashier_headers)
        event = db.session.query(SecurityEvent).filter_by(event_type="FORBIDDEN").one()
        assert event.user_id == users["CASHIER"].id
        assert event.resource == "/api/users"
        assert event.success is False

    def test_unauthenticated_is_logged(self, client):
        client.get("/api/sales")
        event = db.session.query(SecurityEvent).filter_by(event_type="UNAUTHENTICATED").one()
        assert event.user_id is None
        assert event.action == "GET"

    def test_login_is_logged(self, client, owner_headers):
        assert db.session.query(SecurityEvent).filter_by(event_type="LOGIN").count() == 1


class TestRequirementCoverage:

    def test_every_endpoint_is_mapped(self, app):
        assert unmapped_endpoints(app) == []

    def test_table_has_no_stale_entries(self, app):
        endpoints = {rule.endpoint for rule in app.url_map.iter_rules()}
        assert set(ROUTE_REQUIREMENTS) <= endpoints

    def test_me_reports_session_role(self, client, manager_headers):
        resp = client.get("/api/auth/me", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["role"] == "MANAGER"
