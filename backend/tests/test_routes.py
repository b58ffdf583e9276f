"""
HTTP API tests.

Verifies:
- Unidentified requests return 401
- Typed ledger errors map to their status codes and JSON bodies
- A full shift (open, sell, return, close) over the API
- Authorization endpoints
"""

import pytest

from ledgerpos.services import authorization_service, purchase_service, sales_service
from ledgerpos.services.commands import PurchaseLineRequest, PurchaseRequest, SaleLineRequest, SaleRequest


# =============================================================================
# IDENTITY (401)
# =============================================================================


class TestIdentity:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales"),
            ("POST", "/api/purchases"),
            ("POST", "/api/returns/sales"),
            ("GET", "/api/suppliers"),
            ("POST", "/api/shifts"),
            ("GET", "/api/treasury/balance"),
            ("GET", "/api/authz/check"),
            ("GET", "/api/archive"),
        ],
    )
    def test_requires_actor(self, client, seed, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json() == {"error": "Authentication required"}

    def test_unknown_user_id(self, client, seed):
        resp = client.get("/api/products", headers={"X-User-Id": "999999"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["database"]["status"] == "healthy"


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrorMapping:

    def test_no_open_shift(self, client, seed, product, auth_headers):
        resp = client.post(
            "/api/sales",
            json={"lines": [{"product_id": product.id, "quantity": 1}]},
            headers=auth_headers(seed.cashier),
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "NO_OPEN_SHIFT"

    def test_insufficient_stock(self, client, seed, product, cashier_shift, auth_headers):
        resp = client.post(
            "/api/sales",
            json={"lines": [{"product_id": product.id, "quantity": 6}]},
            headers=auth_headers(seed.cashier),
        )
        body = resp.get_json()
        assert resp.status_code == 409
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["details"]["requested"] == 6
        assert body["details"]["available"] == 5

    def test_validation_failed(self, client, seed, cashier_shift, auth_headers):
        resp = client.post("/api/sales", json={"lines": []}, headers=auth_headers(seed.cashier))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "VALIDATION_FAILED"

    def test_invalid_quantity(self, client, seed, product, cashier_shift, auth_headers):
        resp = client.post(
            "/api/sales",
            json={"lines": [{"product_id": product.id, "quantity": 0}]},
            headers=auth_headers(seed.cashier),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_QUANTITY"

    def test_authorization_denied(self, client, seed, auth_headers):
        resp = client.get("/api/authz/config", headers=auth_headers(seed.cashier))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "AUTHORIZATION_DENIED"

    @pytest.mark.parametrize(
        "query",
        ["start=yesterday", "start=2026-03-02T00:00Z&end=2026-03-01T00:00Z"],
    )
    def test_bad_treasury_window(self, client, seed, auth_headers, query):
        resp = client.get(f"/api/treasury/balance?{query}", headers=auth_headers(seed.admin))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "VALIDATION_FAILED"

    def test_not_found(self, client, seed, auth_headers):
        resp = client.get("/api/sales/424242", headers=auth_headers(seed.manager))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"


# =============================================================================
# SHIFT OVER HTTP
# =============================================================================


class TestShiftFlow:

    def test_open_sell_return_close(self, client, seed, product, auth_headers):
        headers = auth_headers(seed.cashier)

        resp = client.post("/api/shifts", json={"opening_cents": 50000}, headers=headers)
        assert resp.status_code == 201
        shift_id = resp.get_json()["shift"]["id"]

        resp = client.post(
            "/api/sales",
            json={
                "lines": [{"product_id": product.id, "quantity": 2}],
                "discount": {"type": "fixed", "value": 200},
            },
            headers=headers,
        )
        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]
        assert invoice["net_cents"] == 2800

        resp = client.post(
            "/api/returns/sales",
            json={"invoice_id": invoice["id"], "lines": [{"line_id": invoice["lines"][0]["id"], "quantity": 1}]},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["return"]["total_refund_cents"] == 1500

        resp = client.get("/api/shifts/current", headers=headers)
        assert resp.get_json()["expected_cents"] == 50000 + 2800 - 1500

        resp = client.post(f"/api/shifts/{shift_id}/close", json={"actual_cents": 51000}, headers=headers)
        assert resp.status_code == 200
        shift = resp.get_json()["shift"]
        assert shift["expected_cents"] == 51300
        assert shift["difference_cents"] == -300

        resp = client.get(f"/api/sales/{invoice['id']}", headers=headers)
        assert resp.get_json()["returned_quantities"] == {str(invoice["lines"][0]["id"]): 1}

    def test_second_open_shift_conflicts(self, client, seed, cashier_shift, auth_headers):
        resp = client.post("/api/shifts", json={"opening_cents": 0}, headers=auth_headers(seed.cashier))
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "SHIFT_STATE"


# =============================================================================
# PURCHASING OVER HTTP
# =============================================================================


class TestPurchasingFlow:

    def test_purchase_pay_statement(self, client, seed, product, supplier, auth_headers):
        headers = auth_headers(seed.manager)

        resp = client.post(
            "/api/purchases",
            json={
                "supplier_id": supplier.id,
                "lines": [{"product_id": product.id, "quantity": 10, "cost_cents": 2000}],
                "paid_cents": 10000,
            },
            headers=headers,
        )
        assert resp.status_code == 201
        purchase = resp.get_json()["purchase"]
        assert purchase["remaining_cents"] == 10000

        resp = client.post(
            f"/api/suppliers/{supplier.id}/payments",
            json={"amount_cents": 10000, "purchase_id": purchase["id"]},
            headers=headers,
        )
        assert resp.status_code == 201

        resp = client.post(
            f"/api/suppliers/{supplier.id}/payments",
            json={"amount_cents": 5000, "purchase_id": purchase["id"]},
            headers=headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "OVERPAYMENT_REJECTED"

        resp = client.get(f"/api/suppliers/{supplier.id}/statement", headers=headers)
        statement = resp.get_json()
        assert statement["current_debt_cents"] == 0
        assert statement["total_paid_cents"] == 20000
        assert statement["drift_cents"] == 0


# =============================================================================
# RECORD DETAIL VISIBILITY
# =============================================================================


class TestRecordDetailVisibility:

    @pytest.fixture
    def records(self, seed, product, supplier, cashier_shift):
        invoice = sales_service.process_sale(
            actor=seed.cashier,
            request=SaleRequest(lines=[SaleLineRequest(product_id=product.id, quantity=1)]),
        )
        purchase = purchase_service.process_purchase(
            actor=seed.manager,
            request=PurchaseRequest(
                supplier_id=supplier.id,
                lines=[PurchaseLineRequest(product_id=product.id, quantity=2, cost_cents=1000)],
            ),
        )
        return f"/api/sales/{invoice.id}", f"/api/purchases/{purchase.id}"

    def test_detail_follows_view_reports(self, client, seed, records, auth_headers):
        for path in records:
            assert client.get(path, headers=auth_headers(seed.cashier)).status_code == 200

        authorization_service.hide(actor=None, scope="role", target="cashier", kind="action", value="view_reports")

        for path in records:
            resp = client.get(path, headers=auth_headers(seed.cashier))
            assert resp.status_code == 403, path
            assert resp.get_json()["error"] == "AUTHORIZATION_DENIED"
            assert client.get(path, headers=auth_headers(seed.manager)).status_code == 200


# =============================================================================
# AUTHORIZATION ENDPOINTS
# =============================================================================


class TestAuthzEndpoints:

    def test_check_reports_rule(self, client, seed, auth_headers):
        resp = client.get("/api/authz/check?action=delete_invoice", headers=auth_headers(seed.cashier))
        assert resp.status_code == 200
        assert resp.get_json() == {"action": "delete_invoice", "allowed": False, "rule": "role_hidden_action"}

    def test_manager_cannot_edit_overrides(self, client, seed, auth_headers):
        resp = client.put(
            "/api/authz/overrides",
            json={"target_type": "role", "target": "cashier", "action": "sell", "is_allowed": False},
            headers=auth_headers(seed.manager),
        )
        assert resp.status_code == 403

    def test_super_admin_sets_override(self, client, seed, auth_headers):
        resp = client.put(
            "/api/authz/overrides",
            json={"target_type": "role", "target": "cashier", "action": "sell", "is_allowed": False},
            headers=auth_headers(seed.admin),
        )
        assert resp.status_code == 200
        assert resp.get_json()["override"]["is_allowed"] is False

        resp = client.get("/api/authz/check?action=sell", headers=auth_headers(seed.cashier))
        assert resp.get_json()["rule"] == "role_override"

    def test_global_lock(self, client, seed, auth_headers):
        resp = client.post("/api/authz/lock", json={"enabled": True}, headers=auth_headers(seed.admin))
        assert resp.status_code == 200
        assert resp.get_json()["system"]["global_system_lock"] is True

        resp = client.get("/api/authz/check?action=sell", headers=auth_headers(seed.cashier))
        assert resp.get_json() == {"action": "sell", "allowed": False, "rule": "global_lock"}

    def test_catalog(self, client, seed, auth_headers):
        resp = client.get("/api/authz/catalog", headers=auth_headers(seed.cashier))
        codes = {a["code"] for a in resp.get_json()["actions"]}
        assert {"sell", "process_return", "delete_invoice", "manage_permissions"} <= codes
