"""
Payments API tests.

Verifies:
- POST /api/payments records a payment and returns the target balance
- Error bodies carry a machine-readable error_code
- Party apply endpoints settle oldest documents first
- DELETE re-derives the balance (MANAGER only)
"""

import pytest

from conftest import make_purchase, make_sale


@pytest.fixture
def open_sale(stock, customer):
    return make_sale(stock[0], "100.00", customer=customer)


def _pay(client, headers, target_kind, target_id, amount, method="CASH"):
    return client.post(
        "/api/payments",
        json={"target_kind": target_kind, "target_id": target_id, "amount": amount, "method": method},
        headers=headers,
    )


class TestApplyPayment:

    def test_partial_payment(self, client, cashier_headers, open_sale):
        resp = _pay(client, cashier_headers, "SALE", open_sale.id, "40.00")
        assert resp.status_code == 201
        assert resp.json["result"]["amount_paid"] == "40.00"
        assert resp.json["result"]["remaining_amount"] == "60.00"
        assert resp.json["result"]["payment_status"] == "PARTIAL"
        assert resp.json["payment"]["allocations"][0]["sale_id"] == open_sale.id

    def test_json_number_amount(self, client, cashier_headers, open_sale):
        resp = _pay(client, cashier_headers, "SALE", open_sale.id, 19.99)
        assert resp.status_code == 201
        assert resp.json["result"]["amount_paid"] == "19.99"

    def test_overpayment_is_409(self, client, cashier_headers, open_sale):
        resp = _pay(client, cashier_headers, "SALE", open_sale.id, "100.01")
        assert resp.status_code == 409
        assert resp.json["error_code"] == "OVERPAYMENT"

    @pytest.mark.parametrize("amount", ["0", "-10", "abc", "1.234", None])
    def test_invalid_amount_is_400(self, client, cashier_headers, open_sale, amount):
        resp = _pay(client, cashier_headers, "SALE", open_sale.id, amount)
        assert resp.status_code == 400
        assert resp.json["error_code"] == "INVALID_AMOUNT"

    def test_invalid_method_is_400(self, client, cashier_headers, open_sale):
        resp = _pay(client, cashier_headers, "SALE", open_sale.id, "10", method="BITCOIN")
        assert resp.status_code == 400
        assert resp.json["error_code"] == "INVALID_PAYMENT"

    def test_non_integer_target_is_400(self, client, cashier_headers, open_sale):
        resp = _pay(client, cashier_headers, "SALE", str(open_sale.id), "10")
        assert resp.status_code == 400

    def test_missing_target_is_404(self, client, cashier_headers, app):
        resp = _pay(client, cashier_headers, "SALE", 424242, "10")
        assert resp.status_code == 404
        assert resp.json["error_code"] == "TARGET_NOT_FOUND"

    def test_manager_can_pay_supplier(self, client, manager_headers, supplier):
        make_purchase(supplier, ["300.00"])
        resp = _pay(client, manager_headers, "SUPPLIER", supplier.id, "100.00", method="BANK_TRANSFER")
        assert resp.status_code == 201
        assert resp.json["result"]["payment_status"] == "PARTIAL"


class TestPartyEndpoints:

    def test_customer_apply_settles_oldest_first(self, client, cashier_headers, stock, customer):
        make_sale(stock[0], "50.00", customer=customer, sale_date="2026-02-01")
        make_sale(stock[1], "50.00", customer=customer, sale_date="2026-01-01")

        resp = client.post(
            f"/api/payments/customer/{customer.id}/apply",
            json={"amount": "75.00", "method": "CASH"},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        allocations = resp.json["payment"]["allocations"]
        assert [a["amount"] for a in allocations] == ["50.00", "25.00"]

        balance = client.get(f"/api/customers/{customer.id}/balance", headers=cashier_headers)
        assert balance.json["outstanding"] == "25.00"

    def test_supplier_apply_needs_manager(self, client, cashier_headers, supplier):
        resp = client.post(
            f"/api/payments/supplier/{supplier.id}/apply",
            json={"amount": "1.00", "method": "CASH"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_customer_payment_history(self, client, cashier_headers, open_sale, customer):
        _pay(client, cashier_headers, "CUSTOMER", customer.id, "30.00")
        resp = client.get(f"/api/payments/customer/{customer.id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["balance"]["amount_paid"] == "30.00"

    def test_sale_history_includes_party_payments(self, client, cashier_headers, open_sale, customer):
        _pay(client, cashier_headers, "CUSTOMER", customer.id, "30.00")
        resp = client.get(f"/api/payments/sale/{open_sale.id}", headers=cashier_headers)
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["target_kind"] == "CUSTOMER"


class TestDeletePayment:

    def test_manager_deletes_and_balance_is_rederived(self, client, cashier_headers, manager_headers, open_sale):
        first = _pay(client, cashier_headers, "SALE", open_sale.id, "40.00").json["result"]["payment_id"]
        _pay(client, cashier_headers, "SALE", open_sale.id, "60.00")

        resp = client.delete(f"/api/payments/{first}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["result"]["amount_paid"] == "60.00"
        assert resp.json["result"]["payment_status"] == "PARTIAL"

        sale = client.get(f"/api/sales/{open_sale.id}", headers=cashier_headers).json["sale"]
        assert sale["paid_amount"] == "60.00"

    def test_delete_unknown_is_404(self, client, manager_headers):
        resp = client.delete("/api/payments/999", headers=manager_headers)
        assert resp.status_code == 404
        assert resp.json["error_code"] == "PAYMENT_NOT_FOUND"

    def test_list_excludes_deleted_by_default(self, client, cashier_headers, manager_headers, open_sale):
        payment_id = _pay(client, cashier_headers, "SALE", open_sale.id, "10").json["result"]["payment_id"]
        client.delete(f"/api/payments/{payment_id}", headers=manager_headers)

        assert client.get("/api/payments", headers=cashier_headers).json["count"] == 0
        resp = client.get("/api/payments?include_deleted=true", headers=cashier_headers)
        assert resp.json["count"] == 1
