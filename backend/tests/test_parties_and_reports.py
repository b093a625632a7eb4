"""
Customer, supplier and report endpoint tests.
"""

import pytest

from phoneshop.services import customer_service, supplier_service
from phoneshop.validation import ConflictError, ValidationError

from conftest import make_purchase, make_sale


class TestCustomers:

    def test_create_and_search(self, client, manager_headers):
        resp = client.post(
            "/api/customers",
            json={"full_name": "Dilnoza Karimova", "phone_number": "+998935554433", "address": "Tashkent"},
            headers=manager_headers,
        )
        assert resp.status_code == 201

        found = client.get("/api/customers/search?q=dilnoza", headers=manager_headers)
        assert found.status_code == 200
        assert [c["phone_number"] for c in found.json["items"]] == ["+998935554433"]

    def test_duplicate_phone_number_is_409(self, client, manager_headers, customer):
        resp = client.post(
            "/api/customers",
            json={"full_name": "Someone Else", "phone_number": customer.phone_number},
            headers=manager_headers,
        )
        assert resp.status_code == 409

    def test_unknown_field_is_400(self, client, manager_headers):
        resp = client.post(
            "/api/customers",
            json={"full_name": "A", "phone_number": "+1", "credit_limit": "100"},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_balance_aggregates_sales(self, stock, customer):
        make_sale(stock[0], "300.00", customer=customer, paid_amount="100.00")
        make_sale(stock[1], "200.00", customer=customer)
        balance = customer_service.get_customer_balance(customer.id)
        assert balance["total_debt"] == "500.00"
        assert balance["total_paid"] == "100.00"
        assert balance["outstanding"] == "400.00"
        assert balance["payment_status"] == "PARTIAL"

    def test_delete_refused_while_in_debt(self, stock, customer):
        make_sale(stock[0], "300.00", customer=customer)
        with pytest.raises(ConflictError):
            customer_service.delete_customer(customer.id)

    def test_delete_settled_customer(self, client, owner_headers, customer):
        resp = client.delete(f"/api/customers/{customer.id}", headers=owner_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/customers/{customer.id}", headers=owner_headers).status_code == 404


class TestSuppliers:

    def test_invalid_email(self, app):
        with pytest.raises(ValidationError):
            supplier_service.create_supplier({"company_name": "X", "phone_number": "+2", "email": "not-an-email"})

    def test_balance(self, supplier):
        make_purchase(supplier, ["1000.00"], paid_amount="250.00")
        balance = supplier_service.get_supplier_balance(supplier.id)
        assert balance["outstanding"] == "750.00"

    def test_delete_refused_while_owed(self, supplier):
        make_purchase(supplier, ["10.00"])
        with pytest.raises(ConflictError):
            supplier_service.delete_supplier(supplier.id)


class TestReports:

    def test_financial_summary(self, client, owner_headers, supplier, customer):
        purchase = make_purchase(supplier, ["500.00", "600.00"], paid_amount="600.00")
        make_sale(purchase.phones[0], "700.00", customer=customer, paid_amount="200.00")

        resp = client.get("/api/reports/financial-summary", headers=owner_headers)
        assert resp.status_code == 200
        data = resp.json
        assert data["total_revenue"] == "700.00"
        assert data["purchase_expenses"] == "1100.00"
        assert data["total_receivables"] == "500.00"
        assert data["total_payables"] == "500.00"
        assert data["inventory_count"] == 1
        assert data["inventory_value"] == "600.00"

    def test_sales_report(self, client, manager_headers, stock, customer):
        make_sale(stock[0], "700.00")
        make_sale(stock[1], "650.00", customer=customer)

        data = client.get("/api/reports/sales", headers=manager_headers).json
        assert data["total_sales"] == 2
        assert data["total_profit"] == "250.00"
        assert data["cash_sales"] == 1
        assert data["credit_sales"] == 1

    def test_bad_range_is_400(self, client, manager_headers):
        resp = client.get("/api/reports/sales?start=2026-02-01&end=2026-01-01", headers=manager_headers)
        assert resp.status_code == 400

    def test_dashboard(self, client, cashier_headers, stock):
        make_sale(stock[0], "700.00")
        data = client.get("/api/reports/dashboard", headers=cashier_headers).json
        assert data["sales"]["today"] == 1
        assert data["inventory"]["available"] == 2
        assert data["financial"]["today_profit"] == "200.00"
