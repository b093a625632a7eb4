"""
Inventory lifecycle tests: purchase -> repair -> sale.

Verifies:
- Purchases create barcoded phones and total their prices
- Repairs move phones through IN_REPAIR and roll cost into total_cost
- Sales mark phones SOLD exactly once and refuse phones in repair
- Deletes are refused while payments or downstream records depend on them
"""

from decimal import Decimal

import pytest

from phoneshop.models import PhoneStatus
from phoneshop.services import payment_service, phone_service, purchase_service, repair_service, sale_service
from phoneshop.validation import ConflictError, NotFoundError, ValidationError

from conftest import make_purchase, make_sale


# =============================================================================
# PURCHASES
# =============================================================================


class TestPurchases:

    def test_creates_phones_with_barcodes(self, supplier):
        purchase = make_purchase(supplier, ["850.00", "150.50"])
        assert purchase.total_amount == Decimal("1000.50")
        assert len(purchase.phones) == 2
        barcodes = {p.barcode for p in purchase.phones}
        assert len(barcodes) == 2
        assert all(b.startswith("PH") for b in barcodes)
        assert all(p.total_cost == p.purchase_price for p in purchase.phones)
        assert all(p.status == PhoneStatus.IN_STOCK for p in purchase.phones)

    def test_paid_above_total_rejected(self, supplier):
        with pytest.raises(ValidationError):
            make_purchase(supplier, ["100.00"], paid_amount="100.01")

    def test_duplicate_imei_rejected(self, supplier):
        payload = {
            "supplier_id": supplier.id,
            "phones": [
                {"brand": "Samsung", "model": "S23", "imei": "356789012345678", "purchase_price": "400"},
                {"brand": "Samsung", "model": "S23", "imei": "356789012345678", "purchase_price": "400"},
            ],
        }
        with pytest.raises(ConflictError):
            purchase_service.create_purchase(payload)

    def test_imei_already_in_stock_rejected(self, supplier):
        purchase_service.create_purchase({
            "supplier_id": supplier.id,
            "phones": [{"brand": "Google", "model": "Pixel 8", "imei": "111", "purchase_price": "300"}],
        })
        with pytest.raises(ConflictError):
            purchase_service.create_purchase({
                "supplier_id": supplier.id,
                "phones": [{"brand": "Google", "model": "Pixel 8", "imei": "111", "purchase_price": "300"}],
            })

    def test_unknown_supplier(self, app):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase({"supplier_id": 77, "phones": [{"brand": "A", "model": "B", "purchase_price": "1"}]})

    def test_zero_price_rejected(self, supplier):
        with pytest.raises(ValidationError):
            make_purchase(supplier, ["0"])

    def test_paid_amount_not_patchable(self, supplier):
        purchase = make_purchase(supplier, ["100.00"])
        with pytest.raises(ValidationError):
            purchase_service.update_purchase(purchase.id, {"paid_amount": "100.00"})

    def test_delete_refused_with_payments(self, supplier):
        purchase = make_purchase(supplier, ["100.00"], paid_amount="10.00")
        with pytest.raises(ConflictError):
            purchase_service.delete_purchase(purchase.id)

    def test_delete_refused_with_sold_phone(self, supplier):
        purchase = make_purchase(supplier, ["100.00"])
        make_sale(purchase.phones[0], "150.00")
        with pytest.raises(ConflictError):
            purchase_service.delete_purchase(purchase.id)

    def test_delete_removes_phones(self, supplier):
        purchase = make_purchase(supplier, ["100.00", "200.00"])
        phone_ids = [p.id for p in purchase.phones]
        purchase_service.delete_purchase(purchase.id)
        for phone_id in phone_ids:
            with pytest.raises(NotFoundError):
                phone_service.get_phone(phone_id)


# =============================================================================
# SALES
# =============================================================================


class TestSales:

    def test_cash_sale_marks_phone_sold(self, stock):
        sale = make_sale(stock[0], "650.00")
        assert sale.payment_type == "CASH"
        assert sale.paid_amount == Decimal("650.00")
        assert phone_service.get_phone(stock[0].id).status == PhoneStatus.SOLD
        assert sale.profit == Decimal("150.00")

    def test_phone_cannot_be_sold_twice(self, stock, customer):
        make_sale(stock[0], "650.00")
        with pytest.raises(ConflictError):
            make_sale(stock[0], "700.00", customer=customer)

    def test_pay_later_requires_customer(self, stock):
        with pytest.raises(ValidationError):
            sale_service.create_sale({"phone_id": stock[0].id, "sale_price": "100", "payment_type": "PAY_LATER"})

    def test_down_payment_above_price_rejected(self, stock, customer):
        with pytest.raises(ValidationError):
            make_sale(stock[0], "100.00", customer=customer, paid_amount="150.00")

    def test_unknown_phone(self, app):
        with pytest.raises(NotFoundError):
            sale_service.create_sale({"phone_id": 5, "sale_price": "100"})

    def test_customer_debt(self, stock, customer):
        make_sale(stock[0], "900.00", customer=customer, paid_amount="400.00")
        make_sale(stock[1], "800.00", customer=customer)
        debt = sale_service.get_customer_debt(customer.id)
        assert debt["total_debt"] == "1300.00"
        assert len(debt["sales"]) == 2

    def test_delete_refused_with_payments(self, stock):
        sale = make_sale(stock[0], "650.00")
        with pytest.raises(ConflictError):
            sale_service.delete_sale(sale.id)

    def test_delete_returns_phone_to_stock(self, stock, customer):
        sale = make_sale(stock[0], "650.00", customer=customer)
        sale_service.delete_sale(sale.id)
        assert phone_service.get_phone(stock[0].id).status == PhoneStatus.IN_STOCK

    def test_phone_resellable_after_payments_and_sale_deleted(self, stock, customer):
        sale = make_sale(stock[0], "650.00", customer=customer, paid_amount="50.00")
        for payment in payment_service.list_target_payments("SALE", sale.id):
            payment_service.delete_payment(payment.id)
        sale_service.delete_sale(sale.id)

        again = make_sale(stock[0], "600.00")
        assert again.payment_status == "PAID"


# =============================================================================
# REPAIRS
# =============================================================================


class TestRepairs:

    def test_repair_lifecycle(self, stock):
        phone = stock[0]
        repair = repair_service.create_repair({"phone_id": phone.id, "description": "Screen", "repair_cost": "40.00"})
        assert repair.status == "PENDING"
        assert phone_service.get_phone(phone.id).status == PhoneStatus.IN_REPAIR

        repair_service.update_repair(repair.id, {"status": "IN_PROGRESS"})
        done = repair_service.update_repair(repair.id, {"status": "COMPLETED"})
        assert done.completion_date is not None

        phone = phone_service.get_phone(phone.id)
        assert phone.status == PhoneStatus.READY_FOR_SALE
        assert phone.total_cost == Decimal("540.00")

    def test_phone_in_repair_cannot_be_sold(self, stock):
        repair_service.create_repair({"phone_id": stock[0].id, "description": "Battery", "repair_cost": "20"})
        with pytest.raises(ConflictError):
            make_sale(stock[0], "700.00")

    def test_completing_one_of_two_open_repairs_keeps_phone_in_repair(self, stock):
        phone = stock[0]
        first = repair_service.create_repair({"phone_id": phone.id, "description": "Screen", "repair_cost": "40.00"})
        second = repair_service.create_repair({"phone_id": phone.id, "description": "Battery", "repair_cost": "25.00"})

        repair_service.update_repair(first.id, {"status": "COMPLETED"})
        assert phone_service.get_phone(phone.id).status == PhoneStatus.IN_REPAIR
        with pytest.raises(ConflictError):
            make_sale(phone, "900.00")

        repair_service.update_repair(second.id, {"status": "COMPLETED"})
        phone = phone_service.get_phone(phone.id)
        assert phone.status == PhoneStatus.READY_FOR_SALE
        assert phone.total_cost == Decimal("565.00")

    def test_cancel_releases_phone(self, stock):
        repair = repair_service.create_repair({"phone_id": stock[0].id, "description": "Port", "repair_cost": "15"})
        repair_service.update_repair(repair.id, {"status": "CANCELLED"})
        phone = phone_service.get_phone(stock[0].id)
        assert phone.status == PhoneStatus.IN_STOCK
        assert phone.total_cost == Decimal("500.00")

    def test_completed_repair_is_final(self, stock):
        repair = repair_service.create_repair({"phone_id": stock[0].id, "description": "Port", "repair_cost": "15"})
        repair_service.update_repair(repair.id, {"status": "COMPLETED"})
        with pytest.raises(ConflictError):
            repair_service.update_repair(repair.id, {"repair_cost": "99"})
        with pytest.raises(ConflictError):
            repair_service.delete_repair(repair.id)

    def test_sold_phone_cannot_be_repaired(self, stock):
        make_sale(stock[0], "650.00")
        with pytest.raises(ConflictError):
            repair_service.create_repair({"phone_id": stock[0].id, "description": "X", "repair_cost": "1"})


# =============================================================================
# PHONES
# =============================================================================


class TestPhones:

    def test_lookup_by_barcode(self, stock):
        phone = stock[1]
        assert phone_service.get_phone_by_barcode(phone.barcode).id == phone.id

    def test_sold_status_cannot_be_set_directly(self, stock):
        with pytest.raises(ConflictError):
            phone_service.update_phone(stock[0].id, {"status": "SOLD"})

    def test_sold_phone_only_moves_to_returned(self, stock):
        make_sale(stock[0], "650.00")
        with pytest.raises(ConflictError):
            phone_service.update_phone(stock[0].id, {"status": "IN_STOCK"})
        assert phone_service.update_phone(stock[0].id, {"status": "RETURNED"}).status == PhoneStatus.RETURNED

    def test_history(self, stock, customer):
        make_sale(stock[0], "650.00", customer=customer)
        history = phone_service.get_phone_history(stock[0].id)
        assert history["purchase"]["price"] == "500.00"
        assert history["sale"]["customer"] == customer.full_name
        assert history["sale"]["payment_status"] == "UNPAID"

    def test_statistics(self, stock):
        make_sale(stock[0], "650.00")
        stats = phone_service.get_phone_statistics()
        assert stats["by_status"]["SOLD"] == 1
        assert stats["available"] == 2
