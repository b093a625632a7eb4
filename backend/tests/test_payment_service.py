"""
Payment reconciliation tests.

Verifies:
- Status derivation (UNPAID / PARTIAL / PAID) follows paid vs total
- Document payments accumulate and reject overpayment
- Party payments settle open documents oldest first
- Deleting a payment re-derives every balance it touched
- Invalid amounts, methods, kinds and missing targets write nothing
"""

from decimal import Decimal

import pytest

from phoneshop.extensions import db
from phoneshop.models import Payment, PaymentAllocation
from phoneshop.services import payment_service
from phoneshop.services.payment_service import (
    InvalidAmountError,
    LedgerTargetNotFoundError,
    OverpaymentError,
    PaymentNotFoundError,
    PaymentValidationError,
    derive_payment_status,
    normalize_amount,
)

from conftest import make_purchase, make_sale


@pytest.fixture
def sale_100(stock, customer):
    """Unpaid PAY_LATER sale of 100.00."""
    return make_sale(stock[0], "100.00", customer=customer)


def _balance(kind, target_id):
    return payment_service.get_target_balance(kind, target_id, include_inactive=True)


# =============================================================================
# DERIVATION
# =============================================================================


class TestDerivation:

    @pytest.mark.parametrize(
        "paid,total,expected",
        [
            ("0.00", "100.00", "UNPAID"),
            ("0.01", "100.00", "PARTIAL"),
            ("99.99", "100.00", "PARTIAL"),
            ("100.00", "100.00", "PAID"),
            ("0.00", "0.00", "PAID"),
        ],
    )
    def test_status(self, paid, total, expected):
        assert derive_payment_status(Decimal(paid), Decimal(total)) == expected

    @pytest.mark.parametrize("value", ["40", 40, 40.0, "40.00", Decimal("40")])
    def test_normalize_accepts_numbers(self, value):
        assert normalize_amount(value) == Decimal("40.00")

    def test_normalize_keeps_float_cents(self):
        assert normalize_amount(19.99) == Decimal("19.99")

    @pytest.mark.parametrize("value", [None, True, "", "abc", "0", 0, "-5", "1.001", "NaN", "Infinity", "1e12"])
    def test_normalize_rejects(self, value):
        with pytest.raises(InvalidAmountError):
            normalize_amount(value)


# =============================================================================
# SALE PAYMENTS
# =============================================================================


class TestSalePayments:

    def test_partial_then_full_then_delete(self, sale_100):
        first = payment_service.apply_payment("SALE", sale_100.id, "40.00", "CASH")
        assert first.amount_paid == Decimal("40.00")
        assert first.payment_status == "PARTIAL"

        second = payment_service.apply_payment("SALE", sale_100.id, "60.00", "CARD")
        assert second.amount_paid == Decimal("100.00")
        assert second.payment_status == "PAID"
        assert second.balance.remaining_amount == Decimal("0.00")

        deleted = payment_service.delete_payment(first.payment_id)
        assert deleted.amount_paid == Decimal("60.00")
        assert deleted.payment_status == "PARTIAL"

        db.session.refresh(sale_100)
        assert sale_100.paid_amount == Decimal("60.00")
        assert sale_100.payment_status == "PARTIAL"

    def test_overpayment_rejected_and_nothing_written(self, sale_100):
        payment_service.apply_payment("SALE", sale_100.id, "90.00", "CASH")

        with pytest.raises(OverpaymentError) as exc:
            payment_service.apply_payment("SALE", sale_100.id, "10.01", "CASH")
        assert exc.value.status_code == 409

        assert db.session.query(Payment).count() == 1
        assert _balance("SALE", sale_100.id).amount_paid == Decimal("90.00")

    def test_exact_remaining_is_accepted(self, sale_100):
        payment_service.apply_payment("SALE", sale_100.id, "99.99", "CASH")
        result = payment_service.apply_payment("SALE", sale_100.id, "0.01", "CASH")
        assert result.payment_status == "PAID"

    def test_paid_sale_refuses_more(self, sale_100):
        payment_service.apply_payment("SALE", sale_100.id, "100.00", "CASH")
        with pytest.raises(OverpaymentError):
            payment_service.apply_payment("SALE", sale_100.id, "0.01", "CASH")

    def test_cash_sale_is_paid_at_creation(self, stock):
        sale = make_sale(stock[0], "750.00")
        assert sale.payment_status == "PAID"
        payments = payment_service.list_target_payments("SALE", sale.id)
        assert [p.amount for p in payments] == [Decimal("750.00")]

    def test_down_payment_is_a_real_payment(self, stock, customer):
        sale = make_sale(stock[0], "1000.00", customer=customer, paid_amount="300.00")
        assert sale.paid_amount == Decimal("300.00")
        assert payment_service.sum_active_allocations(sale_id=sale.id) == Decimal("300.00")

    def test_method_is_normalized(self, sale_100):
        result = payment_service.apply_payment("sale", sale_100.id, "10", "bank_transfer")
        assert payment_service.get_payment(result.payment_id).method == "BANK_TRANSFER"


# =============================================================================
# PURCHASE PAYMENTS
# =============================================================================


class TestPurchasePayments:

    def test_purchase_payment_and_delete(self, supplier):
        purchase = make_purchase(supplier, ["400.00", "600.00"])
        assert purchase.total_amount == Decimal("1000.00")
        assert purchase.payment_status == "UNPAID"

        result = payment_service.apply_payment("PURCHASE", purchase.id, "250.00", "BANK_TRANSFER")
        assert result.payment_status == "PARTIAL"
        payment = payment_service.get_payment(result.payment_id)
        assert payment.supplier_id == supplier.id

        after = payment_service.delete_payment(result.payment_id)
        assert after.amount_paid == Decimal("0.00")
        assert after.payment_status == "UNPAID"

    def test_paid_at_purchase(self, supplier):
        purchase = make_purchase(supplier, ["500.00"], paid_amount="500.00")
        assert purchase.payment_status == "PAID"
        assert payment_service.has_active_payments(purchase_id=purchase.id)


# =============================================================================
# PARTY PAYMENTS (FIFO)
# =============================================================================


class TestFifo:

    def test_customer_payment_settles_oldest_first(self, stock, customer):
        newer = make_sale(stock[0], "100.00", customer=customer, sale_date="2026-03-02T10:00:00Z")
        older = make_sale(stock[1], "80.00", customer=customer, sale_date="2026-03-01T10:00:00Z")

        result = payment_service.apply_payment("CUSTOMER", customer.id, "120.00", "CASH")
        assert result.total_amount == Decimal("180.00")
        assert result.amount_paid == Decimal("120.00")
        assert result.payment_status == "PARTIAL"

        db.session.refresh(older)
        db.session.refresh(newer)
        assert older.paid_amount == Decimal("80.00")
        assert older.payment_status == "PAID"
        assert newer.paid_amount == Decimal("40.00")
        assert newer.payment_status == "PARTIAL"

        allocations = db.session.query(PaymentAllocation).filter_by(payment_id=result.payment_id).all()
        assert sorted((a.sale_id, a.amount) for a in allocations) == sorted(
            [(older.id, Decimal("80.00")), (newer.id, Decimal("40.00"))]
        )

    def test_fifo_skips_paid_and_cash_sales(self, stock, customer):
        paid = make_sale(stock[0], "50.00", customer=customer, paid_amount="50.00", sale_date="2026-01-01")
        open_sale = make_sale(stock[1], "70.00", customer=customer, sale_date="2026-02-01")

        payment_service.apply_payment("CUSTOMER", customer.id, "70.00", "CASH")

        db.session.refresh(open_sale)
        assert open_sale.payment_status == "PAID"
        assert payment_service.sum_active_allocations(sale_id=paid.id) == Decimal("50.00")

    def test_party_overpayment_rejected(self, stock, customer):
        make_sale(stock[0], "100.00", customer=customer)
        with pytest.raises(OverpaymentError):
            payment_service.apply_payment("CUSTOMER", customer.id, "100.01", "CASH")
        assert db.session.query(Payment).count() == 0

    def test_customer_without_debt_rejected(self, customer):
        with pytest.raises(OverpaymentError):
            payment_service.apply_payment("CUSTOMER", customer.id, "1.00", "CASH")

    def test_delete_party_payment_reopens_every_document(self, stock, customer):
        first = make_sale(stock[0], "30.00", customer=customer, sale_date="2026-01-01")
        second = make_sale(stock[1], "70.00", customer=customer, sale_date="2026-01-02")

        result = payment_service.apply_payment("CUSTOMER", customer.id, "100.00", "CASH")
        assert result.payment_status == "PAID"

        after = payment_service.delete_payment(result.payment_id)
        assert after.balance.target_kind == "CUSTOMER"
        assert after.amount_paid == Decimal("0.00")
        assert after.payment_status == "UNPAID"
        for sale in (first, second):
            db.session.refresh(sale)
            assert sale.payment_status == "UNPAID"

    def test_supplier_payment_settles_oldest_purchase(self, supplier):
        older = make_purchase(supplier, ["200.00"], purchase_date="2026-01-01")
        newer = make_purchase(supplier, ["300.00"], purchase_date="2026-01-05")

        result = payment_service.apply_payment("SUPPLIER", supplier.id, "250.00", "CASH")
        assert result.amount_paid == Decimal("250.00")

        db.session.refresh(older)
        db.session.refresh(newer)
        assert older.payment_status == "PAID"
        assert newer.paid_amount == Decimal("50.00")


# =============================================================================
# ROUND TRIP
# =============================================================================


class TestLedgerConsistency:

    def test_paid_amount_equals_active_allocations(self, stock, customer):
        sale = make_sale(stock[0], "500.00", customer=customer, paid_amount="100.00")
        ids = [
            payment_service.apply_payment("SALE", sale.id, amount, "CASH").payment_id
            for amount in ("50.00", "25.50", "74.50")
        ]
        payment_service.delete_payment(ids[1])

        db.session.refresh(sale)
        assert sale.paid_amount == payment_service.sum_active_allocations(sale_id=sale.id)
        assert sale.paid_amount == Decimal("224.50")

    def test_apply_then_delete_restores_balance(self, sale_100):
        payment_service.apply_payment("SALE", sale_100.id, "35.00", "CASH")
        before = _balance("SALE", sale_100.id)

        result = payment_service.apply_payment("SALE", sale_100.id, "15.00", "CARD")
        payment_service.delete_payment(result.payment_id)

        assert _balance("SALE", sale_100.id) == before


# =============================================================================
# ERRORS
# =============================================================================


class TestErrors:

    def test_invalid_amount_writes_nothing(self, sale_100):
        with pytest.raises(InvalidAmountError):
            payment_service.apply_payment("SALE", sale_100.id, "-1", "CASH")
        assert db.session.query(Payment).count() == 0

    def test_invalid_method(self, sale_100):
        with pytest.raises(PaymentValidationError):
            payment_service.apply_payment("SALE", sale_100.id, "1", "CHEQUE")

    def test_invalid_kind(self, sale_100):
        with pytest.raises(PaymentValidationError):
            payment_service.apply_payment("INVOICE", sale_100.id, "1", "CASH")

    def test_missing_target(self, app):
        with pytest.raises(LedgerTargetNotFoundError) as exc:
            payment_service.apply_payment("SALE", 999, "1", "CASH")
        assert exc.value.status_code == 404

    def test_delete_twice(self, sale_100):
        result = payment_service.apply_payment("SALE", sale_100.id, "10", "CASH")
        payment_service.delete_payment(result.payment_id)
        with pytest.raises(PaymentNotFoundError):
            payment_service.delete_payment(result.payment_id)

    def test_deleted_payment_still_listed_on_request(self, sale_100):
        result = payment_service.apply_payment("SALE", sale_100.id, "10", "CASH")
        payment_service.delete_payment(result.payment_id, user_id=None)

        assert payment_service.list_target_payments("SALE", sale_100.id) == []
        deleted = payment_service.list_target_payments("SALE", sale_100.id, include_deleted=True)
        assert [p.id for p in deleted] == [result.payment_id]
        assert deleted[0].is_active is False
