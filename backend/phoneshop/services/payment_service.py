# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Reconciliation Service

WHY: Money changes hands against four kinds of ledger target: a single sale,
a single purchase, a customer's debt or a supplier's debt. Each target has a
total and a paid amount; payment status is derived from the two.

DESIGN PRINCIPLES:
- Event-sourced: every payment is an appended row plus one allocation per
  sale/purchase it settled. Document paid_amount is a cache of the
  allocations of active payments, kept for fast reads.
- Party payments (CUSTOMER / SUPPLIER) settle open documents oldest first.
- Overpayment is rejected. A payment never settles more than is owed, so no
  credit balance exists anywhere.
- Deleting a payment is logical. Affected documents are re-summed from the
  remaining active allocations, never decremented in place.
- Pessimistic locking: target rows are read with SELECT ... FOR UPDATE so
  two concurrent payments cannot both read the same stale balance.
- All or nothing: balance updates, payment and allocations commit together.

PAYMENT STATUS:
- UNPAID:  paid == 0
- PARTIAL: 0 < paid < total
- PAID:    paid >= total
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from ..extensions import db
from ..models import Customer, Supplier, Sale, Purchase, Payment, PaymentAllocation
from ..validation import CENT, ZERO, MAX_AMOUNT, to_money
from .concurrency import lock_for_update
from phoneshop.time_utils import utcnow


# =============================================================================
# CONSTANTS
# =============================================================================

class TargetKind:
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"
    SALE = "SALE"
    PURCHASE = "PURCHASE"

    ALL = frozenset({CUSTOMER, SUPPLIER, SALE, PURCHASE})


class PaymentMethod:
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"
    MOBILE_PAYMENT = "MOBILE_PAYMENT"

    ALL = frozenset({CASH, BANK_TRANSFER, CARD, MOBILE_PAYMENT})


PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"

OPEN_STATUSES = (PAYMENT_STATUS_UNPAID, PAYMENT_STATUS_PARTIAL)


# =============================================================================
# ERRORS
# =============================================================================

class PaymentError(Exception):
    """Raised for payment operation errors."""
    status_code = 400
    error_code = "PAYMENT_ERROR"


class InvalidAmountError(PaymentError):
    """Zero, negative, non-numeric or sub-cent payment amount."""
    error_code = "INVALID_AMOUNT"


class PaymentValidationError(PaymentError):
    """Unknown target kind or payment method."""
    error_code = "INVALID_PAYMENT"


class OverpaymentError(PaymentError):
    """Payment would take the target's paid amount above its total."""
    status_code = 409
    error_code = "OVERPAYMENT"


class LedgerTargetNotFoundError(PaymentError):
    """Target does not exist or is soft-deleted."""
    status_code = 404
    error_code = "TARGET_NOT_FOUND"


class PaymentNotFoundError(PaymentError):
    """Payment does not exist or is already soft-deleted."""
    status_code = 404
    error_code = "PAYMENT_NOT_FOUND"


class LedgerInvariantError(PaymentError):
    """A recomputed balance left the range [0, total]."""
    status_code = 500
    error_code = "LEDGER_INVARIANT"


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class TargetBalance:
    target_kind: str
    target_id: int
    total_amount: Decimal
    amount_paid: Decimal

    @property
    def remaining_amount(self) -> Decimal:
        return self.total_amount - self.amount_paid

    @property
    def payment_status(self) -> str:
        return derive_payment_status(self.amount_paid, self.total_amount)

    def to_dict(self) -> dict:
        return {
            "target_kind": self.target_kind,
            "target_id": self.target_id,
            "total_amount": f"{self.total_amount:.2f}",
            "amount_paid": f"{self.amount_paid:.2f}",
            "remaining_amount": f"{self.remaining_amount:.2f}",
            "payment_status": self.payment_status,
        }


@dataclass(frozen=True)
class PaymentResult:
    payment_id: int
    balance: TargetBalance

    @property
    def amount_paid(self) -> Decimal:
        return self.balance.amount_paid

    @property
    def total_amount(self) -> Decimal:
        return self.balance.total_amount

    @property
    def payment_status(self) -> str:
        return self.balance.payment_status

    def to_dict(self) -> dict:
        return {"payment_id": self.payment_id, **self.balance.to_dict()}


# =============================================================================
# DERIVATION
# =============================================================================

def derive_payment_status(amount_paid: Decimal, total_amount: Decimal) -> str:
    """Status for a paid/total pair. Never stored without being recomputed."""
    if amount_paid >= total_amount:
        return PAYMENT_STATUS_PAID
    if amount_paid > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def normalize_amount(amount) -> Decimal:
    """
    Validate a payment amount and return it as a two-place Decimal.

    JSON numbers arrive as floats and go through str(), so 19.99 stays 19.99.
    """
    if amount is None or isinstance(amount, bool):
        raise InvalidAmountError("Payment amount must be a decimal value")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError("Payment amount must be a decimal value")
    if not value.is_finite():
        raise InvalidAmountError("Payment amount must be a decimal value")
    if value <= 0:
        raise InvalidAmountError("Payment amount must be greater than 0")
    if value > MAX_AMOUNT:
        raise InvalidAmountError(f"Payment amount cannot exceed {MAX_AMOUNT}")
    if value != value.quantize(CENT):
        raise InvalidAmountError("Payment amount cannot have more than 2 decimal places")
    return value.quantize(CENT)


def _normalize_kind(target_kind: str) -> str:
    kind = (target_kind or "").strip().upper() if isinstance(target_kind, str) else ""
    if kind not in TargetKind.ALL:
        raise PaymentValidationError(f"Invalid target kind: {target_kind}. Must be one of {sorted(TargetKind.ALL)}")
    return kind


def _normalize_method(method: str) -> str:
    value = (method or "").strip().upper() if isinstance(method, str) else ""
    if value not in PaymentMethod.ALL:
        raise PaymentValidationError(f"Invalid payment method: {method}. Must be one of {sorted(PaymentMethod.ALL)}")
    return value


# =============================================================================
# BALANCES
# =============================================================================

def _document_total(doc) -> Decimal:
    return to_money(doc.sale_price if isinstance(doc, Sale) else doc.total_amount)


def _set_document_paid(doc, paid: Decimal) -> None:
    total = _document_total(doc)
    if paid < 0 or paid > total:
        raise LedgerInvariantError(
            f"{type(doc).__name__} {doc.id} paid amount {paid} outside [0, {total}]"
        )
    doc.paid_amount = paid
    doc.payment_status = derive_payment_status(paid, total)


def sum_active_allocations(*, sale_id: int | None = None, purchase_id: int | None = None) -> Decimal:
    """Sum of allocations of active payments against one sale or purchase."""
    query = db.session.query(PaymentAllocation.amount).join(Payment).filter(Payment.is_active.is_(True))
    if sale_id is not None:
        query = query.filter(PaymentAllocation.sale_id == sale_id)
    elif purchase_id is not None:
        query = query.filter(PaymentAllocation.purchase_id == purchase_id)
    else:
        raise ValueError("sale_id or purchase_id required")
    return to_money(sum((to_money(amount) for (amount,) in query.all()), ZERO))


def _party_documents(kind: str, party_id: int):
    if kind == TargetKind.CUSTOMER:
        return db.session.query(Sale).filter(Sale.customer_id == party_id, Sale.is_active.is_(True))
    return db.session.query(Purchase).filter(Purchase.supplier_id == party_id, Purchase.is_active.is_(True))


def _load_target(kind: str, target_id: int, *, include_inactive: bool = False, lock: bool = False):
    model = {
        TargetKind.CUSTOMER: Customer,
        TargetKind.SUPPLIER: Supplier,
        TargetKind.SALE: Sale,
        TargetKind.PURCHASE: Purchase,
    }[kind]
    query = db.session.query(model).filter(model.id == target_id)
    if not include_inactive:
        query = query.filter(model.is_active.is_(True))
    if lock:
        query = lock_for_update(query)
    target = query.first()
    if not target:
        raise LedgerTargetNotFoundError(f"{kind.title()} {target_id} not found")
    return target


def get_target_balance(target_kind: str, target_id: int, *, include_inactive: bool = False) -> TargetBalance:
    """
    Current total/paid pair for a ledger target.

    For customers and suppliers this aggregates their active sales or
    purchases; for a single document it reads the cached columns.
    """
    kind = _normalize_kind(target_kind)
    target = _load_target(kind, target_id, include_inactive=include_inactive)

    if kind in (TargetKind.SALE, TargetKind.PURCHASE):
        return TargetBalance(kind, target.id, _document_total(target), to_money(target.paid_amount))

    total = paid = ZERO
    for doc in _party_documents(kind, target.id).all():
        total += _document_total(doc)
        paid += to_money(doc.paid_amount)
    return TargetBalance(kind, target.id, total, paid)


# =============================================================================
# APPLYING PAYMENTS
# =============================================================================

def _plan_document_payment(doc, amount: Decimal) -> list[tuple[object, Decimal]]:
    total = _document_total(doc)
    paid = to_money(doc.paid_amount)
    if paid + amount > total:
        raise OverpaymentError(
            f"Payment amount exceeds remaining balance. Remaining: {total - paid:.2f}"
        )
    return [(doc, amount)]


def _plan_fifo(documents, amount: Decimal) -> list[tuple[object, Decimal]]:
    """
    Split amount over documents oldest first.

    Raises OverpaymentError before anything is planned if the amount is
    larger than everything outstanding.
    """
    outstanding = sum((_document_total(d) - to_money(d.paid_amount) for d in documents), ZERO)
    if outstanding <= 0:
        raise OverpaymentError("No outstanding balance to apply payment to")
    if amount > outstanding:
        raise OverpaymentError(
            f"Payment amount exceeds total debt. Remaining: {amount - outstanding:.2f}"
        )

    remaining = amount
    plan = []
    for doc in documents:
        if remaining <= 0:
            break
        balance = _document_total(doc) - to_money(doc.paid_amount)
        if balance <= 0:
            continue
        share = min(remaining, balance)
        plan.append((doc, share))
        remaining -= share
    return plan


def _open_party_documents_locked(kind: str, party_id: int) -> list:
    model = Sale if kind == TargetKind.CUSTOMER else Purchase
    date_col = Sale.sale_date if kind == TargetKind.CUSTOMER else Purchase.purchase_date

    # Lock in id order, settle in date order
    docs = lock_for_update(
        _party_documents(kind, party_id)
        .filter(model.payment_status.in_(OPEN_STATUSES))
        .order_by(model.id)
    ).all()
    return sorted(docs, key=lambda d: (getattr(d, date_col.key), d.id))


def record_payment(
    target_kind: str,
    target_id: int,
    amount,
    method: str,
    *,
    payment_date: datetime | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Payment:
    """
    Apply a payment inside the caller's transaction (flushes, never commits).

    Used directly by sale and purchase creation so an up-front payment lands
    in the same transaction as its document. Everyone else should call
    apply_payment().
    """
    kind = _normalize_kind(target_kind)
    value = normalize_amount(amount)
    method = _normalize_method(method)

    payment = Payment(
        amount=value,
        method=method,
        payment_date=payment_date or utcnow(),
        notes=notes,
        target_kind=kind,
        created_by_user_id=user_id,
        is_active=True,
    )

    if kind == TargetKind.SALE:
        sale = _load_target(kind, target_id, lock=True)
        plan = _plan_document_payment(sale, value)
        payment.sale_id = sale.id
        payment.customer_id = sale.customer_id
    elif kind == TargetKind.PURCHASE:
        purchase = _load_target(kind, target_id, lock=True)
        plan = _plan_document_payment(purchase, value)
        payment.purchase_id = purchase.id
        payment.supplier_id = purchase.supplier_id
    else:
        party = _load_target(kind, target_id, lock=True)
        plan = _plan_fifo(_open_party_documents_locked(kind, party.id), value)
        if kind == TargetKind.CUSTOMER:
            payment.customer_id = party.id
        else:
            payment.supplier_id = party.id

    db.session.add(payment)
    db.session.flush()

    for doc, share in plan:
        allocation = PaymentAllocation(payment_id=payment.id, amount=share)
        if isinstance(doc, Sale):
            allocation.sale_id = doc.id
        else:
            allocation.purchase_id = doc.id
        db.session.add(allocation)
        _set_document_paid(doc, to_money(doc.paid_amount) + share)

    db.session.flush()
    return payment


def apply_payment(
    target_kind: str,
    target_id: int,
    amount,
    method: str,
    *,
    payment_date: datetime | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> PaymentResult:
    """
    Apply a payment to a sale, purchase, customer or supplier and commit.

    Args:
        target_kind: SALE, PURCHASE, CUSTOMER or SUPPLIER
        target_id: ID of the target row
        amount: Positive amount with at most two decimals
        method: CASH, BANK_TRANSFER, CARD or MOBILE_PAYMENT
        payment_date: When the money changed hands (default: now)
        notes: Free text
        user_id: User recording the payment

    Returns:
        PaymentResult with the new payment's ID and the target's balance

    Raises:
        InvalidAmountError, PaymentValidationError, LedgerTargetNotFoundError,
        OverpaymentError. Nothing is written when any of these is raised.
    """
    try:
        payment = record_payment(
            target_kind,
            target_id,
            amount,
            method,
            payment_date=payment_date,
            notes=notes,
            user_id=user_id,
        )
        balance = get_target_balance(payment.target_kind, target_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return PaymentResult(payment_id=payment.id, balance=balance)


# =============================================================================
# DELETING PAYMENTS
# =============================================================================

def delete_payment(payment_id: int, user_id: int | None = None) -> PaymentResult:
    """
    Soft-delete a payment and re-derive every balance it touched.

    Each affected sale/purchase is re-summed from the allocations of its
    remaining active payments rather than decremented, so corrections made
    in between cannot leave a drifted total behind.

    Raises:
        PaymentNotFoundError: unknown or already deleted payment
        LedgerInvariantError: a recomputed balance fell outside [0, total]
    """
    try:
        payment = lock_for_update(
            db.session.query(Payment).filter(Payment.id == payment_id, Payment.is_active.is_(True))
        ).first()
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")

        payment.soft_delete()
        payment.deleted_by_user_id = user_id
        db.session.flush()

        sale_ids = sorted({a.sale_id for a in payment.allocations if a.sale_id is not None})
        purchase_ids = sorted({a.purchase_id for a in payment.allocations if a.purchase_id is not None})

        if sale_ids:
            sales = lock_for_update(db.session.query(Sale).filter(Sale.id.in_(sale_ids)).order_by(Sale.id)).all()
            for sale in sales:
                _set_document_paid(sale, sum_active_allocations(sale_id=sale.id))
        if purchase_ids:
            purchases = lock_for_update(
                db.session.query(Purchase).filter(Purchase.id.in_(purchase_ids)).order_by(Purchase.id)
            ).all()
            for purchase in purchases:
                _set_document_paid(purchase, sum_active_allocations(purchase_id=purchase.id))

        db.session.flush()
        balance = get_target_balance(payment.target_kind, payment.target_id, include_inactive=True)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return PaymentResult(payment_id=payment.id, balance=balance)


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.query(Payment).filter_by(id=payment_id).first()
    if not payment:
        raise PaymentNotFoundError(f"Payment {payment_id} not found")
    return payment


def list_payments(
    *,
    target_kind: str | None = None,
    method: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    include_deleted: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Payment], int]:
    query = db.session.query(Payment)
    if not include_deleted:
        query = query.filter(Payment.is_active.is_(True))
    if target_kind:
        query = query.filter(Payment.target_kind == _normalize_kind(target_kind))
    if method:
        query = query.filter(Payment.method == _normalize_method(method))
    if start:
        query = query.filter(Payment.payment_date >= start)
    if end:
        query = query.filter(Payment.payment_date <= end)

    total = query.count()
    items = query.order_by(Payment.payment_date.desc(), Payment.id.desc()).offset(offset).limit(limit).all()
    return items, total


def list_target_payments(target_kind: str, target_id: int, include_deleted: bool = False) -> list[Payment]:
    """
    Payments that touched a target.

    For a sale or purchase this includes party payments that settled part of
    it; for a customer or supplier it includes direct document payments.
    """
    kind = _normalize_kind(target_kind)
    _load_target(kind, target_id, include_inactive=True)

    query = db.session.query(Payment)
    if kind == TargetKind.CUSTOMER:
        query = query.filter(Payment.customer_id == target_id)
    elif kind == TargetKind.SUPPLIER:
        query = query.filter(Payment.supplier_id == target_id)
    elif kind == TargetKind.SALE:
        query = query.join(PaymentAllocation).filter(PaymentAllocation.sale_id == target_id)
    else:
        query = query.join(PaymentAllocation).filter(PaymentAllocation.purchase_id == target_id)

    if not include_deleted:
        query = query.filter(Payment.is_active.is_(True))

    return query.distinct().order_by(Payment.payment_date, Payment.id).all()


def has_active_payments(*, sale_id: int | None = None, purchase_id: int | None = None) -> bool:
    query = db.session.query(PaymentAllocation.id).join(Payment).filter(Payment.is_active.is_(True))
    if sale_id is not None:
        query = query.filter(PaymentAllocation.sale_id == sale_id)
    else:
        query = query.filter(PaymentAllocation.purchase_id == purchase_id)
    return query.first() is not None
