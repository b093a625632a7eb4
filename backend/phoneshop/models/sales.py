from __future__ import annotations

from ..extensions import db
from phoneshop.time_utils import to_utc_z, utcnow
from .base import SoftDeleteMixin, money_str


class PaymentType:
    CASH = "CASH"            # paid in full at the counter
    PAY_LATER = "PAY_LATER"  # customer debt, settled by later payments

    ALL = frozenset({CASH, PAY_LATER})


class Sale(SoftDeleteMixin, db.Model):
    """
    Sale of exactly one phone.

    paid_amount is a cache of the active payment allocations against this
    sale and is only written by payment_service; payment_status is derived
    from it and sale_price on every change.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_customer_status", "customer_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    phone_id = db.Column(db.Integer, db.ForeignKey("phones.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    sale_price = db.Column(db.Numeric(10, 2), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    payment_type = db.Column(db.String(16), nullable=False, default=PaymentType.CASH)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)  # UNPAID, PARTIAL, PAID
    paid_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    phone = db.relationship("Phone", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    @property
    def total_amount(self):
        return self.sale_price

    @property
    def remaining_amount(self):
        return self.sale_price - self.paid_amount

    @property
    def profit(self):
        if not self.phone:
            return self.sale_price
        return self.sale_price - self.phone.total_cost

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone_id": self.phone_id,
            "phone": self.phone.to_dict() if self.phone else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "sale_price": money_str(self.sale_price),
            "sale_date": to_utc_z(self.sale_date),
            "payment_type": self.payment_type,
            "payment_status": self.payment_status,
            "paid_amount": money_str(self.paid_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "profit": money_str(self.profit),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            **self._audit_dict(),
        }


class Payment(SoftDeleteMixin, db.Model):
    """
    Money received from a customer or paid to a supplier.

    TARGET KINDS:
    - SALE / PURCHASE: applied to one document
    - CUSTOMER / SUPPLIER: spread over the party's open documents, oldest first

    The optional foreign keys are bookkeeping only; how the amount was
    actually split lives in PaymentAllocation. Payments are never updated
    after creation except to soft-delete them; a deleted payment stops
    counting toward every balance it touched.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False)  # CASH, BANK_TRANSFER, CARD, MOBILE_PAYMENT
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    notes = db.Column(db.Text, nullable=True)

    target_kind = db.Column(db.String(16), nullable=False, index=True)  # CUSTOMER, SUPPLIER, SALE, PURCHASE

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("payments", lazy=True))
    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))
    purchase = db.relationship("Purchase", backref=db.backref("payments", lazy=True))

    @property
    def target_id(self) -> int | None:
        return {
            "CUSTOMER": self.customer_id,
            "SUPPLIER": self.supplier_id,
            "SALE": self.sale_id,
            "PURCHASE": self.purchase_id,
        }.get(self.target_kind)

    def to_dict(self, include_allocations: bool = False) -> dict:
        data = {
            "id": self.id,
            "amount": money_str(self.amount),
            "method": self.method,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "target_kind": self.target_kind,
            "target_id": self.target_id,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "sale_id": self.sale_id,
            "purchase_id": self.purchase_id,
            "created_by_user_id": self.created_by_user_id,
            "deleted_by_user_id": self.deleted_by_user_id,
            **self._audit_dict(),
        }
        if include_allocations:
            data["allocations"] = [a.to_dict() for a in self.allocations]
        return data


class PaymentAllocation(db.Model):
    """
    Share of a payment applied to one sale or purchase.

    IMMUTABLE: written once with its payment. Whether it counts is decided
    by the owning payment's is_active flag, so a document's paid_amount is
    always the sum of allocations of its active payments.
    """
    __tablename__ = "payment_allocations"
    __table_args__ = (
        db.CheckConstraint(
            "(sale_id IS NOT NULL AND purchase_id IS NULL) OR (sale_id IS NULL AND purchase_id IS NOT NULL)",
            name="ck_payment_allocations_one_document",
        ),
        db.CheckConstraint("amount > 0", name="ck_payment_allocations_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    payment = db.relationship("Payment", backref=db.backref("allocations", lazy=True, order_by="PaymentAllocation.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "sale_id": self.sale_id,
            "purchase_id": self.purchase_id,
            "amount": money_str(self.amount),
            "created_at": to_utc_z(self.created_at),
        }
