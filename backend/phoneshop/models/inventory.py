from __future__ import annotations

from ..extensions import db
from phoneshop.time_utils import to_utc_z, utcnow
from .base import SoftDeleteMixin, money_str


class PhoneStatus:
    IN_STOCK = "IN_STOCK"
    IN_REPAIR = "IN_REPAIR"
    READY_FOR_SALE = "READY_FOR_SALE"
    SOLD = "SOLD"
    RETURNED = "RETURNED"

    ALL = frozenset({IN_STOCK, IN_REPAIR, READY_FOR_SALE, SOLD, RETURNED})
    SELLABLE = frozenset({IN_STOCK, READY_FOR_SALE})


class PhoneCondition:
    NEW = "NEW"
    LIKE_NEW = "LIKE_NEW"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"

    ALL = frozenset({NEW, LIKE_NEW, GOOD, FAIR, POOR})


class RepairStatus:
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    ALL = frozenset({PENDING, IN_PROGRESS, COMPLETED, CANCELLED})
    OPEN = frozenset({PENDING, IN_PROGRESS})


class Purchase(SoftDeleteMixin, db.Model):
    """
    Stock purchase from a supplier: one document, one or more phones.

    total_amount is the sum of its phones' purchase prices and is fixed at
    creation. paid_amount is a cache of the active payment allocations
    against this purchase and is only written by payment_service.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_supplier_status", "supplier_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)  # UNPAID, PARTIAL, PAID

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))

    @property
    def remaining_amount(self):
        return self.total_amount - self.paid_amount

    def to_dict(self, include_phones: bool = False) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.company_name if self.supplier else None,
            "purchase_date": to_utc_z(self.purchase_date),
            "total_amount": money_str(self.total_amount),
            "paid_amount": money_str(self.paid_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "payment_status": self.payment_status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            **self._audit_dict(),
        }
        if include_phones:
            data["phones"] = [p.to_dict() for p in self.phones]
        return data


class Phone(SoftDeleteMixin, db.Model):
    """
    A single physical handset, tracked from purchase through repair to sale.

    total_cost starts at purchase_price and grows by the cost of each
    completed repair; profit on sale is sale_price - total_cost.
    """
    __tablename__ = "phones"
    __table_args__ = (
        db.Index("ix_phones_status_active", "status", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)

    brand = db.Column(db.String(64), nullable=False, index=True)
    model = db.Column(db.String(128), nullable=False)
    imei = db.Column(db.String(32), nullable=True, unique=True)
    color = db.Column(db.String(32), nullable=True)
    condition = db.Column(db.String(16), nullable=False, default=PhoneCondition.NEW)

    purchase_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PhoneStatus.IN_STOCK, index=True)
    barcode = db.Column(db.String(32), nullable=False, unique=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    purchase = db.relationship("Purchase", backref=db.backref("phones", lazy=True, order_by="Phone.id"))

    @property
    def active_sale(self):
        return next((s for s in self.sales if s.is_active), None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "brand": self.brand,
            "model": self.model,
            "imei": self.imei,
            "color": self.color,
            "condition": self.condition,
            "purchase_price": money_str(self.purchase_price),
            "total_cost": money_str(self.total_cost),
            "status": self.status,
            "barcode": self.barcode,
            "notes": self.notes,
            **self._audit_dict(),
        }


class Repair(SoftDeleteMixin, db.Model):
    """Repair job on a phone. Completion rolls repair_cost into phone.total_cost."""
    __tablename__ = "repairs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    phone_id = db.Column(db.Integer, db.ForeignKey("phones.id"), nullable=False, index=True)

    description = db.Column(db.Text, nullable=False)
    repair_cost = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=RepairStatus.PENDING, index=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completion_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    phone = db.relationship("Phone", backref=db.backref("repairs", lazy=True, order_by="Repair.start_date"))

    @property
    def is_completed(self) -> bool:
        return self.status == RepairStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone_id": self.phone_id,
            "phone": f"{self.phone.brand} {self.phone.model}" if self.phone else None,
            "description": self.description,
            "repair_cost": money_str(self.repair_cost),
            "status": self.status,
            "start_date": to_utc_z(self.start_date),
            "completion_date": to_utc_z(self.completion_date),
            "notes": self.notes,
            **self._audit_dict(),
        }
