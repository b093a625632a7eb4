from __future__ import annotations

from ..extensions import db
from phoneshop.time_utils import to_iso_date, to_utc_z, utcnow
from .base import SoftDeleteMixin, money_str


class Worker(SoftDeleteMixin, db.Model):
    """
    Shop employee on a monthly salary.

    is_active means "currently employed": setting a termination date clears
    it. Deletion is separate and stamps deleted_at, so a terminated worker
    still shows up in listings and salary history.
    """
    __tablename__ = "workers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    full_name = db.Column(db.String(128), nullable=False, index=True)
    phone_number = db.Column(db.String(32), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    passport_id = db.Column(db.String(32), nullable=False, unique=True)

    hire_date = db.Column(db.Date, nullable=False, index=True)
    termination_date = db.Column(db.Date, nullable=True)
    monthly_salary = db.Column(db.Numeric(10, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # Optional login account; not every worker uses the system
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True)

    user = db.relationship("User", backref=db.backref("worker", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "email": self.email,
            "address": self.address,
            "passport_id": self.passport_id,
            "hire_date": to_iso_date(self.hire_date),
            "termination_date": to_iso_date(self.termination_date),
            "monthly_salary": money_str(self.monthly_salary),
            "notes": self.notes,
            "user_id": self.user_id,
            **self._audit_dict(),
        }


class WorkerPayment(SoftDeleteMixin, db.Model):
    """
    Salary paid to a worker for one calendar month.

    total_paid = amount + bonus - deduction, computed once on creation.
    At most one active payment exists per (worker, year, month); deleting
    it frees the month for a corrected entry.
    """
    __tablename__ = "worker_payments"
    __table_args__ = (
        db.Index("ix_worker_payments_worker_period", "worker_id", "year", "month"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    worker_id = db.Column(db.Integer, db.ForeignKey("workers.id"), nullable=False, index=True)

    month = db.Column(db.Integer, nullable=False)  # 1-12
    year = db.Column(db.Integer, nullable=False)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    bonus = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    deduction = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_paid = db.Column(db.Numeric(10, 2), nullable=False)

    method = db.Column(db.String(16), nullable=False, default="CASH")  # CASH, BANK_TRANSFER, CARD, MOBILE_PAYMENT
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    worker = db.relationship("Worker", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "worker_id": self.worker_id,
            "worker_name": self.worker.full_name if self.worker else None,
            "month": self.month,
            "year": self.year,
            "amount": money_str(self.amount),
            "bonus": money_str(self.bonus),
            "deduction": money_str(self.deduction),
            "total_paid": money_str(self.total_paid),
            "method": self.method,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            **self._audit_dict(),
        }
