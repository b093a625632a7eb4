from __future__ import annotations

from ..extensions import db
from .base import SoftDeleteMixin


class Customer(SoftDeleteMixin, db.Model):
    """
    Walk-in or credit customer.

    A customer's debt is not stored: it is the sum of their active sales'
    prices minus what has been paid on them (see payment_service).
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    full_name = db.Column(db.String(128), nullable=False, index=True)
    phone_number = db.Column(db.String(32), nullable=False, unique=True)
    address = db.Column(db.String(255), nullable=True)
    passport_id = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "address": self.address,
            "passport_id": self.passport_id,
            "notes": self.notes,
            **self._audit_dict(),
        }


class Supplier(SoftDeleteMixin, db.Model):
    """Company the shop buys phones from. Debt is derived from purchases."""
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    company_name = db.Column(db.String(128), nullable=False, index=True)
    contact_person = db.Column(db.String(128), nullable=True)
    phone_number = db.Column(db.String(32), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "contact_person": self.contact_person,
            "phone_number": self.phone_number,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            **self._audit_dict(),
        }
