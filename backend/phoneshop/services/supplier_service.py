# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers mirror customers on the other side of the ledger: the shop owes
them for purchases instead of being owed for sales.
"""

from sqlalchemy import or_

from ..extensions import db
from ..models import Supplier, Purchase
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from . import payment_service
from .payment_service import TargetKind


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"company_name", "contact_person", "phone_number", "email", "address", "notes"},
    required_on_create={"company_name", "phone_number"},
)


def _validate_email(data: dict) -> None:
    email = data.get("email")
    if email and ("@" not in email or email.startswith("@") or email.endswith("@")):
        raise ValidationError("email must be a valid email address")


def _ensure_phone_number_free(phone_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Supplier).filter(Supplier.phone_number == phone_number)
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first():
        raise ConflictError("Supplier with this phone number already exists")


def create_supplier(payload: dict) -> Supplier:
    data = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    _validate_email(data)
    _ensure_phone_number_free(data["phone_number"])

    supplier = Supplier(**data, is_active=True)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def get_supplier(supplier_id: int, include_inactive: bool = False) -> Supplier:
    query = db.session.query(Supplier).filter(Supplier.id == supplier_id)
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    supplier = query.first()
    if not supplier:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Supplier], int]:
    query = db.session.query(Supplier)
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Supplier.company_name.ilike(term),
            Supplier.contact_person.ilike(term),
            Supplier.phone_number.ilike(term),
        ))

    total = query.count()
    items = query.order_by(Supplier.company_name, Supplier.id).offset(offset).limit(limit).all()
    return items, total


def search_suppliers(term: str, limit: int = 20) -> list[Supplier]:
    if not term or not term.strip():
        return []
    items, _ = list_suppliers(search=term, limit=limit)
    return items


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    _validate_email(patch)

    if "phone_number" in patch and patch["phone_number"] != supplier.phone_number:
        _ensure_phone_number_free(patch["phone_number"], exclude_id=supplier.id)

    for key, value in patch.items():
        setattr(supplier, key, value)

    db.session.commit()
    return supplier


def get_supplier_balance(supplier_id: int) -> dict:
    supplier = get_supplier(supplier_id, include_inactive=True)
    balance = payment_service.get_target_balance(TargetKind.SUPPLIER, supplier.id, include_inactive=True)
    return {
        "supplier_id": supplier.id,
        "company_name": supplier.company_name,
        "total_debt": f"{balance.total_amount:.2f}",
        "total_paid": f"{balance.amount_paid:.2f}",
        "outstanding": f"{balance.remaining_amount:.2f}",
        "payment_status": balance.payment_status,
    }


def get_supplier_transactions(supplier_id: int) -> dict:
    supplier = get_supplier(supplier_id, include_inactive=True)
    purchases = (
        db.session.query(Purchase)
        .filter(Purchase.supplier_id == supplier.id, Purchase.is_active.is_(True))
        .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .all()
    )
    payments = payment_service.list_target_payments(TargetKind.SUPPLIER, supplier.id)
    return {
        "supplier": supplier.to_dict(),
        "purchases": [p.to_dict() for p in purchases],
        "payments": [p.to_dict(include_allocations=True) for p in payments],
    }


def delete_supplier(supplier_id: int) -> Supplier:
    supplier = get_supplier(supplier_id)
    balance = payment_service.get_target_balance(TargetKind.SUPPLIER, supplier.id)
    if balance.remaining_amount > 0:
        raise ConflictError(
            f"Cannot delete supplier with outstanding debt of {balance.remaining_amount:.2f}"
        )

    supplier.soft_delete()
    db.session.commit()
    return supplier
