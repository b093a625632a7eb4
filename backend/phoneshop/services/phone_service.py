# Overview: Service-layer operations for phones; encapsulates business logic and database work.

"""
Phone Inventory Service

WHY: Every handset is tracked individually from purchase, through repairs,
to sale. Phones are only created by purchase_service; this module covers
lookup, correction and lifecycle rules.

LIFECYCLE:
    IN_STOCK -> IN_REPAIR -> READY_FOR_SALE -> SOLD -> RETURNED
    (sale_service and repair_service drive the transitions; a manual
    update may not move a SOLD phone anywhere but RETURNED)
"""

import secrets
import time

from flask import current_app
from sqlalchemy import or_, func

from ..extensions import db
from ..models import Phone, PhoneStatus, PhoneCondition
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
    to_money,
    ZERO,
)


PHONE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"brand", "model", "imei", "color", "condition", "status", "notes"},
    choices={"condition": PhoneCondition.ALL, "status": PhoneStatus.ALL},
)


def generate_barcode() -> str:
    """PH + 13-digit millisecond timestamp + 4 random digits."""
    return f"PH{int(time.time() * 1000)}{secrets.randbelow(10000):04d}"


def unique_barcode() -> str:
    for _ in range(10):
        barcode = generate_barcode()
        if not db.session.query(Phone.id).filter_by(barcode=barcode).first():
            return barcode
    raise ConflictError("Could not generate a unique barcode")


def ensure_imei_free(imei: str | None, exclude_id: int | None = None) -> None:
    if not imei:
        return
    query = db.session.query(Phone.id).filter(Phone.imei == imei)
    if exclude_id is not None:
        query = query.filter(Phone.id != exclude_id)
    if query.first():
        raise ConflictError(f"Phone with IMEI {imei} already exists")


def _active_query():
    return db.session.query(Phone).filter(Phone.is_active.is_(True))


def list_phones(
    *,
    status: str | None = None,
    condition: str | None = None,
    brand: str | None = None,
    model: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Phone], int]:
    query = _active_query()

    if status:
        if status not in PhoneStatus.ALL:
            raise ValidationError(f"status must be one of {sorted(PhoneStatus.ALL)}")
        query = query.filter(Phone.status == status)
    if condition:
        if condition not in PhoneCondition.ALL:
            raise ValidationError(f"condition must be one of {sorted(PhoneCondition.ALL)}")
        query = query.filter(Phone.condition == condition)
    if brand:
        query = query.filter(Phone.brand.ilike(f"%{brand}%"))
    if model:
        query = query.filter(Phone.model.ilike(f"%{model}%"))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Phone.brand.ilike(term),
            Phone.model.ilike(term),
            Phone.imei.ilike(term),
            Phone.barcode.ilike(term),
        ))

    total = query.count()
    items = query.order_by(Phone.created_at.desc(), Phone.id.desc()).offset(offset).limit(limit).all()
    return items, total


def list_available_phones() -> list[Phone]:
    return (
        _active_query()
        .filter(Phone.status.in_(PhoneStatus.SELLABLE))
        .order_by(Phone.created_at.desc(), Phone.id.desc())
        .all()
    )


def get_phone(phone_id: int) -> Phone:
    phone = _active_query().filter(Phone.id == phone_id).first()
    if not phone:
        raise NotFoundError(f"Phone {phone_id} not found")
    return phone


def get_phone_by_barcode(barcode: str) -> Phone:
    phone = _active_query().filter(Phone.barcode == barcode).first()
    if not phone:
        raise NotFoundError(f"Phone with barcode {barcode} not found")
    return phone


def get_phone_by_imei(imei: str) -> Phone:
    phone = _active_query().filter(Phone.imei == imei).first()
    if not phone:
        raise NotFoundError(f"Phone with IMEI {imei} not found")
    return phone


def update_phone(phone_id: int, payload: dict) -> Phone:
    phone = get_phone(phone_id)
    patch = validate_payload(model=Phone, payload=payload, policy=PHONE_UPDATE_POLICY, partial=True)

    new_status = patch.get("status")
    if new_status and new_status != phone.status:
        if phone.status == PhoneStatus.SOLD and new_status != PhoneStatus.RETURNED:
            raise ConflictError("Cannot change status of sold phone. Use return flow if needed.")
        if new_status == PhoneStatus.SOLD:
            raise ConflictError("Phones are marked SOLD by creating a sale")
        if new_status == PhoneStatus.IN_REPAIR and not phone.repairs:
            current_app.logger.warning("Phone %s set to IN_REPAIR without a repair record", phone.id)

    if "imei" in patch and patch["imei"] != phone.imei:
        ensure_imei_free(patch["imei"], exclude_id=phone.id)

    for key, value in patch.items():
        setattr(phone, key, value)

    db.session.commit()
    return phone


def delete_phone(phone_id: int) -> Phone:
    phone = get_phone(phone_id)
    if phone.status == PhoneStatus.SOLD:
        raise ConflictError("Cannot delete a sold phone")

    phone.soft_delete()
    db.session.commit()
    return phone


def get_phone_history(phone_id: int) -> dict:
    phone = get_phone(phone_id)
    purchase = phone.purchase
    sale = phone.active_sale

    return {
        "phone": phone.to_dict(),
        "purchase": {
            "id": purchase.id,
            "date": purchase.to_dict()["purchase_date"],
            "supplier": purchase.supplier.company_name if purchase.supplier else None,
            "price": f"{phone.purchase_price:.2f}",
        } if purchase else None,
        "repairs": [r.to_dict() for r in phone.repairs if r.is_active],
        "total_cost": f"{phone.total_cost:.2f}",
        "sale": {
            "id": sale.id,
            "date": sale.to_dict()["sale_date"],
            "customer": sale.customer.full_name if sale.customer else None,
            "price": f"{sale.sale_price:.2f}",
            "profit": f"{sale.profit:.2f}",
            "payment_type": sale.payment_type,
            "payment_status": sale.payment_status,
        } if sale else None,
    }


def get_phone_statistics() -> dict:
    rows = (
        db.session.query(Phone.status, func.count(Phone.id))
        .filter(Phone.is_active.is_(True))
        .group_by(Phone.status)
        .all()
    )
    by_status = {status: 0 for status in sorted(PhoneStatus.ALL)}
    by_status.update({status: count for status, count in rows})

    # Inventory value: cost of everything not yet sold
    unsold = _active_query().filter(Phone.status.in_((
        PhoneStatus.IN_STOCK, PhoneStatus.IN_REPAIR, PhoneStatus.READY_FOR_SALE,
    ))).all()
    inventory_value = sum((to_money(p.total_cost) for p in unsold), ZERO)

    return {
        "total_phones": sum(by_status.values()),
        "by_status": by_status,
        "available": by_status[PhoneStatus.IN_STOCK] + by_status[PhoneStatus.READY_FOR_SALE],
        "inventory_value": f"{inventory_value:.2f}",
    }
