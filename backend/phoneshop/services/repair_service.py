# Overview: Service-layer operations for repairs; encapsulates business logic and database work.

"""
Repair Service

STATUS FLOW:
    PENDING -> IN_PROGRESS -> COMPLETED
          \\________________-> CANCELLED

- Opening a repair (PENDING / IN_PROGRESS) moves the phone to IN_REPAIR
- Completing adds repair_cost to phone.total_cost and marks it READY_FOR_SALE
  once no other repair on the phone is open
- Cancelling returns the phone to IN_STOCK once no other repair is open
- COMPLETED and CANCELLED are terminal
"""

from sqlalchemy import or_

from ..extensions import db
from ..models import Repair, Phone, PhoneStatus, RepairStatus
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
    to_money,
)
from .concurrency import lock_for_update
from phoneshop.time_utils import utcnow


REPAIR_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"phone_id", "description", "repair_cost", "status", "start_date", "notes"},
    required_on_create={"phone_id", "description", "repair_cost"},
    choices={"status": RepairStatus.OPEN},
)

REPAIR_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "repair_cost", "status", "completion_date", "notes"},
    choices={"status": RepairStatus.ALL},
)


def _lock_phone(phone_id: int) -> Phone:
    phone = lock_for_update(
        db.session.query(Phone).filter(Phone.id == phone_id, Phone.is_active.is_(True))
    ).first()
    if not phone:
        raise NotFoundError(f"Phone {phone_id} not found")
    return phone


def _has_other_open_repair(phone: Phone, repair_id: int) -> bool:
    return any(
        r.id != repair_id and r.is_active and r.status in RepairStatus.OPEN
        for r in phone.repairs
    )


def _release_phone(phone: Phone, repair: Repair) -> None:
    if phone.status == PhoneStatus.IN_REPAIR and not _has_other_open_repair(phone, repair.id):
        phone.status = PhoneStatus.IN_STOCK


def create_repair(payload: dict) -> Repair:
    data = validate_payload(model=Repair, payload=payload, policy=REPAIR_CREATE_POLICY, partial=False)

    try:
        phone = _lock_phone(data["phone_id"])
        if phone.status == PhoneStatus.SOLD:
            raise ConflictError("Cannot repair a phone that is already sold")

        data.setdefault("status", RepairStatus.PENDING)
        if not data.get("start_date"):
            data["start_date"] = utcnow()

        repair = Repair(**data, is_active=True)
        db.session.add(repair)
        phone.status = PhoneStatus.IN_REPAIR
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return repair


def get_repair(repair_id: int) -> Repair:
    repair = db.session.query(Repair).filter(Repair.id == repair_id, Repair.is_active.is_(True)).first()
    if not repair:
        raise NotFoundError(f"Repair {repair_id} not found")
    return repair


def list_repairs(
    *,
    status: str | None = None,
    phone_id: int | None = None,
    search: str | None = None,
    start=None,
    end=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Repair], int]:
    query = db.session.query(Repair).filter(Repair.is_active.is_(True))
    if status:
        if status not in RepairStatus.ALL:
            raise ValidationError(f"status must be one of {sorted(RepairStatus.ALL)}")
        query = query.filter(Repair.status == status)
    if phone_id is not None:
        query = query.filter(Repair.phone_id == phone_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.join(Phone).filter(or_(
            Phone.brand.ilike(term),
            Phone.model.ilike(term),
            Repair.description.ilike(term),
        ))
    if start:
        query = query.filter(Repair.start_date >= start)
    if end:
        query = query.filter(Repair.start_date <= end)

    total = query.count()
    items = query.order_by(Repair.start_date.desc(), Repair.id.desc()).offset(offset).limit(limit).all()
    return items, total


def get_phone_repairs(phone_id: int) -> list[Repair]:
    if not db.session.query(Phone.id).filter_by(id=phone_id).first():
        raise NotFoundError(f"Phone {phone_id} not found")
    return (
        db.session.query(Repair)
        .filter(Repair.phone_id == phone_id, Repair.is_active.is_(True))
        .order_by(Repair.start_date.desc(), Repair.id.desc())
        .all()
    )


def update_repair(repair_id: int, payload: dict) -> Repair:
    """
    Update a repair, applying phone side effects on status transitions.

    Raises:
        ConflictError: the repair is already COMPLETED or CANCELLED
    """
    repair = get_repair(repair_id)
    patch = validate_payload(model=Repair, payload=payload, policy=REPAIR_UPDATE_POLICY, partial=True)

    if repair.status not in RepairStatus.OPEN:
        raise ConflictError(f"Cannot modify a {repair.status.lower()} repair")
    if "repair_cost" in patch and patch["repair_cost"] is None:
        raise ValidationError("repair_cost cannot be null")

    new_status = patch.pop("status", repair.status)

    try:
        phone = _lock_phone(repair.phone_id)

        for key, value in patch.items():
            setattr(repair, key, value)

        if new_status == RepairStatus.COMPLETED:
            repair.status = RepairStatus.COMPLETED
            if not repair.completion_date:
                repair.completion_date = utcnow()
            phone.total_cost = to_money(phone.total_cost) + to_money(repair.repair_cost)
            if phone.status != PhoneStatus.SOLD and not _has_other_open_repair(phone, repair.id):
                phone.status = PhoneStatus.READY_FOR_SALE
        elif new_status == RepairStatus.CANCELLED:
            repair.status = RepairStatus.CANCELLED
            _release_phone(phone, repair)
        else:
            repair.status = new_status

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return repair


def delete_repair(repair_id: int) -> Repair:
    """
    Soft-delete a repair. Completed repairs are kept because their cost is
    already part of the phone's total_cost.
    """
    repair = get_repair(repair_id)
    if repair.status == RepairStatus.COMPLETED:
        raise ConflictError("Cannot delete a completed repair")

    repair.soft_delete()
    if repair.phone and repair.phone.is_active:
        _release_phone(repair.phone, repair)
    db.session.commit()
    return repair
