# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

"""
Purchase Service

WHY: Stock only enters the shop through a purchase. One purchase document
brings in one or more phones from a single supplier.

DESIGN:
- total_amount = sum of the phones' purchase prices, fixed at creation
- Each phone gets a unique barcode and starts with total_cost = purchase_price
- An up-front paid_amount is recorded as a real payment (same transaction),
  so the purchase's paid_amount always equals its active allocations
- paid_amount cannot be edited directly; use the payments API
"""

from ..extensions import db
from ..models import Purchase, Phone, Supplier, PhoneStatus, PhoneCondition
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    parse_money,
    parse_date,
    ValidationError,
    ConflictError,
    NotFoundError,
    ZERO,
)
from . import payment_service, phone_service
from .payment_service import TargetKind, PaymentMethod
from phoneshop.time_utils import utcnow


PURCHASE_PHONE_POLICY = ModelValidationPolicy(
    writable_fields={"brand", "model", "imei", "color", "condition", "purchase_price", "status", "notes"},
    required_on_create={"brand", "model", "purchase_price"},
    choices={
        "condition": PhoneCondition.ALL,
        "status": frozenset({PhoneStatus.IN_STOCK, PhoneStatus.READY_FOR_SALE}),
    },
)

PURCHASE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"purchase_date", "notes"},
)


def _build_phones(raw_phones) -> list[dict]:
    if not isinstance(raw_phones, list) or not raw_phones:
        raise ValidationError("phones must be a non-empty list")

    phones = []
    seen_imeis = set()
    for index, raw in enumerate(raw_phones):
        try:
            data = validate_payload(model=Phone, payload=raw, policy=PURCHASE_PHONE_POLICY, partial=False)
        except ValidationError as e:
            raise ValidationError(f"phones[{index}]: {e}")

        if data["purchase_price"] <= 0:
            raise ValidationError(f"phones[{index}]: purchase_price must be > 0")

        imei = data.get("imei")
        if imei:
            if imei in seen_imeis:
                raise ConflictError(f"Duplicate IMEI {imei} in purchase")
            seen_imeis.add(imei)
            phone_service.ensure_imei_free(imei)

        data.setdefault("condition", PhoneCondition.NEW)
        data.setdefault("status", PhoneStatus.IN_STOCK)
        phones.append(data)
    return phones


def create_purchase(payload: dict, user_id: int | None = None) -> Purchase:
    """
    Create a purchase and its phones.

    Request shape:
        supplier_id, phones[], purchase_date?, paid_amount?, payment_method?, notes?

    Raises:
        ValidationError: malformed input, or paid_amount above the total
        NotFoundError: unknown supplier
        ConflictError: duplicate IMEI
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    supplier_id = payload.get("supplier_id")
    if not isinstance(supplier_id, int) or isinstance(supplier_id, bool):
        raise ValidationError("supplier_id is required")
    supplier = db.session.query(Supplier).filter(
        Supplier.id == supplier_id,
        Supplier.is_active.is_(True),
    ).first()
    if not supplier:
        raise NotFoundError(f"Supplier {supplier_id} not found")

    phones = _build_phones(payload.get("phones"))
    total = sum((p["purchase_price"] for p in phones), ZERO)

    paid_amount = payload.get("paid_amount")
    paid = ZERO if paid_amount in (None, "") else parse_money(paid_amount, "paid_amount")
    if paid > total:
        raise ValidationError("Paid amount cannot exceed total amount")

    purchase_date = parse_date(payload.get("purchase_date"), "purchase_date") or utcnow()
    method = payload.get("payment_method") or PaymentMethod.CASH

    try:
        purchase = Purchase(
            supplier_id=supplier.id,
            purchase_date=purchase_date,
            total_amount=total,
            paid_amount=ZERO,
            payment_status=payment_service.derive_payment_status(ZERO, total),
            notes=payload.get("notes"),
            created_by_user_id=user_id,
            is_active=True,
        )
        db.session.add(purchase)
        db.session.flush()

        for data in phones:
            db.session.add(Phone(
                **data,
                purchase_id=purchase.id,
                total_cost=data["purchase_price"],
                barcode=phone_service.unique_barcode(),
                is_active=True,
            ))
        db.session.flush()

        if paid > 0:
            payment_service.record_payment(
                TargetKind.PURCHASE,
                purchase.id,
                paid,
                method,
                payment_date=purchase_date,
                notes="Paid at purchase",
                user_id=user_id,
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return purchase


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.query(Purchase).filter(
        Purchase.id == purchase_id,
        Purchase.is_active.is_(True),
    ).first()
    if not purchase:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def list_purchases(
    *,
    supplier_id: int | None = None,
    payment_status: str | None = None,
    search: str | None = None,
    start=None,
    end=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Purchase], int]:
    query = db.session.query(Purchase).filter(Purchase.is_active.is_(True))
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if payment_status:
        query = query.filter(Purchase.payment_status == payment_status)
    if search:
        query = query.join(Supplier).filter(Supplier.company_name.ilike(f"%{search.strip()}%"))
    if start:
        query = query.filter(Purchase.purchase_date >= start)
    if end:
        query = query.filter(Purchase.purchase_date <= end)

    total = query.count()
    items = query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).offset(offset).limit(limit).all()
    return items, total


def update_purchase(purchase_id: int, payload: dict) -> Purchase:
    purchase = get_purchase(purchase_id)
    if isinstance(payload, dict) and "paid_amount" in payload:
        raise ValidationError("paid_amount is changed by recording or deleting payments")

    patch = validate_payload(model=Purchase, payload=payload, policy=PURCHASE_UPDATE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(purchase, key, value)

    db.session.commit()
    return purchase


def delete_purchase(purchase_id: int) -> Purchase:
    """
    Soft-delete a purchase together with its phones.

    Refused while the purchase has active payments or any of its phones has
    been sold: delete the payments (or the sale) first.
    """
    purchase = get_purchase(purchase_id)

    if payment_service.has_active_payments(purchase_id=purchase.id):
        raise ConflictError("Cannot delete purchase with active payments")

    phones = [p for p in purchase.phones if p.is_active]
    if any(p.status == PhoneStatus.SOLD for p in phones):
        raise ConflictError("Cannot delete purchase with sold phones")

    for phone in phones:
        phone.soft_delete()
    purchase.soft_delete()
    db.session.commit()
    return purchase
