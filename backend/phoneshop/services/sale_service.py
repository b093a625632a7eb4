# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service

WHY: A sale moves exactly one phone out of inventory and, for PAY_LATER,
creates customer debt that is collected later through payments.

PAYMENT TYPES:
- CASH: paid in full at the counter (customer optional)
- PAY_LATER: customer required; an optional down payment may be taken

The up-front amount is recorded as a real payment in the same transaction,
so a sale's paid_amount always equals its active payment allocations.
"""

from ..extensions import db
from ..models import Sale, Phone, Customer, PhoneStatus, PaymentType
from ..validation import (
    parse_money,
    parse_choice,
    parse_date,
    ValidationError,
    ConflictError,
    NotFoundError,
    ModelValidationPolicy,
    validate_payload,
    ZERO,
)
from . import payment_service
from .concurrency import lock_for_update
from .payment_service import TargetKind, PaymentMethod
from phoneshop.time_utils import utcnow


SALE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"sale_date", "notes"},
)


def _require_int(payload: dict, key: str, required: bool = True) -> int | None:
    value = payload.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    return value


def create_sale(payload: dict, user_id: int | None = None) -> Sale:
    """
    Sell a phone.

    Request shape:
        phone_id, sale_price, payment_type, customer_id?, paid_amount?,
        payment_method?, sale_date?, notes?

    Raises:
        ValidationError: malformed input, PAY_LATER without customer,
            paid_amount above sale_price
        NotFoundError: unknown phone or customer
        ConflictError: phone already sold or in repair
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    phone_id = _require_int(payload, "phone_id")
    customer_id = _require_int(payload, "customer_id", required=False)
    price = parse_money(payload.get("sale_price"), "sale_price", allow_zero=False)
    payment_type = parse_choice(payload.get("payment_type") or PaymentType.CASH, PaymentType.ALL, "payment_type")
    sale_date = parse_date(payload.get("sale_date"), "sale_date") or utcnow()
    method = payload.get("payment_method") or PaymentMethod.CASH

    if payment_type == PaymentType.PAY_LATER and customer_id is None:
        raise ValidationError("Customer is required for PAY_LATER sales")

    if payment_type == PaymentType.CASH:
        paid = price
    else:
        raw_paid = payload.get("paid_amount")
        paid = ZERO if raw_paid in (None, "") else parse_money(raw_paid, "paid_amount")
    if paid > price:
        raise ValidationError("Paid amount cannot exceed sale price")

    try:
        phone = lock_for_update(
            db.session.query(Phone).filter(Phone.id == phone_id, Phone.is_active.is_(True))
        ).first()
        if not phone:
            raise NotFoundError(f"Phone {phone_id} not found")
        if phone.status == PhoneStatus.SOLD or phone.active_sale is not None:
            raise ConflictError("Phone has already been sold")
        if phone.status == PhoneStatus.IN_REPAIR:
            raise ConflictError("Cannot sell a phone that is currently in repair")

        if customer_id is not None:
            customer = db.session.query(Customer).filter(
                Customer.id == customer_id,
                Customer.is_active.is_(True),
            ).first()
            if not customer:
                raise NotFoundError(f"Customer {customer_id} not found")

        sale = Sale(
            phone_id=phone.id,
            customer_id=customer_id,
            sale_price=price,
            sale_date=sale_date,
            payment_type=payment_type,
            paid_amount=ZERO,
            payment_status=payment_service.derive_payment_status(ZERO, price),
            notes=payload.get("notes"),
            created_by_user_id=user_id,
            is_active=True,
        )
        db.session.add(sale)
        phone.status = PhoneStatus.SOLD
        db.session.flush()

        if paid > 0:
            payment_service.record_payment(
                TargetKind.SALE,
                sale.id,
                paid,
                method,
                payment_date=sale_date,
                notes="Paid at sale",
                user_id=user_id,
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter(Sale.id == sale_id, Sale.is_active.is_(True)).first()
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    *,
    customer_id: int | None = None,
    payment_type: str | None = None,
    payment_status: str | None = None,
    start=None,
    end=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    query = db.session.query(Sale).filter(Sale.is_active.is_(True))
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if payment_type:
        query = query.filter(Sale.payment_type == payment_type)
    if payment_status:
        query = query.filter(Sale.payment_status == payment_status)
    if start:
        query = query.filter(Sale.sale_date >= start)
    if end:
        query = query.filter(Sale.sale_date <= end)

    total = query.count()
    items = query.order_by(Sale.sale_date.desc(), Sale.id.desc()).offset(offset).limit(limit).all()
    return items, total


def get_customer_sales(customer_id: int) -> list[Sale]:
    if not db.session.query(Customer.id).filter_by(id=customer_id).first():
        raise NotFoundError(f"Customer {customer_id} not found")
    items, _ = list_sales(customer_id=customer_id, limit=10000)
    return items


def get_customer_debt(customer_id: int) -> dict:
    """Unpaid and partially paid sales of a customer with the outstanding total."""
    if not db.session.query(Customer.id).filter_by(id=customer_id).first():
        raise NotFoundError(f"Customer {customer_id} not found")

    open_sales = (
        db.session.query(Sale)
        .filter(
            Sale.customer_id == customer_id,
            Sale.is_active.is_(True),
            Sale.payment_status.in_(payment_service.OPEN_STATUSES),
        )
        .order_by(Sale.sale_date, Sale.id)
        .all()
    )
    total_debt = sum((s.sale_price - s.paid_amount for s in open_sales), ZERO)
    return {
        "customer_id": customer_id,
        "total_debt": f"{total_debt:.2f}",
        "sales": [s.to_dict() for s in open_sales],
    }


def update_sale(sale_id: int, payload: dict) -> Sale:
    sale = get_sale(sale_id)
    if isinstance(payload, dict) and "paid_amount" in payload:
        raise ValidationError("paid_amount is changed by recording or deleting payments")

    patch = validate_payload(model=Sale, payload=payload, policy=SALE_UPDATE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(sale, key, value)

    db.session.commit()
    return sale


def delete_sale(sale_id: int) -> Sale:
    """
    Soft-delete a sale and put its phone back in stock.

    Refused while the sale has active payments: delete those first so the
    money trail stays explicit.
    """
    sale = get_sale(sale_id)
    if payment_service.has_active_payments(sale_id=sale.id):
        raise ConflictError("Cannot delete sale with active payments")

    sale.soft_delete()
    if sale.phone and sale.phone.status == PhoneStatus.SOLD:
        sale.phone.status = PhoneStatus.IN_STOCK
    db.session.commit()
    return sale
