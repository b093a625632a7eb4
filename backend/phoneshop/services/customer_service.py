# Overview: Service-layer operations for customers; encapsulates business logic and database work.

"""
Customer Service

WHY: Customers are needed for credit (PAY_LATER) sales and for collecting
the resulting debt. Walk-in cash sales do not need one.

DESIGN:
- Phone number is the natural key (unique across all customer rows)
- Debt is never stored on the customer; it is aggregated from sales
- Soft delete only, and refused while the customer still owes money
"""

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Sale
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ConflictError,
    NotFoundError,
)
from . import payment_service
from .payment_service import TargetKind


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone_number", "address", "passport_id", "notes"},
    required_on_create={"full_name", "phone_number"},
)


def _ensure_phone_number_free(phone_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Customer).filter(Customer.phone_number == phone_number)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError("Customer with this phone number already exists")


def create_customer(payload: dict) -> Customer:
    data = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    _ensure_phone_number_free(data["phone_number"])

    customer = Customer(**data, is_active=True)
    db.session.add(customer)
    db.session.commit()
    return customer


def get_customer(customer_id: int, include_inactive: bool = False) -> Customer:
    query = db.session.query(Customer).filter(Customer.id == customer_id)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    customer = query.first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    query = db.session.query(Customer)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Customer.full_name.ilike(term), Customer.phone_number.ilike(term)))

    total = query.count()
    items = query.order_by(Customer.full_name, Customer.id).offset(offset).limit(limit).all()
    return items, total


def search_customers(term: str, limit: int = 20) -> list[Customer]:
    """Quick lookup for the sale screen: name or phone number substring."""
    if not term or not term.strip():
        return []
    items, _ = list_customers(search=term, limit=limit)
    return items


def update_customer(customer_id: int, payload: dict) -> Customer:
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)

    if "phone_number" in patch and patch["phone_number"] != customer.phone_number:
        _ensure_phone_number_free(patch["phone_number"], exclude_id=customer.id)

    for key, value in patch.items():
        setattr(customer, key, value)

    db.session.commit()
    return customer


def get_customer_balance(customer_id: int) -> dict:
    customer = get_customer(customer_id, include_inactive=True)
    balance = payment_service.get_target_balance(TargetKind.CUSTOMER, customer.id, include_inactive=True)
    return {
        "customer_id": customer.id,
        "full_name": customer.full_name,
        "total_debt": f"{balance.total_amount:.2f}",
        "total_paid": f"{balance.amount_paid:.2f}",
        "outstanding": f"{balance.remaining_amount:.2f}",
        "payment_status": balance.payment_status,
    }


def get_customer_transactions(customer_id: int) -> dict:
    customer = get_customer(customer_id, include_inactive=True)
    sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id, Sale.is_active.is_(True))
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )
    payments = payment_service.list_target_payments(TargetKind.CUSTOMER, customer.id)
    return {
        "customer": customer.to_dict(),
        "sales": [s.to_dict() for s in sales],
        "payments": [p.to_dict(include_allocations=True) for p in payments],
    }


def delete_customer(customer_id: int) -> Customer:
    """
    Soft-delete a customer.

    Raises:
        NotFoundError: unknown or already deleted customer
        ConflictError: the customer has unpaid sales
    """
    customer = get_customer(customer_id)
    balance = payment_service.get_target_balance(TargetKind.CUSTOMER, customer.id)
    if balance.remaining_amount > 0:
        raise ConflictError(
            f"Cannot delete customer with outstanding debt of {balance.remaining_amount:.2f}"
        )

    customer.soft_delete()
    db.session.commit()
    return customer
