# Overview: Service-layer operations for workers and their salary payments.

"""
Worker Service

WHY: Salaries are a running cost of the shop. Each worker is paid once per
calendar month; bonuses and deductions adjust that month's total.

DESIGN:
- Passport ID is the natural key (unique across all worker rows)
- Termination date ends employment: the worker stays listed but inactive
- Delete is logical and hides the worker everywhere
- Salary totals are Decimal sums of the stored per-payment totals
"""

from sqlalchemy import or_

from ..extensions import db
from ..models import Worker, WorkerPayment, User
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
    MAX_AMOUNT,
    ZERO,
    to_money,
)
from .concurrency import lock_for_update
from .payment_service import PaymentMethod
from phoneshop.time_utils import utcnow


MIN_YEAR = 2000
MAX_YEAR = 2100

WORKER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "full_name", "phone_number", "email", "address", "passport_id",
        "hire_date", "monthly_salary", "notes", "user_id",
    },
    required_on_create={"full_name", "phone_number", "passport_id", "hire_date", "monthly_salary"},
)

WORKER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "full_name", "phone_number", "email", "address",
        "termination_date", "monthly_salary", "notes", "is_active",
    },
)

WORKER_PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"worker_id", "month", "year", "amount", "bonus", "deduction", "method", "payment_date", "notes"},
    required_on_create={"worker_id", "month", "year", "amount"},
    choices={"method": PaymentMethod.ALL},
)


def _validate_email(data: dict) -> None:
    email = data.get("email")
    if email and ("@" not in email or email.startswith("@") or email.endswith("@")):
        raise ValidationError("email must be a valid email address")


def _validate_salary(data: dict) -> None:
    if "monthly_salary" in data and (data["monthly_salary"] is None or data["monthly_salary"] <= 0):
        raise ValidationError("monthly_salary must be > 0")


def _ensure_passport_free(passport_id: str) -> None:
    if db.session.query(Worker.id).filter(Worker.passport_id == passport_id).first():
        raise ConflictError(f"Worker with passport ID {passport_id} already exists")


def _ensure_user_linkable(user_id: int) -> None:
    if not db.session.query(User.id).filter(User.id == user_id).first():
        raise NotFoundError(f"User {user_id} not found")
    if db.session.query(Worker.id).filter(Worker.user_id == user_id).first():
        raise ConflictError(f"User {user_id} is already linked to a worker")


# =============================================================================
# WORKERS
# =============================================================================

def create_worker(payload: dict) -> Worker:
    data = validate_payload(model=Worker, payload=payload, policy=WORKER_CREATE_POLICY, partial=False)
    _validate_email(data)
    _validate_salary(data)
    _ensure_passport_free(data["passport_id"])
    if data.get("user_id") is not None:
        _ensure_user_linkable(data["user_id"])

    worker = Worker(**data, is_active=True)
    db.session.add(worker)
    db.session.commit()
    return worker


def get_worker(worker_id: int) -> Worker:
    worker = (
        db.session.query(Worker)
        .filter(Worker.id == worker_id, Worker.deleted_at.is_(None))
        .first()
    )
    if not worker:
        raise NotFoundError(f"Worker {worker_id} not found")
    return worker


def list_workers(
    *,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Worker], int]:
    """Employed and terminated workers, newest hire first."""
    query = db.session.query(Worker).filter(Worker.deleted_at.is_(None))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Worker.full_name.ilike(term),
            Worker.phone_number.ilike(term),
            Worker.passport_id.ilike(term),
        ))

    total = query.count()
    items = query.order_by(Worker.hire_date.desc(), Worker.id.desc()).offset(offset).limit(limit).all()
    return items, total


def list_active_workers() -> list[Worker]:
    return (
        db.session.query(Worker)
        .filter(Worker.is_active.is_(True), Worker.deleted_at.is_(None))
        .order_by(Worker.full_name, Worker.id)
        .all()
    )


def update_worker(worker_id: int, payload: dict) -> Worker:
    """
    Patch a worker. Setting termination_date also marks the worker inactive.

    Raises:
        ValidationError: bad field, or termination before hire
    """
    worker = get_worker(worker_id)
    patch = validate_payload(model=Worker, payload=payload, policy=WORKER_UPDATE_POLICY, partial=True)
    _validate_email(patch)
    _validate_salary(patch)

    termination_date = patch.get("termination_date")
    if termination_date is not None and termination_date < worker.hire_date:
        raise ValidationError("termination_date cannot be before hire_date")

    for key, value in patch.items():
        setattr(worker, key, value)

    if termination_date is not None:
        worker.is_active = False

    db.session.commit()
    return worker


def delete_worker(worker_id: int) -> Worker:
    worker = get_worker(worker_id)
    worker.soft_delete()
    db.session.commit()
    return worker


# =============================================================================
# SALARY PAYMENTS
# =============================================================================

def create_worker_payment(payload: dict, user_id: int | None = None) -> WorkerPayment:
    """
    Record one month's salary for a worker.

    Raises:
        NotFoundError: unknown or deleted worker
        ConflictError: an active payment for that month and year already exists
        ValidationError: bad period, zero amount, or deductions above pay
    """
    data = validate_payload(model=WorkerPayment, payload=payload, policy=WORKER_PAYMENT_POLICY, partial=False)

    if not 1 <= data["month"] <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not MIN_YEAR <= data["year"] <= MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    if data["amount"] <= 0:
        raise ValidationError("amount must be > 0")

    bonus = to_money(data.pop("bonus", None))
    deduction = to_money(data.pop("deduction", None))
    total_paid = data["amount"] + bonus - deduction
    if total_paid < 0:
        raise ValidationError("deduction cannot exceed amount plus bonus")
    if total_paid > MAX_AMOUNT:
        raise ValidationError(f"total_paid cannot exceed {MAX_AMOUNT}")

    try:
        worker = lock_for_update(
            db.session.query(Worker).filter(Worker.id == data["worker_id"], Worker.deleted_at.is_(None))
        ).first()
        if not worker:
            raise NotFoundError(f"Worker {data['worker_id']} not found")

        existing = (
            db.session.query(WorkerPayment.id)
            .filter(
                WorkerPayment.worker_id == worker.id,
                WorkerPayment.year == data["year"],
                WorkerPayment.month == data["month"],
                WorkerPayment.is_active.is_(True),
            )
            .first()
        )
        if existing:
            raise ConflictError(
                f"Payment for {data['month']}/{data['year']} already exists for this worker"
            )

        payment = WorkerPayment(
            **data,
            bonus=bonus,
            deduction=deduction,
            total_paid=total_paid,
            created_by_user_id=user_id,
            is_active=True,
        )
        if payment.method is None:
            payment.method = PaymentMethod.CASH
        if payment.payment_date is None:
            payment.payment_date = utcnow()
        db.session.add(payment)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return payment


def get_worker_payment(payment_id: int) -> WorkerPayment:
    payment = (
        db.session.query(WorkerPayment)
        .filter(WorkerPayment.id == payment_id, WorkerPayment.is_active.is_(True))
        .first()
    )
    if not payment:
        raise NotFoundError(f"Worker payment {payment_id} not found")
    return payment


def list_worker_payments(
    *,
    worker_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[WorkerPayment], int]:
    query = db.session.query(WorkerPayment).filter(WorkerPayment.is_active.is_(True))
    if worker_id is not None:
        query = query.filter(WorkerPayment.worker_id == worker_id)

    total = query.count()
    items = (
        query.order_by(WorkerPayment.year.desc(), WorkerPayment.month.desc(), WorkerPayment.payment_date.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total


def delete_worker_payment(payment_id: int) -> WorkerPayment:
    payment = get_worker_payment(payment_id)
    payment.soft_delete()
    db.session.commit()
    return payment


def get_salary_history(worker_id: int, year: int | None = None) -> dict:
    worker = get_worker(worker_id)

    query = db.session.query(WorkerPayment).filter(
        WorkerPayment.worker_id == worker.id,
        WorkerPayment.is_active.is_(True),
    )
    if year is not None:
        query = query.filter(WorkerPayment.year == year)
    payments = query.order_by(WorkerPayment.year.desc(), WorkerPayment.month.desc()).all()

    total_paid = sum((to_money(p.total_paid) for p in payments), ZERO)
    total_bonus = sum((to_money(p.bonus) for p in payments), ZERO)
    total_deduction = sum((to_money(p.deduction) for p in payments), ZERO)

    return {
        "worker_id": worker.id,
        "worker_name": worker.full_name,
        "monthly_salary": f"{to_money(worker.monthly_salary):.2f}",
        "year": year,
        "total_paid": f"{total_paid:.2f}",
        "total_bonus": f"{total_bonus:.2f}",
        "total_deduction": f"{total_deduction:.2f}",
        "payment_count": len(payments),
        "payments": [p.to_dict() for p in payments],
    }
