# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/phoneshop/routes/payments.py
"""
Payment API Routes

WHY: Money received from customers and paid to suppliers is recorded as
immutable payments against a ledger target.

TARGETS:
- SALE / PURCHASE: settle one document
- CUSTOMER / SUPPLIER: settle the party's open documents, oldest first

DESIGN:
- Overpayment is rejected (409, error_code OVERPAYMENT), nothing is written
- Deleting a payment is logical; affected balances are re-derived
- Error bodies carry error_code so clients can branch without parsing text

SECURITY (see ROUTE_REQUIREMENTS):
- Customer-side payments: CASHIER or above
- Supplier-side payments and history: MANAGER or above
- Deleting a payment: MANAGER or above
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import access_service, payment_service
from ..permissions import Role, RouteAuthRequirement
from ..services.payment_service import PaymentError, TargetKind
from ..services.access_service import AccessDeniedError
from ..validation import ValidationError, clamp_paging, parse_date


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")

# Paying suppliers needs MANAGER whichever endpoint is used
SUPPLIER_SIDE = (TargetKind.SUPPLIER, TargetKind.PURCHASE)
SUPPLIER_SIDE_REQUIREMENT = RouteAuthRequirement.roles(Role.MANAGER)


def _payment_error(e: PaymentError):
    return jsonify({"error": str(e), "error_code": e.error_code}), e.status_code


def _apply(target_kind: str, target_id, data: dict):
    try:
        payment_date = parse_date(data.get("payment_date"), "payment_date")
    except ValidationError as e:
        return jsonify({"error": str(e), "error_code": "INVALID_PAYMENT"}), 400

    try:
        result = payment_service.apply_payment(
            target_kind,
            target_id,
            data.get("amount"),
            data.get("method"),
            payment_date=payment_date,
            notes=data.get("notes"),
            user_id=g.current_user.id,
        )
        payment = payment_service.get_payment(result.payment_id)
        return jsonify({
            "payment": payment.to_dict(include_allocations=True),
            "result": result.to_dict(),
        }), 201

    except PaymentError as e:
        if e.status_code >= 500:
            current_app.logger.exception("Payment ledger invariant violated")
        return _payment_error(e)
    except Exception:
        current_app.logger.exception("Failed to apply payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("")
def apply_payment_route():
    """
    Apply a payment to any ledger target.

    Request body:
    {
        "target_kind": "SALE",        (SALE | PURCHASE | CUSTOMER | SUPPLIER)
        "target_id": 123,
        "amount": "40.00",
        "method": "CASH",             (CASH | BANK_TRANSFER | CARD | MOBILE_PAYMENT)
        "payment_date": "...",        (optional)
        "notes": "..."                (optional)
    }

    Supplier-side targets need MANAGER; the request is refused with 403 for
    a cashier even though this endpoint itself only needs CASHIER.

    Returns:
        201: Payment recorded, with the target's new balance
        400: Invalid amount / method / target kind
        404: Target not found
        409: Overpayment
    """
    data = request.get_json(silent=True) or {}
    target_kind = str(data.get("target_kind") or "").strip().upper()
    target_id = data.get("target_id")

    if not isinstance(target_id, int) or isinstance(target_id, bool):
        return jsonify({"error": "target_id must be an integer", "error_code": "INVALID_PAYMENT"}), 400

    if target_kind in SUPPLIER_SIDE:
        principal = g.principal
        try:
            access_service.enforce(SUPPLIER_SIDE_REQUIREMENT, principal, request.path)
        except AccessDeniedError as e:
            event_type = e.decision.value
            current_app.logger.warning(
                "Access denied (%s): %s payment by user=%s role=%s required=%s",
                event_type,
                target_kind,
                principal.user_id if principal else None,
                principal.role if principal else None,
                SUPPLIER_SIDE_REQUIREMENT.describe(),
            )
            access_service.log_security_event(
                user_id=principal.user_id if principal else None,
                event_type=event_type,
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"{target_kind} payment requires {SUPPLIER_SIDE_REQUIREMENT.describe()}",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            return jsonify({"error": str(e), "error_code": event_type}), e.status_code

    return _apply(target_kind, target_id, data)


@payments_bp.post("/customer/<int:customer_id>/apply")
def apply_customer_payment_route(customer_id: int):
    """Pay down a customer's debt, oldest sale first."""
    return _apply(TargetKind.CUSTOMER, customer_id, request.get_json(silent=True) or {})


@payments_bp.post("/supplier/<int:supplier_id>/apply")
def apply_supplier_payment_route(supplier_id: int):
    """Pay down what the shop owes a supplier, oldest purchase first."""
    return _apply(TargetKind.SUPPLIER, supplier_id, request.get_json(silent=True) or {})


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
def list_payments_route():
    """
    List payments.

    Query parameters:
    - target_kind, method: exact match
    - start, end: payment_date range (ISO-8601)
    - include_deleted: include soft-deleted payments (default: false)
    - limit / offset: paging
    """
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    try:
        items, total = payment_service.list_payments(
            target_kind=request.args.get("target_kind"),
            method=request.args.get("method"),
            start=parse_date(request.args.get("start"), "start"),
            end=parse_date(request.args.get("end"), "end"),
            include_deleted=request.args.get("include_deleted", "false").lower() == "true",
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PaymentError as e:
        return _payment_error(e)

    return jsonify({
        "items": [p.to_dict() for p in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@payments_bp.get("/<int:payment_id>")
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(payment_id)
        return jsonify({"payment": payment.to_dict(include_allocations=True)}), 200
    except PaymentError as e:
        return _payment_error(e)


def _target_payments(target_kind: str, target_id: int):
    include_deleted = request.args.get("include_deleted", "false").lower() == "true"
    try:
        payments = payment_service.list_target_payments(target_kind, target_id, include_deleted=include_deleted)
        balance = payment_service.get_target_balance(target_kind, target_id, include_inactive=True)
    except PaymentError as e:
        return _payment_error(e)

    return jsonify({
        "items": [p.to_dict(include_allocations=True) for p in payments],
        "count": len(payments),
        "balance": balance.to_dict(),
    }), 200


@payments_bp.get("/customer/<int:customer_id>")
def get_customer_payments_route(customer_id: int):
    return _target_payments(TargetKind.CUSTOMER, customer_id)


@payments_bp.get("/supplier/<int:supplier_id>")
def get_supplier_payments_route(supplier_id: int):
    return _target_payments(TargetKind.SUPPLIER, supplier_id)


@payments_bp.get("/sale/<int:sale_id>")
def get_sale_payments_route(sale_id: int):
    return _target_payments(TargetKind.SALE, sale_id)


@payments_bp.get("/purchase/<int:purchase_id>")
def get_purchase_payments_route(purchase_id: int):
    return _target_payments(TargetKind.PURCHASE, purchase_id)


# =============================================================================
# PAYMENT DELETION
# =============================================================================

@payments_bp.delete("/<int:payment_id>")
def delete_payment_route(payment_id: int):
    """
    Soft-delete a payment and re-derive the balances it touched.

    Returns:
        200: Payment deleted, with the owning target's new balance
        404: Unknown or already deleted payment
    """
    try:
        result = payment_service.delete_payment(payment_id, user_id=g.current_user.id)
        return jsonify({"result": result.to_dict(), "message": "Payment deleted"}), 200
    except PaymentError as e:
        if e.status_code >= 500:
            current_app.logger.exception("Payment ledger invariant violated")
        return _payment_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500
