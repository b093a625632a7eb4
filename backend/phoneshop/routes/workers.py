# Overview: Flask API routes for workers and salary payments; parses input and returns JSON responses.

"""
Worker Routes

SECURITY (see ROUTE_REQUIREMENTS):
- Viewing workers requires MANAGER or above
- Creating, updating and deleting workers requires OWNER
- Salary payments and salary history require OWNER
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import worker_service
from ..validation import ValidationError, ConflictError, NotFoundError, clamp_paging


workers_bp = Blueprint("workers", __name__, url_prefix="/api/workers")


# =============================================================================
# WORKERS
# =============================================================================

@workers_bp.post("")
def create_worker_route():
    """
    Add a worker.

    Request body:
    {
        "full_name": "Ali Karimov",
        "phone_number": "+998901234567",
        "passport_id": "AA1234567",
        "hire_date": "2026-01-01",
        "monthly_salary": "3000000.00",
        "email": "...",     (optional)
        "address": "...",   (optional)
        "notes": "...",     (optional)
        "user_id": 4        (optional, links a login account)
    }
    """
    try:
        worker = worker_service.create_worker(request.get_json(silent=True))
        return jsonify({"worker": worker.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create worker")
        return jsonify({"error": "Internal server error"}), 500


@workers_bp.get("")
def list_workers_route():
    """
    List workers, newest hire first.

    Query parameters:
    - search: name, phone number or passport ID substring
    - limit / offset: paging (default 50 / 0, limit capped at 500)
    """
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    items, total = worker_service.list_workers(
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [w.to_dict() for w in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@workers_bp.get("/active")
def list_active_workers_route():
    workers = worker_service.list_active_workers()
    return jsonify({"items": [w.to_dict() for w in workers]}), 200


@workers_bp.get("/<int:worker_id>")
def get_worker_route(worker_id: int):
    try:
        worker = worker_service.get_worker(worker_id)
        return jsonify({"worker": worker.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@workers_bp.get("/<int:worker_id>/salary-history")
def get_salary_history_route(worker_id: int):
    """Salary payments for a worker with totals; ?year= narrows to one year."""
    year = request.args.get("year")
    if year is not None and not year.strip().isdigit():
        return jsonify({"error": "year must be an integer"}), 400
    try:
        history = worker_service.get_salary_history(worker_id, int(year) if year is not None else None)
        return jsonify(history), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@workers_bp.patch("/<int:worker_id>")
def update_worker_route(worker_id: int):
    """Update worker details. A termination_date ends employment."""
    try:
        worker = worker_service.update_worker(worker_id, request.get_json(silent=True))
        return jsonify({"worker": worker.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update worker")
        return jsonify({"error": "Internal server error"}), 500


@workers_bp.delete("/<int:worker_id>")
def delete_worker_route(worker_id: int):
    try:
        worker = worker_service.delete_worker(worker_id)
        return jsonify({"worker": worker.to_dict(), "message": "Worker deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete worker")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SALARY PAYMENTS
# =============================================================================

@workers_bp.post("/payments")
def create_worker_payment_route():
    """
    Record a monthly salary payment.

    Request body:
    {
        "worker_id": 1,
        "month": 2,
        "year": 2026,
        "amount": "3000000.00",
        "bonus": "500000.00",       (optional)
        "deduction": "100000.00",   (optional)
        "method": "BANK_TRANSFER",  (optional, default CASH)
        "payment_date": "...",      (optional)
        "notes": "..."              (optional)
    }

    Returns:
        201: Payment recorded; total_paid = amount + bonus - deduction
        400: Invalid period or amounts
        404: Worker not found
        409: That month is already paid
    """
    try:
        payment = worker_service.create_worker_payment(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"payment": payment.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record worker payment")
        return jsonify({"error": "Internal server error"}), 500


@workers_bp.get("/payments")
def list_worker_payments_route():
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    items, total = worker_service.list_worker_payments(
        worker_id=request.args.get("worker_id", type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [p.to_dict() for p in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@workers_bp.delete("/payments/<int:payment_id>")
def delete_worker_payment_route(payment_id: int):
    """Soft-delete a salary payment; its month can then be paid again."""
    try:
        payment = worker_service.delete_worker_payment(payment_id)
        return jsonify({"payment": payment.to_dict(), "message": "Worker payment deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete worker payment")
        return jsonify({"error": "Internal server error"}), 500
