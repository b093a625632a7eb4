# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales Routes

- CASH sales are paid in full when created
- PAY_LATER sales need a customer and may take a down payment
- Deleting a sale (OWNER) is refused while it has active payments
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import sale_service
from ..services.payment_service import PaymentError
from ..validation import ValidationError, ConflictError, NotFoundError, clamp_paging, parse_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Sell a phone.

    Request body:
    {
        "phone_id": 12,
        "sale_price": "1100.00",
        "payment_type": "PAY_LATER",   (CASH | PAY_LATER, default CASH)
        "customer_id": 3,              (required for PAY_LATER)
        "paid_amount": "300.00",       (optional, PAY_LATER only)
        "payment_method": "CARD",      (optional, default CASH)
        "sale_date": "...",            (optional)
        "notes": "..."                 (optional)
    }

    Returns:
        201: Sale created
        400: Invalid input
        404: Phone or customer not found
        409: Phone already sold or in repair
    """
    try:
        sale = sale_service.create_sale(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PaymentError as e:
        return jsonify({"error": str(e), "error_code": e.error_code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    try:
        items, total = sale_service.list_sales(
            customer_id=request.args.get("customer_id", type=int),
            payment_type=request.args.get("payment_type"),
            payment_status=request.args.get("payment_status"),
            start=parse_date(request.args.get("start"), "start"),
            end=parse_date(request.args.get("end"), "end"),
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [s.to_dict() for s in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@sales_bp.get("/customer/<int:customer_id>")
def get_customer_sales_route(customer_id: int):
    try:
        sales = sale_service.get_customer_sales(customer_id)
        return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.get("/customer/<int:customer_id>/debt")
def get_customer_debt_route(customer_id: int):
    try:
        return jsonify(sale_service.get_customer_debt(customer_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return jsonify({"sale": sale_service.get_sale(sale_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.patch("/<int:sale_id>")
def update_sale_route(sale_id: int):
    try:
        sale = sale_service.update_sale(sale_id, request.get_json(silent=True))
        return jsonify({"sale": sale.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    try:
        sale = sale_service.delete_sale(sale_id)
        return jsonify({"sale": sale.to_dict(), "message": "Sale deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
