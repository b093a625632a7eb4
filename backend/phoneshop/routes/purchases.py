# Overview: Flask API routes for purchase operations; parses input and returns JSON responses.

"""
Purchase Routes

A purchase brings phones into inventory from a supplier. Any amount paid
up front is recorded as a payment; later payments go through
/api/payments (target PURCHASE or SUPPLIER).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import purchase_service
from ..services.payment_service import PaymentError
from ..validation import ValidationError, ConflictError, NotFoundError, clamp_paging, parse_date


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
def create_purchase_route():
    """
    Create a purchase with its phones.

    Request body:
    {
        "supplier_id": 1,
        "purchase_date": "2026-02-13T00:00:00Z",   (optional)
        "paid_amount": "3000.00",                   (optional)
        "payment_method": "CASH",                   (optional)
        "notes": "...",                             (optional)
        "phones": [
            {"brand": "Apple", "model": "iPhone 14 Pro", "imei": "...",
             "condition": "LIKE_NEW", "purchase_price": "850.00"}
        ]
    }
    """
    try:
        purchase = purchase_service.create_purchase(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"purchase": purchase.to_dict(include_phones=True)}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PaymentError as e:
        return jsonify({"error": str(e), "error_code": e.error_code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
def list_purchases_route():
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    try:
        items, total = purchase_service.list_purchases(
            supplier_id=request.args.get("supplier_id", type=int),
            payment_status=request.args.get("payment_status"),
            search=request.args.get("search"),
            start=parse_date(request.args.get("start"), "start"),
            end=parse_date(request.args.get("end"), "end"),
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [p.to_dict() for p in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
        return jsonify({"purchase": purchase.to_dict(include_phones=True)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@purchases_bp.patch("/<int:purchase_id>")
def update_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.update_purchase(purchase_id, request.get_json(silent=True))
        return jsonify({"purchase": purchase.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.delete("/<int:purchase_id>")
def delete_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.delete_purchase(purchase_id)
        return jsonify({"purchase": purchase.to_dict(), "message": "Purchase deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete purchase")
        return jsonify({"error": "Internal server error"}), 500
