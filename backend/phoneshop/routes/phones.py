# Overview: Flask API routes for phone inventory; parses input and returns JSON responses.

"""
Phone Inventory Routes

Phones are created through purchases (POST /api/purchases). These routes
cover lookup at the counter (barcode / IMEI scan), history and corrections.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import phone_service
from ..validation import ValidationError, ConflictError, NotFoundError, clamp_paging


phones_bp = Blueprint("phones", __name__, url_prefix="/api/phones")


@phones_bp.get("")
def list_phones_route():
    """
    List phones.

    Query parameters:
    - status, condition: exact match
    - brand, model: substring match
    - search: brand, model, IMEI or barcode substring
    - limit / offset: paging
    """
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    try:
        items, total = phone_service.list_phones(
            status=request.args.get("status"),
            condition=request.args.get("condition"),
            brand=request.args.get("brand"),
            model=request.args.get("model"),
            search=request.args.get("search"),
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


@phones_bp.get("/available")
def list_available_phones_route():
    phones = phone_service.list_available_phones()
    return jsonify({"items": [p.to_dict() for p in phones], "count": len(phones)}), 200


@phones_bp.get("/statistics")
def phone_statistics_route():
    return jsonify(phone_service.get_phone_statistics()), 200


@phones_bp.get("/barcode/<string:barcode>")
def get_phone_by_barcode_route(barcode: str):
    try:
        return jsonify({"phone": phone_service.get_phone_by_barcode(barcode).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@phones_bp.get("/imei/<string:imei>")
def get_phone_by_imei_route(imei: str):
    try:
        return jsonify({"phone": phone_service.get_phone_by_imei(imei).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@phones_bp.get("/<int:phone_id>")
def get_phone_route(phone_id: int):
    try:
        return jsonify({"phone": phone_service.get_phone(phone_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@phones_bp.get("/<int:phone_id>/history")
def get_phone_history_route(phone_id: int):
    try:
        return jsonify(phone_service.get_phone_history(phone_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@phones_bp.patch("/<int:phone_id>")
def update_phone_route(phone_id: int):
    """
    Correct phone details or move it between statuses.

    A SOLD phone can only be moved to RETURNED.
    """
    try:
        phone = phone_service.update_phone(phone_id, request.get_json(silent=True))
        return jsonify({"phone": phone.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update phone")
        return jsonify({"error": "Internal server error"}), 500


@phones_bp.delete("/<int:phone_id>")
def delete_phone_route(phone_id: int):
    try:
        phone = phone_service.delete_phone(phone_id)
        return jsonify({"phone": phone.to_dict(), "message": "Phone deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete phone")
        return jsonify({"error": "Internal server error"}), 500
