# Overview: Flask API routes for repair operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import repair_service
from ..validation import ValidationError, ConflictError, NotFoundError, clamp_paging, parse_date


repairs_bp = Blueprint("repairs", __name__, url_prefix="/api/repairs")


@repairs_bp.post("")
def create_repair_route():
    """
    Open a repair.

    Request body: {"phone_id": 1, "description": "...", "repair_cost": "40.00",
                   "status": "PENDING" | "IN_PROGRESS", "start_date": "...", "notes": "..."}
    """
    try:
        repair = repair_service.create_repair(request.get_json(silent=True))
        return jsonify({"repair": repair.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create repair")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.get("")
def list_repairs_route():
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    try:
        items, total = repair_service.list_repairs(
            status=request.args.get("status"),
            phone_id=request.args.get("phone_id", type=int),
            search=request.args.get("search"),
            start=parse_date(request.args.get("start"), "start"),
            end=parse_date(request.args.get("end"), "end"),
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "items": [r.to_dict() for r in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@repairs_bp.get("/phone/<int:phone_id>")
def get_phone_repairs_route(phone_id: int):
    try:
        repairs = repair_service.get_phone_repairs(phone_id)
        return jsonify({"items": [r.to_dict() for r in repairs], "count": len(repairs)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@repairs_bp.get("/<int:repair_id>")
def get_repair_route(repair_id: int):
    try:
        return jsonify({"repair": repair_service.get_repair(repair_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@repairs_bp.patch("/<int:repair_id>")
def update_repair_route(repair_id: int):
    """
    Update a repair. Setting status COMPLETED adds the repair cost to the
    phone's total cost and marks it READY_FOR_SALE.
    """
    try:
        repair = repair_service.update_repair(repair_id, request.get_json(silent=True))
        return jsonify({"repair": repair.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update repair")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.delete("/<int:repair_id>")
def delete_repair_route(repair_id: int):
    try:
        repair = repair_service.delete_repair(repair_id)
        return jsonify({"repair": repair.to_dict(), "message": "Repair deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete repair")
        return jsonify({"error": "Internal server error"}), 500
