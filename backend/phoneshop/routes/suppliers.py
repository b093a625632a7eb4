# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY (see ROUTE_REQUIREMENTS):
- List/search/view/balance require CASHIER or above
- Create/update and the transaction history require MANAGER or above
- Delete requires OWNER
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import supplier_service
from ..validation import ValidationError, ConflictError, NotFoundError, clamp_paging


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.post("")
def create_supplier_route():
    try:
        supplier = supplier_service.create_supplier(request.get_json(silent=True))
        return jsonify({"supplier": supplier.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("")
def list_suppliers_route():
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    items, total = supplier_service.list_suppliers(
        search=request.args.get("search"),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [s.to_dict() for s in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@suppliers_bp.get("/search")
def search_suppliers_route():
    suppliers = supplier_service.search_suppliers(request.args.get("q", ""))
    return jsonify({"items": [s.to_dict() for s in suppliers]}), 200


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
        return jsonify({"supplier": supplier.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@suppliers_bp.get("/<int:supplier_id>/balance")
def get_supplier_balance_route(supplier_id: int):
    try:
        return jsonify(supplier_service.get_supplier_balance(supplier_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@suppliers_bp.get("/<int:supplier_id>/transactions")
def get_supplier_transactions_route(supplier_id: int):
    try:
        return jsonify(supplier_service.get_supplier_transactions(supplier_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@suppliers_bp.patch("/<int:supplier_id>")
def update_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.update_supplier(supplier_id, request.get_json(silent=True))
        return jsonify({"supplier": supplier.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
def delete_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.delete_supplier(supplier_id)
        return jsonify({"supplier": supplier.to_dict(), "message": "Supplier deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500
