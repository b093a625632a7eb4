# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

"""
Customer Routes

SECURITY (see ROUTE_REQUIREMENTS):
- View operations require CASHIER or above
- Create/update require MANAGER or above
- Delete requires OWNER
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import customer_service
from ..validation import ValidationError, ConflictError, NotFoundError, clamp_paging


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
def create_customer_route():
    """
    Create a customer.

    Request body:
    {
        "full_name": "Jane Doe",
        "phone_number": "+998901234567",
        "address": "...",       (optional)
        "passport_id": "...",   (optional)
        "notes": "..."          (optional)
    }
    """
    try:
        customer = customer_service.create_customer(request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("")
def list_customers_route():
    """
    List customers.

    Query parameters:
    - search: name or phone number substring
    - include_inactive: include deleted customers (default: false)
    - limit / offset: paging (default 50 / 0, limit capped at 500)
    """
    limit, offset = clamp_paging(
        request.args.get("limit", type=int),
        request.args.get("offset", type=int),
    )
    items, total = customer_service.list_customers(
        search=request.args.get("search"),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [c.to_dict() for c in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@customers_bp.get("/search")
def search_customers_route():
    customers = customer_service.search_customers(request.args.get("q", ""))
    return jsonify({"items": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.get("/<int:customer_id>/balance")
def get_customer_balance_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer_balance(customer_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.get("/<int:customer_id>/transactions")
def get_customer_transactions_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer_transactions(customer_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.patch("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(customer_id, request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    """Soft-delete a customer. Refused (409) while the customer owes money."""
    try:
        customer = customer_service.delete_customer(customer_id)
        return jsonify({"customer": customer.to_dict(), "message": "Customer deleted"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500
