# Overview: Flask API routes for user administration; parses input and returns JSON responses.

"""
User Administration Routes

OWNER only. Changing a user's role or deactivating them revokes their
sessions, so the new role applies from their next login.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..validation import ValidationError, ConflictError, NotFoundError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
def list_users_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.post("")
def create_user_route():
    """
    Create a user.

    Request body: {"username": "...", "password": "...", "role": "CASHIER"}
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            data.get("username"),
            data.get("password"),
            data.get("role"),
            bcrypt_rounds=current_app.config.get("BCRYPT_ROUNDS", 12),
        )
        return jsonify({"user": user.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.patch("/<int:user_id>")
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    is_active = data.get("is_active")
    if is_active is not None and not isinstance(is_active, bool):
        return jsonify({"error": "is_active must be a boolean"}), 400

    try:
        user = auth_service.update_user(
            user_id,
            role=data.get("role"),
            is_active=is_active,
            password=data.get("password"),
            bcrypt_rounds=current_app.config.get("BCRYPT_ROUNDS", 12),
        )
        return jsonify({"user": user.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500
