# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/phoneshop/routes/auth.py
"""
Authentication API routes

- POST /api/auth/login   (public)  username + password -> bearer token
- POST /api/auth/logout  (auth)    revoke the presented token
- GET  /api/auth/me      (auth)    current user and session role

Users are created by an OWNER via /api/users or the CLI; there is no
self-registration.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.access_service import log_security_event


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    The session captures the user's role at login; a later role change
    revokes existing sessions instead of mutating them.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password)

        if not user:
            log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"Invalid credentials for {str(username)[:64]}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )
        log_security_event(
            user_id=user.id,
            event_type="LOGIN",
            success=True,
            resource=request.path,
            action=request.method,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    WHY: Explicit logout prevents token reuse.
    """
    try:
        token = request.headers.get("Authorization", "").split(" ", 1)[-1]
        session_service.revoke_session(token, reason="User logout")

        log_security_event(
            user_id=g.current_user.id,
            event_type="LOGOUT",
            success=True,
            resource=request.path,
            action=request.method,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
def me_route():
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "role": context.role,
        "session": context.session.to_dict(),
    }), 200
