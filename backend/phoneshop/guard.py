# Overview: Application-wide request guard; resolves the caller and applies route access requirements.

"""
Request Guard

Every request passes through one before_request hook instead of per-route
decorators:

1. CORS preflight (OPTIONS) and unrouted URLs pass untouched
2. Bearer token -> session -> AuthenticatedPrincipal (bad token = no principal)
3. request.endpoint -> RouteAuthRequirement (ROUTE_REQUIREMENTS)
4. access_service.enforce() -> 401 / 403 JSON on denial

Denials are appended to security_events and logged through the app logger.
Routes read the caller from g.current_user and g.principal.
"""

from flask import Flask, request, jsonify, g

from .permissions import ROUTE_REQUIREMENTS, get_requirement
from .services import access_service, session_service
from .services.access_service import AccessDeniedError, AuthenticatedPrincipal


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def resolve_principal() -> AuthenticatedPrincipal | None:
    """Attach the session's user to g and return its principal (or None)."""
    g.current_user = None
    g.session_context = None
    g.principal = None

    token = _bearer_token()
    if not token:
        return None

    context = session_service.validate_session(token)
    if not context:
        return None

    g.current_user = context.user
    g.session_context = context
    g.principal = AuthenticatedPrincipal(user_id=context.user.id, role=context.role)
    return g.principal


def unmapped_endpoints(app: Flask, table: dict | None = None) -> list[str]:
    table = ROUTE_REQUIREMENTS if table is None else table
    return sorted({
        rule.endpoint
        for rule in app.url_map.iter_rules()
        if rule.endpoint != "static" and rule.endpoint not in table
    })


def register_access_guard(app: Flask) -> None:
    table = app.config.get("ROUTE_REQUIREMENTS") or ROUTE_REQUIREMENTS
    public_patterns = access_service.compile_public_patterns(app.config.get("PUBLIC_PATH_PATTERNS", ()))

    for endpoint in unmapped_endpoints(app, table):
        app.logger.warning("Endpoint %s has no access requirement; defaulting to authenticated", endpoint)

    @app.before_request
    def enforce_route_requirements():
        if request.method == "OPTIONS":
            return None
        # No matched rule: let Flask answer 404 / 405
        if request.endpoint is None:
            return None

        principal = resolve_principal()
        requirement = get_requirement(request.endpoint, table)

        try:
            access_service.enforce(requirement, principal, request.path, public_patterns)
        except AccessDeniedError as e:
            event_type = e.decision.value
            app.logger.warning(
                "Access denied (%s): %s %s user=%s role=%s required=%s",
                event_type,
                request.method,
                request.path,
                principal.user_id if principal else None,
                principal.role if principal else None,
                requirement.describe(),
            )
            access_service.log_security_event(
                user_id=principal.user_id if principal else None,
                event_type=event_type,
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"Requires {requirement.describe()}",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            return jsonify({"error": str(e), "error_code": event_type}), e.status_code

        return None
