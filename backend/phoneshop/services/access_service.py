# Overview: Service-layer access decisions; pure role-hierarchy evaluation plus denial auditing.

"""
Access Control Evaluator

WHY: One place decides whether a request may proceed. The decision is a
pure function of (route requirement, principal, request path) so it can be
called concurrently without locks and tested without a database.

PRECEDENCE:
1. Public requirement or public path pattern -> ALLOW (no further checks)
2. No principal                               -> UNAUTHENTICATED (401)
3. No required roles                          -> ALLOW
4. rank(principal.role) >= rank(r) for any r  -> ALLOW, else FORBIDDEN (403)

Ranks make requirements upward-permissive: requiring CASHIER admits
CASHIER, MANAGER and OWNER without listing them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import RouteAuthRequirement, role_rank
from phoneshop.time_utils import utcnow


class AccessDecision(Enum):
    ALLOW = "ALLOW"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"


class AccessDeniedError(Exception):
    """Base for access denials. status_code maps to the HTTP response."""
    status_code = 403
    decision = AccessDecision.FORBIDDEN


class UnauthenticatedError(AccessDeniedError):
    """No principal attached to the request: the client must log in."""
    status_code = 401
    decision = AccessDecision.UNAUTHENTICATED


class ForbiddenError(AccessDeniedError):
    """Principal present but its role ranks below every required role."""
    status_code = 403
    decision = AccessDecision.FORBIDDEN


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    user_id: int
    role: str


def compile_public_patterns(patterns: Iterable[str | re.Pattern]) -> tuple[re.Pattern, ...]:
    return tuple(p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns)


def is_public_path(path: str, public_patterns: Iterable[re.Pattern]) -> bool:
    return any(rx.search(path or "") for rx in public_patterns)


def has_required_rank(role: str, required_roles: Iterable[str]) -> bool:
    """True if role ranks at or above at least one of required_roles."""
    caller_rank = role_rank(role)
    if caller_rank == 0:
        return False
    return any(caller_rank >= role_rank(r) for r in required_roles)


def evaluate(
    requirement: RouteAuthRequirement,
    principal: AuthenticatedPrincipal | None,
    path: str = "",
    public_patterns: Iterable[re.Pattern] = (),
) -> AccessDecision:
    if requirement.is_public or is_public_path(path, public_patterns):
        return AccessDecision.ALLOW

    if principal is None:
        return AccessDecision.UNAUTHENTICATED

    if not requirement.required_roles:
        return AccessDecision.ALLOW

    if has_required_rank(principal.role, requirement.required_roles):
        return AccessDecision.ALLOW

    return AccessDecision.FORBIDDEN


def enforce(
    requirement: RouteAuthRequirement,
    principal: AuthenticatedPrincipal | None,
    path: str = "",
    public_patterns: Iterable[re.Pattern] = (),
) -> None:
    """evaluate() that raises UnauthenticatedError / ForbiddenError on denial."""
    decision = evaluate(requirement, principal, path, public_patterns)
    if decision is AccessDecision.UNAUTHENTICATED:
        raise UnauthenticatedError("Authentication required.")
    if decision is AccessDecision.FORBIDDEN:
        raise ForbiddenError("You do not have permission to access this resource.")


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event to the audit trail.

    event_type examples:
    - UNAUTHENTICATED
    - FORBIDDEN
    - LOGIN
    - LOGIN_FAILED
    - LOGOUT
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event
