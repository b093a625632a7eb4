# Overview: Role hierarchy and route access requirements.
# Re-exports all public APIs for short imports.

from .roles import Role, ROLE_HIERARCHY, ALL_ROLES, is_valid_role, role_rank
from .requirements import (
    RouteAuthRequirement,
    ROUTE_REQUIREMENTS,
    get_requirement,
)

__all__ = [
    "Role",
    "ROLE_HIERARCHY",
    "ALL_ROLES",
    "is_valid_role",
    "role_rank",
    "RouteAuthRequirement",
    "ROUTE_REQUIREMENTS",
    "get_requirement",
]
