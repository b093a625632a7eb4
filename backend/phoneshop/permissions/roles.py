# Overview: Role constants and the rank table used for upward-permissive checks.

from types import MappingProxyType


class Role:
    """Roles a user account can hold. A session keeps the role it logged in with."""
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"
    TECHNICIAN = "TECHNICIAN"


# Higher rank = more permissions. Read-only for the life of the process.
ROLE_HIERARCHY = MappingProxyType({
    Role.OWNER: 4,
    Role.MANAGER: 3,
    Role.CASHIER: 2,
    Role.TECHNICIAN: 1,
})

ALL_ROLES = frozenset(ROLE_HIERARCHY)


def is_valid_role(value) -> bool:
    return value in ROLE_HIERARCHY


def role_rank(role: str) -> int:
    """Rank of a role. Unknown roles rank below every real role."""
    return ROLE_HIERARCHY.get(role, 0)
