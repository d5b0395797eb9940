# Overview: Closed role set and its total-order ranking.

"""
Role Hierarchy

Five fixed roles with a strict ranking. A higher rank implies every
capability of the lower ranks, so authorization is a single comparison:

    rank(acting_role) >= rank(required_role)

Unknown role names rank 0 so a misconfigured role can never pass a check.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    GUEST = "guest"
    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"
    OWNER = "owner"


ROLE_RANKS = {
    Role.GUEST: 20,
    Role.EMPLOYEE: 40,
    Role.MANAGER: 60,
    Role.ADMIN: 80,
    Role.OWNER: 100,
}

DEFAULT_ROLE = Role.EMPLOYEE


def parse_role(name) -> Role | None:
    """Return the Role for a name (case-insensitive), or None if unknown."""
    if isinstance(name, Role):
        return name
    if not isinstance(name, str):
        return None
    try:
        return Role(name.strip().lower())
    except ValueError:
        return None


def rank(name) -> int:
    role = parse_role(name)
    if role is None:
        return 0
    return ROLE_RANKS[role]


def has_rank(acting, required) -> bool:
    """True if `acting` ranks at or above `required`. Unknown required roles rank 0."""
    acting_rank = rank(acting)
    if acting_rank == 0:
        return False
    return acting_rank >= rank(required)
