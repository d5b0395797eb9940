# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

MULTI-TENANT: Users belong to exactly one tenant (tenant_id).
Username uniqueness is tenant-scoped, so every credential check is
scoped by (username, tenant_id).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 10)
- Failed logins return one generic message whatever the cause
- A dummy bcrypt comparison runs when the username does not exist, so
  response timing does not reveal which usernames exist
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..context import RequestContext
from ..errors import (
    Ok,
    Result,
    authentication_error,
    conflict_error,
    validation_error,
)
from ..extensions import db
from ..models import Tenant, User
from ..roles import DEFAULT_ROLE, parse_role
from ..time_utils import utcnow
from .tenant_service import parse_tenant_id


INVALID_CREDENTIALS = "Invalid credentials"

_dummy_hashes: dict[int, bytes] = {}


def _rounds(rounds: int | None = None) -> int:
    if rounds is not None:
        return rounds
    return int(current_app.config.get("BCRYPT_ROUNDS", 10))


def validate_password_strength(password: str) -> list[str]:
    """
    Return the list of unmet password requirements (empty when acceptable).

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    problems = []
    if not isinstance(password, str) or len(password) < 8:
        problems.append("Password must be at least 8 characters long")
        return problems
    if not re.search(r"[A-Za-z]", password):
        problems.append("Password must contain at least one letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one digit")
    return problems


def hash_password(password: str, *, rounds: int | None = None) -> str:
    """Hash password using bcrypt with the configured cost factor."""
    salt = bcrypt.gensalt(rounds=_rounds(rounds))
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. A malformed stored hash
    is treated as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _burn_comparison(password: str) -> None:
    rounds = _rounds()
    dummy = _dummy_hashes.get(rounds)
    if dummy is None:
        dummy = bcrypt.hashpw(b"opsdesk-dummy-password", bcrypt.gensalt(rounds=rounds))
        _dummy_hashes[rounds] = dummy
    bcrypt.checkpw((password or "").encode("utf-8"), dummy)


def resolve_login_tenant(ctx: RequestContext, raw_tenant_id) -> Result[int]:
    """
    Tenant for a login attempt: the tenant named by the request host or
    header, else the payload's tenantId. A tenant inherited from an existing
    session cookie is ignored. Never defaults to any tenant.
    """
    if ctx.request_tenant is not None:
        return Ok(ctx.request_tenant.id)

    if raw_tenant_id is None or raw_tenant_id == "":
        return authentication_error("Tenant information required", status=400)

    tenant_id = parse_tenant_id(raw_tenant_id)
    if tenant_id is None:
        return authentication_error("Invalid tenant ID", status=400)
    return Ok(tenant_id)


def authenticate(username: str, password: str, tenant_id: int) -> Result[User]:
    """
    Authenticate user with username and password within one tenant.

    Returns Ok(user) and updates last_login_at on success; otherwise an
    AUTHENTICATION Err with the generic "Invalid credentials" message.
    """
    user = db.session.query(User).filter_by(
        tenant_id=tenant_id,
        username=username,
    ).first()

    if user is None:
        _burn_comparison(password)
        current_app.logger.info("Login failed for tenant %s: unknown user", tenant_id)
        return authentication_error(INVALID_CREDENTIALS)

    if not verify_password(password, user.password_hash):
        current_app.logger.info("Login failed for tenant %s user %s: bad password", tenant_id, user.id)
        return authentication_error(INVALID_CREDENTIALS)

    if not user.active:
        current_app.logger.info("Login failed for tenant %s user %s: inactive", tenant_id, user.id)
        return authentication_error(INVALID_CREDENTIALS)

    tenant = db.session.get(Tenant, user.tenant_id)
    if tenant is None or not tenant.active:
        current_app.logger.info("Login failed for tenant %s: tenant inactive", tenant_id)
        return authentication_error(INVALID_CREDENTIALS)

    user.last_login_at = utcnow()
    db.session.commit()
    return Ok(user)


def create_user(
    tenant_id: int,
    username: str,
    password: str,
    role: str | None = None,
    *,
    email: str | None = None,
    full_name: str | None = None,
    is_super_admin: bool = False,
) -> Result[User]:
    """
    Create new user with bcrypt password hashing.

    MULTI-TENANT: username uniqueness is checked within the tenant only.
    Returns VALIDATION for bad input, CONFLICT for a duplicate username.
    """
    username = (username or "").strip()
    if not username:
        return validation_error("username is required", {"username": "required"})

    problems = validate_password_strength(password)
    if problems:
        return validation_error(problems[0], {"password": problems})

    parsed_role = parse_role(role) if role is not None else DEFAULT_ROLE
    if parsed_role is None:
        return validation_error(f"Unknown role '{role}'", {"role": "unknown"})

    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        return validation_error("Tenant not found", {"tenant_id": "not found"})
    if not tenant.active:
        return validation_error("Tenant is not active", {"tenant_id": "inactive"})

    existing = db.session.query(User).filter_by(tenant_id=tenant_id, username=username).first()
    if existing:
        return conflict_error("Username already exists in this tenant")

    user = User(
        tenant_id=tenant_id,
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=parsed_role.value,
        active=True,
        is_super_admin=is_super_admin,
    )
    db.session.add(user)
    db.session.commit()
    return Ok(user)
