# Overview: Service-layer operations for tenant user administration.

"""
User Administration

Actors may only grant roles at or below their own rank, and may only
modify users ranked at or below themselves. Deactivating a user revokes
every session they hold, so the change applies on their next request.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..context import RequestContext
from ..errors import (
    Ok,
    Result,
    authorization_error,
    classify_exception,
    conflict_error,
    not_found_error,
    validation_error,
)
from ..extensions import db
from ..models import User
from ..roles import has_rank, parse_role
from ..validation import ValidationError, optional_text, require_object
from .access_service import check_ownership
from .auth_service import create_user
from .session_service import revoke_all_user_sessions
from .tenant_service import require_tenant


def list_users(ctx: RequestContext, *, include_inactive: bool = True) -> Result[list[User]]:
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant
    query = db.session.query(User).filter(User.tenant_id == tenant.value.id)
    if not include_inactive:
        query = query.filter(User.active.is_(True))
    return Ok(query.order_by(User.username).all())


def _grantable(ctx: RequestContext, role_name) -> Result:
    role = parse_role(role_name)
    if role is None:
        return validation_error(f"Unknown role '{role_name}'", {"role": "unknown"})
    if not has_rank(ctx.identity.role, role):
        return authorization_error(
            "Cannot grant a role above your own",
            {"role": role.value, "actual": ctx.identity.role},
        )
    return Ok(role)


def add_user(ctx: RequestContext, payload) -> Result[User]:
    """Create a user in the request's tenant. Tenant is never taken from the payload."""
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant

    try:
        payload = require_object(payload)
        email = optional_text("email", payload.get("email"), max_length=255)
        full_name = optional_text("full_name", payload.get("full_name"), max_length=255)
    except ValidationError as exc:
        return validation_error(exc.message, {exc.field: exc.message})

    role = payload.get("role")
    if role is not None:
        granted = _grantable(ctx, role)
        if not granted.is_ok:
            return granted
        role = granted.value.value

    result = create_user(
        tenant.value.id,
        payload.get("username"),
        payload.get("password"),
        role,
        email=email,
        full_name=full_name,
    )
    if result.is_ok:
        current_app.logger.info(
            "User %s created in tenant %s by user %s",
            result.value.id, tenant.value.id, ctx.user_id,
        )
    return result


def update_user(ctx: RequestContext, user_id: int, payload) -> Result[User]:
    """Change a user's role and/or active flag."""
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant

    user = db.session.get(User, user_id)
    if user is None:
        return not_found_error("User not found")
    owned = check_ownership(ctx, user)
    if not owned.is_ok:
        return owned

    if not has_rank(ctx.identity.role, user.role):
        return authorization_error("Cannot modify a user ranked above you")

    try:
        payload = require_object(payload)
    except ValidationError as exc:
        return validation_error(exc.message, {exc.field: exc.message})

    if "role" in payload:
        granted = _grantable(ctx, payload["role"])
        if not granted.is_ok:
            return granted
        user.role = granted.value.value

    deactivated = False
    if "active" in payload:
        active = payload["active"]
        if not isinstance(active, bool):
            db.session.rollback()
            return validation_error("active must be a boolean", {"active": "must be a boolean"})
        if not active and user.id == ctx.user_id:
            db.session.rollback()
            return conflict_error("You cannot deactivate your own account")
        deactivated = user.active and not active
        user.active = active

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("User update failed", exc_info=True)
        return classify_exception(exc)

    if deactivated:
        revoked = revoke_all_user_sessions(user.id, reason="User account deactivated")
        current_app.logger.info("User %s deactivated; %s sessions revoked", user.id, revoked)
    return Ok(user)
