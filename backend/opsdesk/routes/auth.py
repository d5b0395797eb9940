# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/opsdesk/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Login is always tenant-scoped (host or header tenant, else payload tenantId)
- A successful login revokes the session of any cookie it replaces
- One generic failure message for every credential problem
- Opaque HttpOnly session cookie; server-side session record
- Failed logins recorded in the security audit trail
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import error_response, validation_error
from ..extensions import db
from ..middleware import current_context, session_token
from ..models import User
from ..services import auth_service, session_service
from ..services.security_service import log_security_event
from ..validation import pick


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _set_session_cookie(response, token: str):
    config = current_app.config
    response.set_cookie(
        config["AUTH_COOKIE_NAME"],
        token,
        max_age=int(config["SESSION_ABSOLUTE_TIMEOUT_HOURS"]) * 3600,
        httponly=True,
        secure=bool(config.get("AUTH_COOKIE_SECURE")),
        samesite="Lax",
        path="/",
    )


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a user within a tenant and start a session.

    Body: {username, password, tenantId?}
    Returns {user, session} and sets the session cookie.
    """
    ctx = current_context()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    tenant = auth_service.resolve_login_tenant(ctx, pick(data, "tenantId", "tenant_id"))
    if not tenant.is_ok:
        current_app.logger.info("Login rejected: %s", tenant.error.message)
        return error_response(tenant)
    tenant_id = tenant.value

    username = data.get("username")
    password = data.get("password")
    if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
        return error_response(validation_error("username and password required"))

    result = auth_service.authenticate(username, password, tenant_id)
    if not result.is_ok:
        log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            resource=ctx.path,
            action=ctx.method,
            reason=f"Failed login for username {username!r}",
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            tenant_id=tenant_id,
        )
        return error_response(result)

    user = result.value
    # A cookie from an earlier login is replaced, so its session ends here
    if session_service.revoke_session(session_token(), reason="Replaced by new login"):
        current_app.logger.info("Previous session replaced by login of user %s", user.id)

    session, token = session_service.create_session(
        user,
        user_agent=ctx.user_agent,
        ip_address=ctx.ip_address,
    )
    current_app.logger.info("User %s logged in to tenant %s", user.id, tenant_id)

    response = jsonify({
        "user": user.to_dict(),
        "session": session.to_dict(),
        "message": "Login successful",
    })
    _set_session_cookie(response, token)
    return response, 200


@auth_bp.post("/logout")
def logout_route():
    """Revoke the current session, if any, and clear the cookie. Always 200."""
    revoked = session_service.revoke_session(session_token(), reason="User logout")
    if revoked:
        ctx = current_context()
        current_app.logger.info("User %s logged out", ctx.user_id)

    response = jsonify({"success": True, "message": "Logged out"})
    response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"], path="/")
    return response, 200


@auth_bp.get("/me")
@require_auth
def me_route(ctx):
    user = db.session.get(User, ctx.user_id)
    return jsonify({
        "user": user.to_dict(),
        "tenant": {
            "id": ctx.tenant.id,
            "subdomain": ctx.tenant.subdomain,
            "name": ctx.tenant.name,
        } if ctx.tenant else None,
    }), 200
