# Overview: Per-request context construction: tenant resolution and session restore.

"""
Runs once per request (before_request) and stores the frozen
RequestContext on flask.g. Views never read it directly; the decorators
hand it to them as the `ctx` argument.

ORDER:
1. Resolve tenant from host / tenant header (never raises)
2. Restore session from the cookie (re-reads the user); a storage failure
   leaves the request unauthenticated
3. No tenant from the request -> use the session user's tenant (source "session")
4. Request tenant differs from the session user's tenant -> the identity is
   dropped and the mismatch is remembered; protected routes answer 403
   unless the user is a super-admin
"""

from __future__ import annotations

from flask import Flask, current_app, g, request
from sqlalchemy.exc import SQLAlchemyError

from .context import RequestContext, TenantContext
from .extensions import db
from .services.session_service import restore_session
from .services.tenant_service import get_tenant, resolve_tenant


def session_token() -> str | None:
    return request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])


def build_request_context() -> RequestContext:
    ctx = RequestContext(
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        path=request.path,
        method=request.method,
    )
    g.tenant_mismatch = False

    tenant = resolve_tenant(
        request.host,
        request.headers.get(current_app.config["TENANT_HEADER"]),
    )
    ctx = ctx.with_tenant(tenant, "request")

    try:
        restored = restore_session(session_token())
        user_tenant = None
        if restored is not None and tenant is None:
            user_tenant = get_tenant(restored.identity.tenant_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Session restore failed; continuing unauthenticated", exc_info=True)
        return ctx
    if restored is None:
        return ctx

    identity = restored.identity
    if tenant is None:
        if user_tenant is not None:
            ctx = ctx.with_tenant(TenantContext.from_model(user_tenant), "session")
    elif tenant.id != identity.tenant_id and not identity.is_super_admin:
        current_app.logger.warning(
            "Session user %s (tenant %s) used on tenant %s",
            identity.user_id, identity.tenant_id, tenant.id,
        )
        g.tenant_mismatch = True
        g.mismatched_identity = identity
        return ctx

    return ctx.with_identity(identity, restored.session_id)


def current_context() -> RequestContext:
    ctx = g.get("request_context")
    if ctx is None:
        ctx = build_request_context()
        g.request_context = ctx
    return ctx


def register_request_hooks(app: Flask) -> None:
    @app.before_request
    def attach_request_context():
        g.request_context = build_request_context()
