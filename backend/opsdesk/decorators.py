# Overview: Request decorators for API routes; authentication, role checks and denial logging.

from functools import wraps

from flask import current_app, g

from .errors import ErrorKind, authentication_error, authorization_error, error_response
from .middleware import current_context
from .roles import Role
from .services import access_service
from .services.security_service import log_denial, log_security_event


def current_publisher():
    return current_app.extensions["opsdesk.publisher"]


def require_auth(f):
    """
    Require an authenticated session and pass the request context as `ctx`.

    SECURITY: Returns
    - 403 if the session belongs to a different tenant than the request
    - 401 if there is no valid session
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = current_context()

        if g.get("tenant_mismatch"):
            identity = g.get("mismatched_identity")
            log_security_event(
                user_id=identity.user_id if identity else None,
                event_type="TENANT_MISMATCH",
                success=False,
                resource=ctx.path,
                action=ctx.method,
                reason=f"Session tenant {identity.tenant_id if identity else None} != request tenant {ctx.tenant_id}",
                ip_address=ctx.ip_address,
                user_agent=ctx.user_agent,
                tenant_id=ctx.tenant_id,
            )
            return error_response(authorization_error("Session does not belong to this tenant"))

        if not ctx.is_authenticated:
            return error_response(authentication_error())

        return f(*args, ctx=ctx, **kwargs)

    return decorated_function


def require_role(required: Role):
    """
    Require the acting user's role to rank at or above `required`.

    Must be applied below @require_auth so `ctx` is already present.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            ctx = kwargs.get("ctx")
            if ctx is None:
                return error_response(authentication_error())

            result = access_service.check_role(ctx, required)
            if not result.is_ok:
                if result.kind == ErrorKind.AUTHORIZATION:
                    log_denial(ctx, "ROLE_DENIED", f"Requires {required.value}, has {ctx.identity.role}")
                return error_response(result)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def service_error(ctx, failure, denial_event: str = "CROSS_TENANT_ACCESS_DENIED"):
    """
    Render a service Err. Authorization denials are audited before responding.
    """
    if failure.kind == ErrorKind.AUTHORIZATION:
        log_denial(ctx, denial_event, failure.error.message)
        current_app.logger.warning(
            "Denied %s %s for user %s in tenant %s: %s",
            ctx.method, ctx.path, ctx.user_id, ctx.tenant_id, failure.error.message,
        )
    return error_response(failure)
