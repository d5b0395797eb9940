# Overview: Service-layer operations for the security audit trail.

"""
Security Event Logging with Multi-Tenant Support

WHY: Denied logins, role checks and cross-tenant attempts must leave an
audit trail. Events carry tenant_id for tenant-scoped monitoring.

DESIGN PRINCIPLES:
- Log denials only: successful checks are not logged
- Append-only: events are never updated
"""

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - LOGIN_FAILED
    - LOGIN_SUCCEEDED
    - LOGOUT
    - ROLE_DENIED
    - CROSS_TENANT_ACCESS_DENIED
    - TENANT_MISMATCH
    """
    event = SecurityEvent(
        user_id=user_id,
        tenant_id=tenant_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(event)
    db.session.commit()
    return event


def log_denial(ctx, event_type: str, reason: str) -> SecurityEvent:
    """Record a denied request using the request context for attribution."""
    return log_security_event(
        user_id=ctx.user_id,
        event_type=event_type,
        success=False,
        resource=ctx.path,
        action=ctx.method,
        reason=reason,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
        tenant_id=ctx.tenant_id,
    )


def cleanup_security_events(retention_days: int = 90) -> int:
    """Delete security events older than the retention window."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
