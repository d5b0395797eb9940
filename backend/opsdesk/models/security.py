from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class SecurityEvent(db.Model):
    """
    Security event audit log with tenant context.

    Records failed logins, role denials and cross-tenant denials.

    Append-only: rows are never updated; only the retention cleanup deletes.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_tenant_occurred", "tenant_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable for pre-auth events
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # LOGIN_FAILED, ROLE_DENIED, CROSS_TENANT_ACCESS_DENIED
    resource = db.Column(db.String(128), nullable=True)  # e.g., "/api/quotes/7/status"
    action = db.Column(db.String(64), nullable=True)     # e.g., "PATCH"

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
