from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class User(db.Model):
    """
    User accounts for authentication and attribution.

    MULTI-TENANT: Users belong to exactly one tenant (tenant_id).
    Username is unique within a tenant, not globally, so two tenants
    may each have a user named "admin".

    role is one of the ranked names in opsdesk.roles.Role.
    is_super_admin bypasses the tenant ownership check.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "username", name="uq_users_tenant_username"),
        db.Index("ix_users_tenant_id", "tenant_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)

    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    full_name = db.Column(db.String(255), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, default="employee")
    active = db.Column(db.Boolean, nullable=False, default=True)
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tenant = db.relationship("Tenant", backref=db.backref("users", lazy=True))

    def to_dict(self) -> dict:
        # Never include password_hash
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "active": self.active,
            "is_super_admin": self.is_super_admin,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionRecord(db.Model):
    """
    Server-side session behind the opaque session cookie.

    The client holds a random token; only its SHA-256 hash is stored.
    tenant_id is carried redundantly for fast tenant-wide invalidation.

    SECURITY NOTES:
    - Absolute and idle timeouts (see Config)
    - Revoked on logout, expiry, idle timeout, or user deactivation
    """
    __tablename__ = "sessions"
    __table_args__ = (
        db.Index("ix_sessions_user_active", "user_id", "revoked"),
        db.Index("ix_sessions_tenant_id", "tenant_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "tenant_id": self.tenant_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "revoked": self.revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
