from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class Tenant(db.Model):
    """
    Multi-tenant root: every business entity belongs to exactly one Tenant.

    WHY: Shared-database multi-tenancy with strict isolation.
    No data may cross tenant boundaries.

    DESIGN:
    - subdomain is the leading host label used by the tenant resolver
    - Inactive tenants never resolve and cannot log in
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    subdomain = db.Column(db.String(63), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=True)

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} subdomain={self.subdomain!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subdomain": self.subdomain,
            "name": self.name,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
