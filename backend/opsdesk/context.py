# Overview: Immutable per-request context threaded from resolution to services.

"""
Request Context

Built once per request (see middleware.build_request_context) and never
mutated afterwards. Views receive it as the `ctx` argument from the
decorators and pass it explicitly to services.

MULTI-TENANT:
- `tenant` is the resolved tenant, or None (fails closed downstream)
- `identity` is the restored session user, re-read from storage this request
- Role and tenant are never taken from client payloads
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class TenantContext:
    id: int
    subdomain: str
    name: str | None = None

    @classmethod
    def from_model(cls, tenant) -> "TenantContext":
        return cls(id=tenant.id, subdomain=tenant.subdomain, name=tenant.name)


@dataclass(frozen=True)
class Identity:
    """Snapshot of the authenticated user taken at session restore."""
    user_id: int
    tenant_id: int | None
    username: str
    role: str
    is_super_admin: bool = False

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(
            user_id=user.id,
            tenant_id=user.tenant_id,
            username=user.username,
            role=user.role,
            is_super_admin=bool(user.is_super_admin),
        )


@dataclass(frozen=True)
class RequestContext:
    tenant: TenantContext | None = None
    # "request" (host or header) or "session" (fallback to the user's tenant)
    tenant_source: str | None = None
    identity: Identity | None = None
    session_id: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    path: str | None = None
    method: str | None = None

    @property
    def tenant_id(self) -> int | None:
        return self.tenant.id if self.tenant else None

    @property
    def user_id(self) -> int | None:
        return self.identity.user_id if self.identity else None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def is_super_admin(self) -> bool:
        return bool(self.identity and self.identity.is_super_admin)

    def with_tenant(self, tenant: TenantContext | None, source: str | None = None) -> "RequestContext":
        return replace(self, tenant=tenant, tenant_source=source if tenant else None)

    @property
    def request_tenant(self) -> TenantContext | None:
        """Tenant named by the request itself, ignoring the session fallback."""
        return self.tenant if self.tenant_source == "request" else None

    def with_identity(self, identity: Identity | None, session_id: int | None) -> "RequestContext":
        return replace(self, identity=identity, session_id=session_id)
