"""
Multi-Tenant Service: Tenant Resolution and Validation

WHY: Every request must be scoped to a tenant before it touches
tenant-owned data, and resolution must fail closed.

RESOLUTION ORDER:
1. Subdomain: host contains a dot and is not prefixed "www." -> leading label
2. Explicit numeric identifier (X-Tenant-ID header by default)
First successful lookup wins. Inactive tenants never resolve.

FAILURE POLICY:
Lookup errors are logged and swallowed here. The request continues with no
tenant, and every tenant-scoped operation downstream fails with TENANT.
Public endpoints (health) keep working.

USAGE:
    from opsdesk.services.tenant_service import resolve_tenant

    tenant = resolve_tenant(request.host, request.headers.get("X-Tenant-ID"))
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..context import RequestContext, TenantContext
from ..errors import Ok, Result, tenant_error
from ..extensions import db
from ..models import Tenant


def normalize_host(host: str | None) -> str:
    """Lower-case host with any port and trailing dot removed."""
    normalized = (host or "").split(",")[0].strip().lower()
    if not normalized:
        return ""
    if normalized.startswith("["):
        # IPv6 literal, never a subdomain
        return ""
    if ":" in normalized:
        normalized = normalized.split(":", 1)[0]
    return normalized.rstrip(".")


def extract_subdomain(host: str | None) -> str | None:
    """
    Leading label of a dotted host, or None.

    "acme.opsdesk.app"  -> "acme"
    "www.opsdesk.app"   -> None
    "localhost"         -> None
    """
    normalized = normalize_host(host)
    if not normalized or "." not in normalized:
        return None
    if normalized.startswith("www."):
        return None
    label = normalized.split(".", 1)[0]
    return label or None


def parse_tenant_id(raw) -> int | None:
    """Parse an explicit tenant identifier; anything non-numeric is None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped.isdigit():
            return None
        value = int(stripped)
        return value if value > 0 else None
    return None


def get_tenant(tenant_id: int, *, active_only: bool = True) -> Tenant | None:
    query = db.session.query(Tenant).filter_by(id=tenant_id)
    if active_only:
        query = query.filter(Tenant.active.is_(True))
    return query.first()


def get_tenant_by_subdomain(subdomain: str, *, active_only: bool = True) -> Tenant | None:
    query = db.session.query(Tenant).filter_by(subdomain=subdomain.lower())
    if active_only:
        query = query.filter(Tenant.active.is_(True))
    return query.first()


def resolve_tenant(host: str | None, explicit_tenant_id=None) -> TenantContext | None:
    """
    Resolve the tenant for a request from its host and explicit identifier.

    Never raises: lookup failures are logged and treated as "no tenant".
    """
    lookups = []

    subdomain = extract_subdomain(host)
    if subdomain:
        lookups.append(("subdomain", subdomain, get_tenant_by_subdomain))

    tenant_id = parse_tenant_id(explicit_tenant_id)
    if tenant_id is not None:
        lookups.append(("identifier", tenant_id, get_tenant))

    for source, key, lookup in lookups:
        try:
            tenant = lookup(key)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.warning(
                "Tenant lookup by %s %r failed; continuing without tenant", source, key,
                exc_info=True,
            )
            continue
        if tenant is not None:
            current_app.logger.debug("Resolved tenant %s from %s", tenant.id, source)
            return TenantContext.from_model(tenant)

    return None


def require_tenant(ctx: RequestContext) -> Result[TenantContext]:
    """Fail closed when the request carries no tenant context."""
    if ctx.tenant is None:
        return tenant_error("Tenant context required")
    return Ok(ctx.tenant)


def create_tenant(subdomain: str, name: str | None = None) -> Tenant:
    """Create a tenant. Raises ValueError on a blank or duplicate subdomain."""
    normalized = (subdomain or "").strip().lower()
    if not normalized or "." in normalized:
        raise ValueError("Subdomain must be a single non-empty host label")
    if db.session.query(Tenant).filter_by(subdomain=normalized).first():
        raise ValueError("Subdomain already in use")

    tenant = Tenant(subdomain=normalized, name=name, active=True)
    db.session.add(tenant)
    db.session.commit()
    return tenant
