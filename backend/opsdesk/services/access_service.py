# Overview: Service-layer operations for access; role ranking and tenant ownership checks.

"""
Access Guard

Two checks, both pure predicates over already-resolved context (no I/O):

1. Role check:      rank(acting_role) >= rank(required_role)
2. Ownership check: resource.tenant_id == ctx.tenant_id, or super-admin

A resource with no tenant_id is reachable only by a super-admin.
Denial logging happens in the HTTP layer (decorators / routes).
"""

from __future__ import annotations

from ..context import RequestContext
from ..errors import Ok, Result, authentication_error, authorization_error
from ..roles import has_rank


def role_allows(acting_role, required_role) -> bool:
    return has_rank(acting_role, required_role)


def owns_resource(resource_tenant_id, ctx_tenant_id, is_super_admin: bool = False) -> bool:
    if is_super_admin:
        return True
    if resource_tenant_id is None or ctx_tenant_id is None:
        return False
    return resource_tenant_id == ctx_tenant_id


def check_role(ctx: RequestContext, required_role) -> Result[RequestContext]:
    if not ctx.is_authenticated:
        return authentication_error()
    if not role_allows(ctx.identity.role, required_role):
        return authorization_error(
            "Insufficient role",
            {"required": getattr(required_role, "value", required_role), "actual": ctx.identity.role},
        )
    return Ok(ctx)


def check_ownership(ctx: RequestContext, resource) -> Result:
    """Ok(resource) if the request's tenant owns it, else AUTHORIZATION."""
    if not owns_resource(getattr(resource, "tenant_id", None), ctx.tenant_id, ctx.is_super_admin):
        return authorization_error("Access denied: resource belongs to another tenant")
    return Ok(resource)
