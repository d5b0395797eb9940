# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/opsdesk/routes/admin.py
"""
Admin routes for tenant user management.

- GET   /api/admin/users          list users of the current tenant
- POST  /api/admin/users          create a user (role capped at the actor's own)
- PATCH /api/admin/users/<id>     change role / active flag

All endpoints require an authenticated admin (or owner).
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role, service_error
from ..roles import Role
from ..services import user_service


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_role(Role.ADMIN)
def list_users_route(ctx):
    """
    Query params:
    - include_inactive: bool (default true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    result = user_service.list_users(ctx, include_inactive=include_inactive)
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify({"users": [user.to_dict() for user in result.value]}), 200


@admin_bp.post("/users")
@require_auth
@require_role(Role.ADMIN)
def create_user_route(ctx):
    result = user_service.add_user(ctx, request.get_json(silent=True))
    if not result.is_ok:
        return service_error(ctx, result, denial_event="ROLE_DENIED")
    return jsonify({"user": result.value.to_dict()}), 201


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_role(Role.ADMIN)
def update_user_route(user_id: int, ctx):
    result = user_service.update_user(ctx, user_id, request.get_json(silent=True))
    if not result.is_ok:
        return service_error(ctx, result, denial_event="ROLE_DENIED")
    return jsonify({"user": result.value.to_dict()}), 200
