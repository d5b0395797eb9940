# Overview: Flask API routes for quote operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import current_publisher, require_auth, require_role, service_error
from ..roles import Role
from ..services import quote_service
from ..services.invoice_service import invoice_payload
from ..services.quote_service import quote_payload


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


@quotes_bp.post("")
@require_auth
@require_role(Role.EMPLOYEE)
def create_quote_route(ctx):
    """Create a quote. Totals are computed server-side from items."""
    result = quote_service.create_quote(
        ctx,
        request.get_json(silent=True),
        publisher=current_publisher(),
    )
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify(quote_payload(result.value)), 201


@quotes_bp.get("")
@require_auth
@require_role(Role.GUEST)
def list_quotes_route(ctx):
    result = quote_service.list_quotes(ctx, request.args.get("status"))
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify({"quotes": [quote.to_dict() for quote in result.value]}), 200


@quotes_bp.get("/<int:quote_id>")
@require_auth
@require_role(Role.GUEST)
def get_quote_route(quote_id: int, ctx):
    result = quote_service.get_quote(ctx, quote_id)
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify(quote_payload(result.value)), 200


@quotes_bp.patch("/<int:quote_id>/status")
@require_auth
@require_role(Role.EMPLOYEE)
def change_quote_status_route(quote_id: int, ctx):
    """
    Body: {"status": "..."}

    400 invalid status, 403 foreign quote, 404 missing, 409 illegal edge.
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status") if isinstance(data, dict) else None
    result = quote_service.change_quote_status(ctx, quote_id, status, publisher=current_publisher())
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify({"quote": result.value.to_dict()}), 200


@quotes_bp.delete("/<int:quote_id>")
@require_auth
@require_role(Role.MANAGER)
def delete_quote_route(quote_id: int, ctx):
    result = quote_service.delete_quote(ctx, quote_id, publisher=current_publisher())
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify({"success": True, "id": result.value}), 200


@quotes_bp.post("/<int:quote_id>/convert-to-invoice")
@require_auth
@require_role(Role.MANAGER)
def convert_quote_route(quote_id: int, ctx):
    """Convert a sent or accepted quote into an issued invoice."""
    result = quote_service.convert_to_invoice(ctx, quote_id, publisher=current_publisher())
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify(invoice_payload(result.value)), 201
