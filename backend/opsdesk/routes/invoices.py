# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import current_publisher, require_auth, require_role, service_error
from ..roles import Role
from ..services import invoice_service
from ..services.invoice_service import invoice_payload


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("")
@require_auth
@require_role(Role.MANAGER)
def create_invoice_route(ctx):
    result = invoice_service.create_invoice(
        ctx,
        request.get_json(silent=True),
        publisher=current_publisher(),
    )
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify(invoice_payload(result.value)), 201


@invoices_bp.get("")
@require_auth
@require_role(Role.GUEST)
def list_invoices_route(ctx):
    result = invoice_service.list_invoices(ctx, request.args.get("status"))
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify({"invoices": [invoice.to_dict() for invoice in result.value]}), 200


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_role(Role.GUEST)
def get_invoice_route(invoice_id: int, ctx):
    result = invoice_service.get_invoice(ctx, invoice_id)
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify(invoice_payload(result.value)), 200


@invoices_bp.patch("/<int:invoice_id>/status")
@require_auth
@require_role(Role.MANAGER)
def change_invoice_status_route(invoice_id: int, ctx):
    data = request.get_json(silent=True) or {}
    status = data.get("status") if isinstance(data, dict) else None
    result = invoice_service.change_invoice_status(ctx, invoice_id, status, publisher=current_publisher())
    if not result.is_ok:
        return service_error(ctx, result)
    return jsonify({"invoice": result.value.to_dict()}), 200
