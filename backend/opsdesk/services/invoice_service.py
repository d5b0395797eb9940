# Overview: Service-layer operations for invoices; direct creation, retrieval and status changes.

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..context import RequestContext
from ..errors import Ok, Result, classify_exception, not_found_error, validation_error
from ..extensions import db
from ..models import Invoice, InvoiceItem
from ..time_utils import utcnow
from ..validation import ValidationError, parse_optional_date, pick
from .access_service import check_ownership
from .concurrency import RetryPolicy
from .document_service import INVOICE_PREFIX, next_document_number
from .event_service import EventPublisher, publish_safely
from .lifecycle_service import (
    INVOICE_INITIAL_STATUS,
    INVOICE_STATUSES,
    check_invoice_transition,
    validate_status,
)
from .tenant_service import require_tenant
from .totals_service import parse_document_input


def invoice_payload(invoice: Invoice) -> dict:
    return {"invoice": invoice.to_dict(), "items": [item.to_dict() for item in invoice.items]}


def _storage_failure(exc: SQLAlchemyError, action: str):
    db.session.rollback()
    current_app.logger.error("Invoice %s failed: %s", action, exc.__class__.__name__, exc_info=True)
    return classify_exception(exc)


def create_invoice(
    ctx: RequestContext,
    payload,
    *,
    publisher: EventPublisher | None = None,
    policy: RetryPolicy | None = None,
) -> Result[Invoice]:
    """
    Create a draft invoice directly from line items.

    issue_date defaults to today, due_date to issue_date + INVOICE_DUE_DAYS.
    """
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant
    tenant_id = tenant.value.id

    parsed = parse_document_input(payload)
    if not parsed.is_ok:
        return parsed
    data = parsed.value
    body = payload or {}

    try:
        issue_date = parse_optional_date("issue_date", pick(body, "issue_date", "issueDate")) or utcnow().date()
        due_date = parse_optional_date("due_date", pick(body, "due_date", "dueDate"))
    except ValidationError as exc:
        return validation_error(exc.message, {exc.field: exc.message})
    if due_date is None:
        due_date = issue_date + timedelta(days=current_app.config.get("INVOICE_DUE_DAYS", 30))
    if due_date < issue_date:
        return validation_error("due_date cannot be before issue_date", {"due_date": "before issue_date"})

    try:
        number = next_document_number(
            tenant_id=tenant_id,
            document_type="invoice",
            prefix=INVOICE_PREFIX,
            policy=policy,
        )
        if not number.is_ok:
            db.session.rollback()
            return number

        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_number=number.value,
            customer_id=data.customer_id,
            project_id=data.project_id,
            status=INVOICE_INITIAL_STATUS,
            issue_date=issue_date,
            due_date=due_date,
            subtotal=data.totals.subtotal,
            tax=data.totals.tax,
            discount=data.totals.discount,
            total=data.totals.total,
            notes=data.notes,
            terms=data.terms,
            created_by_user_id=ctx.user_id,
        )
        invoice.items = [
            InvoiceItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
            )
            for item in data.items
        ]
        db.session.add(invoice)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _storage_failure(exc, "create")

    current_app.logger.info("Invoice %s created in tenant %s", invoice.invoice_number, tenant_id)
    publish_safely(publisher, "invoice:created", invoice_payload(invoice), tenant_id, current_app.logger)
    return Ok(invoice)


def get_invoice(ctx: RequestContext, invoice_id: int) -> Result[Invoice]:
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant

    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        return not_found_error("Invoice not found")
    return check_ownership(ctx, invoice)


def list_invoices(ctx: RequestContext, status: str | None = None) -> Result[list[Invoice]]:
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant

    query = db.session.query(Invoice).filter(Invoice.tenant_id == tenant.value.id)
    if status:
        checked = validate_status(status, INVOICE_STATUSES)
        if not checked.is_ok:
            return checked
        query = query.filter(Invoice.status == status)
    return Ok(query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all())


def change_invoice_status(
    ctx: RequestContext,
    invoice_id: int,
    status,
    *,
    publisher: EventPublisher | None = None,
) -> Result[Invoice]:
    loaded = get_invoice(ctx, invoice_id)
    if not loaded.is_ok:
        return loaded
    invoice = loaded.value

    checked = check_invoice_transition(invoice.status, status)
    if not checked.is_ok:
        return checked
    if checked.value == invoice.status:
        return Ok(invoice)

    previous = invoice.status
    try:
        invoice.status = checked.value
        db.session.commit()
    except SQLAlchemyError as exc:
        return _storage_failure(exc, "status change")

    current_app.logger.info("Invoice %s status %s -> %s", invoice.invoice_number, previous, invoice.status)
    publish_safely(
        publisher,
        "invoice:updated",
        {"invoice": invoice.to_dict(), "previous_status": previous},
        invoice.tenant_id,
        current_app.logger,
    )
    return Ok(invoice)
