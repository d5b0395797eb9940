# Overview: Service-layer operations for quotes; creation, status changes and conversion to invoices.

"""
Quote Service

MULTI-TENANT: every operation is scoped by ctx.tenant_id. Resources are
loaded by id first, then ownership-checked, so a foreign quote yields
AUTHORIZATION rather than NOT_FOUND.

CONVERSION:
Allocating the invoice number, claiming the quote with a conditional
status UPDATE, and inserting the invoice run in one transaction. Two
concurrent conversions cannot both claim the quote: the loser sees
rowcount 0 and gets CONFLICT, and no second invoice is written.

Events are published only after commit.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..context import RequestContext
from ..errors import (
    Ok,
    Result,
    classify_exception,
    conflict_error,
    not_found_error,
)
from ..extensions import db
from ..models import Invoice, InvoiceItem, Quote, QuoteItem
from ..time_utils import utcnow
from .access_service import check_ownership
from .concurrency import RetryPolicy, lock_for_update
from .document_service import INVOICE_PREFIX, QUOTE_PREFIX, next_document_number
from .event_service import EventPublisher, publish_safely
from .lifecycle_service import (
    INVOICE_CONVERTED_STATUS,
    QUOTE_CONVERTIBLE_STATUSES,
    QUOTE_INITIAL_STATUSES,
    QUOTE_STATUSES,
    can_convert_quote,
    can_delete_quote,
    check_quote_transition,
    validate_status,
)
from .tenant_service import require_tenant
from .totals_service import parse_document_input


def quote_payload(quote: Quote) -> dict:
    return {"quote": quote.to_dict(), "items": [item.to_dict() for item in quote.items]}


def _storage_failure(exc: SQLAlchemyError, action: str):
    db.session.rollback()
    current_app.logger.error("Quote %s failed: %s", action, exc.__class__.__name__, exc_info=True)
    return classify_exception(exc)


def create_quote(
    ctx: RequestContext,
    payload,
    *,
    publisher: EventPublisher | None = None,
    policy: RetryPolicy | None = None,
) -> Result[Quote]:
    """
    Create a quote with server-computed totals.

    Starts in draft unless payload status is draft or sent.
    """
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant
    tenant_id = tenant.value.id

    parsed = parse_document_input(payload)
    if not parsed.is_ok:
        return parsed
    data = parsed.value

    status = "draft"
    if isinstance(payload, dict) and payload.get("status") is not None:
        checked = validate_status(payload.get("status"), sorted(QUOTE_INITIAL_STATUSES))
        if not checked.is_ok:
            return checked
        status = checked.value

    try:
        number = next_document_number(
            tenant_id=tenant_id,
            document_type="quote",
            prefix=QUOTE_PREFIX,
            policy=policy,
        )
        if not number.is_ok:
            db.session.rollback()
            return number

        quote = Quote(
            tenant_id=tenant_id,
            quote_number=number.value,
            customer_id=data.customer_id,
            project_id=data.project_id,
            status=status,
            subtotal=data.totals.subtotal,
            tax=data.totals.tax,
            discount=data.totals.discount,
            total=data.totals.total,
            notes=data.notes,
            terms=data.terms,
            created_by_user_id=ctx.user_id,
        )
        quote.items = [
            QuoteItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
            )
            for item in data.items
        ]
        db.session.add(quote)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _storage_failure(exc, "create")

    current_app.logger.info("Quote %s created in tenant %s", quote.quote_number, tenant_id)
    publish_safely(publisher, "quote:created", quote_payload(quote), tenant_id, current_app.logger)
    return Ok(quote)


def get_quote(ctx: RequestContext, quote_id: int) -> Result[Quote]:
    """Load a quote by id, then check the request's tenant owns it."""
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant

    quote = db.session.get(Quote, quote_id)
    if quote is None:
        return not_found_error("Quote not found")
    return check_ownership(ctx, quote)


def list_quotes(ctx: RequestContext, status: str | None = None) -> Result[list[Quote]]:
    tenant = require_tenant(ctx)
    if not tenant.is_ok:
        return tenant

    query = db.session.query(Quote).filter(Quote.tenant_id == tenant.value.id)
    if status:
        checked = validate_status(status, QUOTE_STATUSES)
        if not checked.is_ok:
            return checked
        query = query.filter(Quote.status == status)
    return Ok(query.order_by(Quote.created_at.desc(), Quote.id.desc()).all())


def change_quote_status(
    ctx: RequestContext,
    quote_id: int,
    status,
    *,
    publisher: EventPublisher | None = None,
) -> Result[Quote]:
    """
    Move a quote along its status edges.

    Re-applying the current status succeeds without writing or publishing.
    """
    loaded = get_quote(ctx, quote_id)
    if not loaded.is_ok:
        return loaded
    quote = loaded.value

    checked = check_quote_transition(quote.status, status)
    if not checked.is_ok:
        return checked
    if checked.value == quote.status:
        return Ok(quote)

    previous = quote.status
    try:
        quote.status = checked.value
        db.session.commit()
    except SQLAlchemyError as exc:
        return _storage_failure(exc, "status change")

    current_app.logger.info("Quote %s status %s -> %s", quote.quote_number, previous, quote.status)
    publish_safely(
        publisher,
        "quote:updated",
        {"quote": quote.to_dict(), "previous_status": previous},
        quote.tenant_id,
        current_app.logger,
    )
    return Ok(quote)


def delete_quote(
    ctx: RequestContext,
    quote_id: int,
    *,
    publisher: EventPublisher | None = None,
) -> Result[int]:
    loaded = get_quote(ctx, quote_id)
    if not loaded.is_ok:
        return loaded
    quote = loaded.value

    if not can_delete_quote(quote.status):
        return conflict_error(
            f"Cannot delete a quote in status {quote.status}",
            {"status": quote.status},
        )

    tenant_id = quote.tenant_id
    number = quote.quote_number
    try:
        db.session.delete(quote)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _storage_failure(exc, "delete")

    current_app.logger.info("Quote %s deleted from tenant %s", number, tenant_id)
    publish_safely(publisher, "quote:deleted", {"id": quote_id, "quote_number": number}, tenant_id, current_app.logger)
    return Ok(quote_id)


def convert_to_invoice(
    ctx: RequestContext,
    quote_id: int,
    *,
    publisher: EventPublisher | None = None,
    policy: RetryPolicy | None = None,
) -> Result[Invoice]:
    """
    Convert a sent or accepted quote into an issued invoice.

    The invoice holds a snapshot of the quote's totals and items.
    A second conversion of the same quote is CONFLICT.
    """
    loaded = get_quote(ctx, quote_id)
    if not loaded.is_ok:
        return loaded
    quote = loaded.value
    tenant_id = quote.tenant_id

    if not can_convert_quote(quote.status):
        if quote.status == "converted":
            return conflict_error("Quote has already been converted")
        return conflict_error(
            f"Only sent or accepted quotes can be converted (status is {quote.status})",
            {"status": quote.status},
        )

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

        claimed = db.session.execute(
            update(Quote)
            .where(
                Quote.id == quote_id,
                Quote.tenant_id == tenant_id,
                Quote.status.in_(sorted(QUOTE_CONVERTIBLE_STATUSES)),
            )
            .values(status="converted")
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            db.session.rollback()
            current_app.logger.warning("Quote %s conversion lost a concurrent claim", quote_id)
            return conflict_error("Quote has already been converted")

        snapshot = lock_for_update(
            db.session.query(Quote).filter(Quote.id == quote_id)
        ).populate_existing().one()

        issue_date = utcnow().date()
        due_days = current_app.config.get("INVOICE_DUE_DAYS", 30)
        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_number=number.value,
            quote_id=snapshot.id,
            customer_id=snapshot.customer_id,
            project_id=snapshot.project_id,
            status=INVOICE_CONVERTED_STATUS,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=due_days),
            subtotal=snapshot.subtotal,
            tax=snapshot.tax,
            discount=snapshot.discount,
            total=snapshot.total,
            notes=snapshot.notes,
            terms=snapshot.terms,
            created_by_user_id=ctx.user_id,
        )
        invoice.items = [
            InvoiceItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
            )
            for item in snapshot.items
        ]
        db.session.add(invoice)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _storage_failure(exc, "conversion")

    current_app.logger.info(
        "Quote %s converted to invoice %s in tenant %s",
        snapshot.quote_number, invoice.invoice_number, tenant_id,
    )
    payload = {"invoice": invoice.to_dict(), "items": [item.to_dict() for item in invoice.items]}
    publish_safely(publisher, "invoice:created", payload, tenant_id, current_app.logger)
    return Ok(invoice)
