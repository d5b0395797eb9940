# Overview: Service-layer operations for document numbering; atomic per-tenant counters.

"""
Document numbers look like QUO-2610-00001 / INV-2610-00001:

    {PREFIX}-{YYMM}-{NNNNN}

NNNNN comes from DocumentSequence, one row per (tenant, document type),
incremented with a single conditional UPDATE. Each candidate is checked
against existing documents of the tenant; on collision or lock contention
the allocation is retried per RetryPolicy, then fails with CONFLICT.

Allocation never commits and must be the first write of the enclosing
creation, which commits the counter and the document together.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import Ok, Result, conflict_error, validation_error
from ..extensions import db
from ..models import DocumentSequence, Invoice, Quote
from ..time_utils import utcnow
from .concurrency import RetryPolicy


QUOTE_PREFIX = "QUO"
INVOICE_PREFIX = "INV"

NUMBERED_DOCUMENTS = {
    "quote": (Quote, Quote.quote_number),
    "invoice": (Invoice, Invoice.invoice_number),
}


def default_policy() -> RetryPolicy:
    return RetryPolicy(
        attempts=current_app.config.get("DOCUMENT_NUMBER_ATTEMPTS", 3),
        delay=current_app.config.get("DOCUMENT_NUMBER_RETRY_DELAY", 0.05),
    )


def format_document_number(prefix: str, period: datetime, counter: int) -> str:
    return f"{prefix}-{period:%y%m}-{counter:05d}"


def _increment(tenant_id: int, document_type: str) -> int:
    """Advance the counter and return the value reserved by this call."""
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _read_reserved() -> int:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(tenant_id=tenant_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_reserved()

    # First use for this tenant/type; allocation runs before any other write
    # of the enclosing creation, so rolling back here loses nothing.
    seq = DocumentSequence(tenant_id=tenant_id, document_type=document_type, next_number=2)
    db.session.add(seq)
    try:
        db.session.flush()
        return 1
    except IntegrityError:
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _read_reserved()


def _number_taken(document_type: str, tenant_id: int, candidate: str) -> bool:
    model, column = NUMBERED_DOCUMENTS[document_type]
    return db.session.query(model.id).filter(
        model.tenant_id == tenant_id,
        column == candidate,
    ).first() is not None


def next_document_number(
    *,
    tenant_id: int,
    document_type: str,
    prefix: str,
    policy: RetryPolicy | None = None,
    now: datetime | None = None,
) -> Result[str]:
    """
    Allocate the next unused document number for a tenant and type.

    Returns CONFLICT once the policy's attempts are exhausted. Numbers are
    never reused: a failed attempt still consumes its counter value.
    """
    if not tenant_id:
        return validation_error("tenant_id is required")
    if document_type not in NUMBERED_DOCUMENTS:
        return validation_error(f"Unknown document type '{document_type}'")

    policy = policy or default_policy()
    period = now or utcnow()

    for attempt in range(policy.attempts):
        try:
            counter = _increment(tenant_id, document_type)
        except (OperationalError, StaleDataError):
            db.session.rollback()
            current_app.logger.warning(
                "Document counter contention for tenant %s %s (attempt %s/%s)",
                tenant_id, document_type, attempt + 1, policy.attempts,
            )
        else:
            candidate = format_document_number(prefix, period, counter)
            if not _number_taken(document_type, tenant_id, candidate):
                return Ok(candidate)
            current_app.logger.warning(
                "Document number %s already used in tenant %s (attempt %s/%s)",
                candidate, tenant_id, attempt + 1, policy.attempts,
            )

        if attempt < policy.attempts - 1:
            policy.pause(attempt)

    current_app.logger.error(
        "Could not allocate %s number for tenant %s after %s attempts",
        document_type, tenant_id, policy.attempts,
    )
    return conflict_error("Could not allocate a unique document number. Please retry.")
