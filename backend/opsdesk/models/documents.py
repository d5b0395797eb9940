from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


def _money(value) -> float:
    return float(value) if value is not None else 0.0


class Quote(db.Model):
    """
    Customer quote.

    MULTI-TENANT: quote_number is unique within a tenant, not globally.

    STATE MACHINE (see services/lifecycle_service.py):
        draft -> sent -> accepted | rejected
        sent | accepted -> converted (only via conversion)

    Totals are always computed server-side from the items.
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "quote_number", name="uq_quotes_tenant_number"),
        db.Index("ix_quotes_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    quote_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, nullable=True, index=True)
    project_id = db.Column(db.Integer, nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="draft")

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    terms = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "QuoteItem",
        backref="quote",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="QuoteItem.id",
    )

    def __repr__(self) -> str:
        return f"<Quote id={self.id} number={self.quote_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "quote_number": self.quote_number,
            "customer_id": self.customer_id,
            "project_id": self.project_id,
            "status": self.status,
            "subtotal": _money(self.subtotal),
            "tax": _money(self.tax),
            "discount": _money(self.discount),
            "total": _money(self.total),
            "notes": self.notes,
            "terms": self.terms,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class QuoteItem(db.Model):
    """Line item owned exclusively by its Quote. total = quantity x unit_price."""
    __tablename__ = "quote_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False, default="")
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "description": self.description,
            "quantity": float(self.quantity),
            "unit_price": _money(self.unit_price),
            "total": _money(self.total),
        }


class Invoice(db.Model):
    """
    Customer invoice.

    When created by conversion, totals and items are a snapshot of the
    originating quote at conversion time; later changes never propagate.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
        db.Index("ix_invoices_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    project_id = db.Column(db.Integer, nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="draft")
    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    terms = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    quote = db.relationship("Quote", backref=db.backref("invoices", lazy=True))

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "invoice_number": self.invoice_number,
            "quote_id": self.quote_id,
            "customer_id": self.customer_id,
            "project_id": self.project_id,
            "status": self.status,
            "issue_date": to_iso_date(self.issue_date),
            "due_date": to_iso_date(self.due_date),
            "subtotal": _money(self.subtotal),
            "tax": _money(self.tax),
            "discount": _money(self.discount),
            "total": _money(self.total),
            "notes": self.notes,
            "terms": self.terms,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False, default="")
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "description": self.description,
            "quantity": float(self.quantity),
            "unit_price": _money(self.unit_price),
            "total": _money(self.total),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-tenant document sequences.

    WHY: Prevent race conditions when generating quote and invoice numbers.
    next_number is incremented with a single conditional UPDATE.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "document_type", name="uq_doc_sequences_tenant_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
