# Overview: Service-layer operations for line items and document totals.

"""
Line items and totals are always computed server-side.

    item.total = quantity x unit_price        (rounded to cents)
    subtotal   = sum(item.total)
    total      = subtotal + tax - discount

Client-submitted subtotal/total fields are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..errors import Ok, Result, validation_error
from ..validation import (
    ValidationError,
    optional_text,
    parse_decimal,
    parse_optional_decimal,
    parse_optional_int,
    pick,
    require_object,
)


CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


def parse_items(raw_items) -> Result[list[LineItem]]:
    """
    Parse a list of {description, quantity, unit_price|unitPrice}.

    Collects every bad field so the caller sees all problems at once.
    """
    if raw_items is None:
        raw_items = []
    if not isinstance(raw_items, list):
        return validation_error("items must be a list", {"items": "must be a list"})

    items: list[LineItem] = []
    problems: dict[str, str] = {}

    for index, raw in enumerate(raw_items):
        prefix = f"items[{index}]"
        if not isinstance(raw, dict):
            problems[prefix] = "must be an object"
            continue
        try:
            description = optional_text(f"{prefix}.description", raw.get("description")) or ""
            quantity = parse_decimal(f"{prefix}.quantity", raw.get("quantity"), positive=True)
            unit_price = parse_decimal(
                f"{prefix}.unit_price",
                pick(raw, "unit_price", "unitPrice"),
            )
        except ValidationError as exc:
            problems[exc.field] = exc.message
            continue
        items.append(LineItem(
            description=description,
            quantity=quantity,
            unit_price=to_cents(unit_price),
            total=to_cents(quantity * unit_price),
        ))

    if problems:
        return validation_error("Invalid line items", problems)
    return Ok(items)


def compute_totals(items: list[LineItem], tax=None, discount=None) -> Result[Totals]:
    try:
        tax_value = to_cents(parse_optional_decimal("tax", tax))
        discount_value = to_cents(parse_optional_decimal("discount", discount))
    except ValidationError as exc:
        return validation_error(exc.message, {exc.field: exc.message})

    subtotal = to_cents(sum((item.total for item in items), Decimal("0")))
    return Ok(Totals(
        subtotal=subtotal,
        tax=tax_value,
        discount=discount_value,
        total=subtotal + tax_value - discount_value,
    ))


@dataclass(frozen=True)
class DocumentInput:
    items: list[LineItem]
    totals: Totals
    customer_id: int | None
    project_id: int | None
    notes: str | None
    terms: str | None


def parse_document_input(payload) -> Result[DocumentInput]:
    """Shared quote/invoice body: items, tax, discount, links and free text."""
    try:
        payload = require_object(payload)
        customer_id = parse_optional_int("customer_id", pick(payload, "customer_id", "customerId"))
        project_id = parse_optional_int("project_id", pick(payload, "project_id", "projectId"))
        notes = optional_text("notes", payload.get("notes"))
        terms = optional_text("terms", payload.get("terms"))
    except ValidationError as exc:
        return validation_error(exc.message, {exc.field: exc.message})

    items = parse_items(payload.get("items"))
    if not items.is_ok:
        return items

    totals = compute_totals(items.value, payload.get("tax"), payload.get("discount"))
    if not totals.is_ok:
        return totals

    return Ok(DocumentInput(
        items=items.value,
        totals=totals.value,
        customer_id=customer_id,
        project_id=project_id,
        notes=notes,
        terms=terms,
    ))
