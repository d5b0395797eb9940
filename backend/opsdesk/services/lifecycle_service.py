# Overview: Service-layer operations for lifecycle; quote and invoice status state machines.

"""
Document Lifecycle

================================================================================
QUOTES
    draft -> sent -> accepted | rejected
    sent | accepted -> converted      (only through conversion)

    rejected and converted are terminal.
    Only draft and sent quotes may be deleted.

INVOICES
    draft          -> issued | cancelled
    issued         -> sent | partially_paid | paid | overdue | cancelled
    sent           -> partially_paid | paid | overdue | cancelled
    partially_paid -> paid | overdue
    overdue        -> partially_paid | paid | cancelled

    paid and cancelled are terminal.
================================================================================

RULES:
1. Unknown status values are VALIDATION failures
2. Edges outside the maps above are CONFLICT failures
3. Re-applying the current status is a no-op success
"""

from __future__ import annotations

from ..errors import Ok, Result, conflict_error, validation_error


QUOTE_STATUSES = ("draft", "sent", "accepted", "rejected", "converted")
QUOTE_INITIAL_STATUSES = frozenset({"draft", "sent"})
QUOTE_CONVERTIBLE_STATUSES = frozenset({"sent", "accepted"})
QUOTE_DELETABLE_STATUSES = frozenset({"draft", "sent"})

QUOTE_TRANSITIONS = {
    "draft": frozenset({"sent"}),
    "sent": frozenset({"accepted", "rejected"}),
    "accepted": frozenset(),
    "rejected": frozenset(),
    "converted": frozenset(),
}

INVOICE_STATUSES = ("draft", "issued", "sent", "partially_paid", "paid", "overdue", "cancelled")
INVOICE_INITIAL_STATUS = "draft"
INVOICE_CONVERTED_STATUS = "issued"

INVOICE_TRANSITIONS = {
    "draft": frozenset({"issued", "cancelled"}),
    "issued": frozenset({"sent", "partially_paid", "paid", "overdue", "cancelled"}),
    "sent": frozenset({"partially_paid", "paid", "overdue", "cancelled"}),
    "partially_paid": frozenset({"paid", "overdue"}),
    "overdue": frozenset({"partially_paid", "paid", "cancelled"}),
    "paid": frozenset(),
    "cancelled": frozenset(),
}


def validate_status(status, allowed) -> Result[str]:
    if not isinstance(status, str) or status not in allowed:
        return validation_error(
            f"Invalid status '{status}'. Must be one of: {', '.join(allowed)}",
            {"status": "invalid"},
        )
    return Ok(status)


def can_transition(current: str, target: str, transitions: dict) -> bool:
    if current == target:
        return True
    return target in transitions.get(current, frozenset())


def check_quote_transition(current: str, target) -> Result[str]:
    """Validate a requested quote status change through the public status endpoint."""
    result = validate_status(target, QUOTE_STATUSES)
    if not result.is_ok:
        return result
    if target == current:
        return Ok(target)
    if target == "converted":
        return conflict_error("Quotes are converted only through conversion to an invoice")
    if not can_transition(current, target, QUOTE_TRANSITIONS):
        return conflict_error(
            f"Cannot change quote status from {current} to {target}",
            {"from": current, "to": target},
        )
    return Ok(target)


def check_invoice_transition(current: str, target) -> Result[str]:
    result = validate_status(target, INVOICE_STATUSES)
    if not result.is_ok:
        return result
    if not can_transition(current, target, INVOICE_TRANSITIONS):
        return conflict_error(
            f"Cannot change invoice status from {current} to {target}",
            {"from": current, "to": target},
        )
    return Ok(target)


def can_delete_quote(status: str) -> bool:
    return status in QUOTE_DELETABLE_STATUSES


def can_convert_quote(status: str) -> bool:
    return status in QUOTE_CONVERTIBLE_STATUSES
