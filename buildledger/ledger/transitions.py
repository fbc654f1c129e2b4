"""Status state machine for quotes and invoices.

Every status change goes through ``transition``; documents are never
mutated in place, a new copy is returned.

Expiry (quotes) and overdue (invoices) are not states: see
``Quote.display_status`` and ``Invoice.display_status``.
"""
from __future__ import annotations

from datetime import date
from typing import Dict, FrozenSet, Optional, Union

from buildledger.ledger.errors import EmptyDocumentError, InvalidTransitionError
from buildledger.ledger.totals import ZERO, refresh_totals, totals_for
from buildledger.models.common import utcnow
from buildledger.models.invoice import Invoice
from buildledger.models.payment import Payment
from buildledger.models.quote import Quote

Document = Union[Quote, Invoice]

QUOTE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"sent"}),
    "sent": frozenset({"accepted", "rejected"}),
    "accepted": frozenset(),
    "rejected": frozenset(),
}

INVOICE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"sent", "paid", "cancelled"}),
    "sent": frozenset({"paid", "cancelled"}),
    # re-marking a paid invoice is a no-op
    "paid": frozenset({"paid"}),
    "cancelled": frozenset(),
}

QUOTE_DELETABLE = frozenset({"draft", "sent"})
INVOICE_DELETABLE = frozenset({"draft", "sent", "cancelled"})

SETTLEMENT_NOTE = "Marked as paid"


def _kind(doc: Document) -> str:
    return "invoice" if isinstance(doc, Invoice) else "quote"


def _table(doc: Document) -> Dict[str, FrozenSet[str]]:
    return INVOICE_TRANSITIONS if isinstance(doc, Invoice) else QUOTE_TRANSITIONS


def allowed_transitions(doc: Document) -> FrozenSet[str]:
    return _table(doc).get(doc.status, frozenset())


def can_transition(doc: Document, target: str) -> bool:
    return target in allowed_transitions(doc)


def ensure_deletable(doc: Document) -> None:
    deletable = INVOICE_DELETABLE if isinstance(doc, Invoice) else QUOTE_DELETABLE
    if doc.status not in deletable:
        raise InvalidTransitionError(_kind(doc), doc.status, "deleted")


def _settle(invoice: Invoice, on: Optional[date]) -> Invoice:
    """Bring amount paid up to the total with a reconciling payment, if short."""
    totals = totals_for(invoice)
    shortfall = totals.balance_due
    payments = list(invoice.payments)
    if shortfall > ZERO:
        payments.append(Payment(
            invoice_id=invoice.id,
            amount=shortfall,
            payment_date=on or date.today(),
            payment_method="other",
            notes=SETTLEMENT_NOTE,
        ))
    return invoice.model_copy(update={"payments": payments})


def transition(doc: Document, target: str, *, on: Optional[date] = None) -> Document:
    """Return ``doc`` moved to ``target``.

    Raises ``InvalidTransitionError`` for an edge missing from the tables and
    ``EmptyDocumentError`` when sending a document without line items.
    Moving an invoice to ``paid`` settles it in full (see ``_settle``).
    """
    kind = _kind(doc)
    if not can_transition(doc, target):
        raise InvalidTransitionError(kind, doc.status, target)
    if target == "sent" and not doc.line_items:
        raise EmptyDocumentError(kind, doc.status)

    now = utcnow()
    out = doc
    update: dict = {"status": target, "updated_at": now}

    if isinstance(doc, Invoice):
        if target == "sent":
            update["issued_at"] = doc.issued_at or now
        elif target == "paid":
            out = _settle(doc, on)
            update["paid_at"] = doc.paid_at or now
    else:
        if target == "sent":
            update["sent_at"] = doc.sent_at or now
        elif target in ("accepted", "rejected"):
            update["decided_at"] = now

    return refresh_totals(out.model_copy(update=update))


def is_settled(invoice: Invoice) -> bool:
    return totals_for(invoice).balance_due <= ZERO
