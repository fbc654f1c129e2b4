from datetime import date
from decimal import Decimal

import pytest

from buildledger.ledger.errors import EmptyDocumentError, InvalidTransitionError
from buildledger.ledger.totals import refresh_totals
from buildledger.ledger.transitions import (
    INVOICE_TRANSITIONS,
    QUOTE_TRANSITIONS,
    SETTLEMENT_NOTE,
    allowed_transitions,
    can_transition,
    ensure_deletable,
    is_settled,
    transition,
)
from buildledger.models.invoice import Invoice
from buildledger.models.payment import Payment
from buildledger.models.quote import Quote

from conftest import make_items

QUOTE_TARGETS = ["draft", "sent", "accepted", "rejected", "expired"]
INVOICE_TARGETS = ["draft", "sent", "paid", "cancelled", "overdue"]


@pytest.mark.parametrize("current", list(QUOTE_TRANSITIONS))
@pytest.mark.parametrize("target", QUOTE_TARGETS)
def test_quote_transition_table_is_closed(current, target):
    quote = Quote(status=current, line_items=make_items())
    if target in QUOTE_TRANSITIONS[current]:
        assert transition(quote, target).status == target
    else:
        with pytest.raises(InvalidTransitionError):
            transition(quote, target)


@pytest.mark.parametrize("current", list(INVOICE_TRANSITIONS))
@pytest.mark.parametrize("target", INVOICE_TARGETS)
def test_invoice_transition_table_is_closed(current, target):
    invoice = Invoice(status=current, line_items=make_items())
    if target in INVOICE_TRANSITIONS[current]:
        assert transition(invoice, target).status == target
    else:
        with pytest.raises(InvalidTransitionError):
            transition(invoice, target)


def test_empty_quote_cannot_be_sent():
    with pytest.raises(EmptyDocumentError):
        transition(Quote(status="draft"), "sent")


def test_empty_invoice_cannot_be_sent():
    with pytest.raises(EmptyDocumentError):
        transition(Invoice(status="draft"), "sent")


def test_accepted_quote_cannot_be_rejected():
    quote = Quote(status="accepted", line_items=make_items())
    with pytest.raises(InvalidTransitionError) as exc:
        transition(quote, "rejected")
    assert exc.value.current == "accepted"
    assert exc.value.target == "rejected"


def test_paid_invoice_cannot_go_back_to_sent():
    with pytest.raises(InvalidTransitionError):
        transition(Invoice(status="paid", line_items=make_items()), "sent")


def test_transition_does_not_mutate_input():
    quote = Quote(status="draft", line_items=make_items())
    sent = transition(quote, "sent")
    assert quote.status == "draft"
    assert quote.sent_at is None
    assert sent.sent_at is not None


def test_quote_decision_sets_decided_at():
    quote = transition(Quote(status="sent", line_items=make_items()), "accepted")
    assert quote.decided_at is not None


def test_invoice_sent_sets_issued_at():
    invoice = transition(Invoice(status="draft", line_items=make_items()), "sent")
    assert invoice.issued_at is not None


def test_mark_paid_adds_reconciling_payment():
    invoice = refresh_totals(Invoice(status="sent", line_items=make_items(), tax_rate=Decimal("8.5")))
    invoice = invoice.model_copy(update={"payments": [Payment(amount=Decimal("35.63"))]})

    paid = transition(invoice, "paid", on=date(2024, 3, 1))

    assert paid.status == "paid"
    assert paid.paid_at is not None
    assert paid.amount_paid == Decimal("135.63")
    assert paid.balance_due == Decimal("0")
    settlement = paid.payments[-1]
    assert settlement.amount == Decimal("100.00")
    assert settlement.notes == SETTLEMENT_NOTE
    assert settlement.payment_date == date(2024, 3, 1)
    assert is_settled(paid)


def test_mark_paid_when_already_covered_adds_nothing():
    invoice = Invoice(status="sent", line_items=make_items(), tax_rate=Decimal("8.5"),
                      payments=[Payment(amount=Decimal("135.63"))])
    paid = transition(invoice, "paid")
    assert len(paid.payments) == 1
    assert paid.amount_paid == Decimal("135.63")


def test_marking_paid_twice_is_a_no_op():
    invoice = transition(Invoice(status="sent", line_items=make_items(), tax_rate=Decimal("8.5")), "paid")
    again = transition(invoice, "paid")

    assert again.status == "paid"
    assert len(again.payments) == len(invoice.payments) == 1
    assert again.amount_paid == invoice.amount_paid
    assert again.paid_at == invoice.paid_at


def test_allowed_transitions_and_can_transition():
    invoice = Invoice(status="sent")
    assert allowed_transitions(invoice) == frozenset({"paid", "cancelled"})
    assert can_transition(invoice, "cancelled")
    assert not can_transition(Invoice(status="cancelled"), "paid")


@pytest.mark.parametrize("status", ["draft", "sent"])
def test_open_quotes_are_deletable(status):
    ensure_deletable(Quote(status=status))


@pytest.mark.parametrize("status", ["accepted", "rejected"])
def test_decided_quotes_are_not_deletable(status):
    with pytest.raises(InvalidTransitionError):
        ensure_deletable(Quote(status=status))


def test_paid_invoice_is_not_deletable():
    ensure_deletable(Invoice(status="cancelled"))
    with pytest.raises(InvalidTransitionError):
        ensure_deletable(Invoice(status="paid"))
