from decimal import Decimal

import pytest

from buildledger.ledger.errors import NotFoundError, ValidationError
from buildledger.services.payment_service import PaymentService
from buildledger.ledger.payments import PaymentPolicy

from conftest import make_items


@pytest.fixture
def invoice(app, project):
    invoice = app.invoices.create_invoice(project.id, make_items(), tax_rate="8.5")
    return app.invoices.send(invoice.id)


def test_recorded_payment_is_persisted(app, invoice):
    app.payments.record_payment(invoice.id, "35.63", payment_method="check", reference_number="1042")

    reloaded = app.invoices.get_by_id(invoice.id)
    assert reloaded.amount_paid == Decimal("35.63")
    assert reloaded.balance_due == Decimal("100.00")
    assert reloaded.payments[0].payment_method == "check"
    assert reloaded.payments[0].reference_number == "1042"
    assert len(app.gateway.list_payments(invoice.id)) == 1


def test_delete_payment_restores_balance(app, invoice):
    updated = app.payments.record_payment(invoice.id, "50")
    restored = app.payments.delete_payment(invoice.id, updated.payments[0].id)

    assert restored.amount_paid == Decimal("0")
    assert restored.balance_due == invoice.balance_due
    assert app.payments.list_payments(invoice.id) == []


def test_void_payment(app, invoice):
    updated = app.payments.record_payment(invoice.id, "50")
    voided = app.payments.void_payment(invoice.id, updated.payments[0].id)

    assert voided.balance_due == Decimal("135.63")
    assert app.payments.list_payments(invoice.id)[0].voided


def test_rejected_payment_writes_nothing(app, invoice):
    with pytest.raises(ValidationError):
        app.payments.record_payment(invoice.id, "0")
    assert app.gateway.list_payments(invoice.id) == []


def test_unknown_payment(app, invoice):
    with pytest.raises(NotFoundError):
        app.payments.delete_payment(invoice.id, "missing")


def test_policy_from_constructor(app, invoice):
    strict = PaymentService(app.gateway, app.invoices, PaymentPolicy(allow_overpayment=False, auto_mark_paid=True))

    with pytest.raises(ValidationError):
        strict.record_payment(invoice.id, "500")
    paid = strict.record_payment(invoice.id, "135.63")
    assert paid.status == "paid"
    assert app.invoices.get_by_id(invoice.id).status == "paid"


def test_list_all_payments_newest_first(app, project, invoice):
    other = app.invoices.send(app.invoices.create_invoice(project.id, make_items()).id)
    app.payments.record_payment(invoice.id, "10")
    app.payments.record_payment(other.id, "20")

    assert {p.amount for p in app.payments.list_payments()} == {Decimal("10"), Decimal("20")}


def test_unknown_payment_method(app, invoice):
    with pytest.raises(ValidationError):
        app.payments.record_payment(invoice.id, "10", payment_method="barter")


def test_no_payment_on_cancelled_invoice(app, invoice):
    app.invoices.cancel(invoice.id)
    with pytest.raises(ValidationError):
        app.payments.record_payment(invoice.id, "10")
    assert app.gateway.list_payments(invoice.id) == []
