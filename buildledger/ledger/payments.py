"""Payment recording against an invoice.

``amount_paid`` and ``balance_due`` are always recomputed from the full
payment history after a change, never incremented.
"""
from __future__ import annotations

from dataclasses import dataclass

from buildledger.ledger.errors import NotFoundError, ValidationError
from buildledger.ledger.totals import ZERO, refresh_totals, to_decimal, totals_for
from buildledger.ledger.transitions import can_transition, transition
from buildledger.models.invoice import Invoice
from buildledger.models.payment import Payment


@dataclass(frozen=True)
class PaymentPolicy:
    # recorded payments may add up to more than the total (credit balance)
    allow_overpayment: bool = True
    # move the invoice to "paid" as soon as the balance reaches zero
    auto_mark_paid: bool = False


DEFAULT_POLICY = PaymentPolicy()


def _find(invoice: Invoice, payment_id: str) -> int:
    for idx, p in enumerate(invoice.payments):
        if p.id == payment_id:
            return idx
    raise NotFoundError("payment", payment_id)


def record_payment(invoice: Invoice, payment: Payment, policy: PaymentPolicy = DEFAULT_POLICY) -> Invoice:
    if invoice.status == "cancelled":
        raise ValidationError(f"cannot record a payment on cancelled invoice {invoice.id}")
    amount = to_decimal(payment.amount)
    if not amount.is_finite() or amount <= ZERO:
        raise ValidationError(f"payment amount must be positive (got {amount})")
    if not policy.allow_overpayment:
        balance = totals_for(invoice).balance_due
        if amount > balance:
            raise ValidationError(f"payment of {amount} exceeds balance due of {balance}")

    pay = payment.model_copy(update={"invoice_id": invoice.id, "amount": amount})
    out = refresh_totals(invoice.model_copy(update={"payments": [*invoice.payments, pay]}))

    if policy.auto_mark_paid and out.status != "paid" and out.balance_due <= ZERO and can_transition(out, "paid"):
        out = transition(out, "paid", on=pay.payment_date)
    return out


def delete_payment(invoice: Invoice, payment_id: str) -> Invoice:
    idx = _find(invoice, payment_id)
    payments = list(invoice.payments)
    payments.pop(idx)
    return refresh_totals(invoice.model_copy(update={"payments": payments}))


def void_payment(invoice: Invoice, payment_id: str) -> Invoice:
    idx = _find(invoice, payment_id)
    payments = list(invoice.payments)
    payments[idx] = payments[idx].model_copy(update={"voided": True})
    return refresh_totals(invoice.model_copy(update={"payments": payments}))
