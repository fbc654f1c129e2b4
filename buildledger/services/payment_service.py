from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Union

from buildledger.ledger import payments as ledger
from buildledger.ledger.errors import ValidationError
from buildledger.ledger.payments import DEFAULT_POLICY, PaymentPolicy
from buildledger.models.invoice import Invoice
from buildledger.models.payment import PAYMENT_METHODS, Payment
from buildledger.services.invoice_service import InvoiceService
from buildledger.storage.gateway import JsonGateway

logger = logging.getLogger(__name__)


class PaymentService:
    """Records payments through the ledger and persists the result."""

    def __init__(self, gateway: JsonGateway, invoices: InvoiceService, policy: PaymentPolicy = DEFAULT_POLICY) -> None:
        self.gateway = gateway
        self.invoices = invoices
        self.policy = policy

    def record_payment(
        self,
        invoice_id: str,
        amount: Union[Decimal, int, float, str],
        payment_date: Optional[date] = None,
        payment_method: str = "other",
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        method = payment_method or "other"
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"unknown payment method {method!r}")
        inv = self.invoices.get_by_id(invoice_id)
        payment = Payment(
            invoice_id=inv.id,
            amount=Decimal(str(amount)),
            payment_date=payment_date or date.today(),
            payment_method=method,
            reference_number=reference_number or None,
            notes=notes or None,
        )
        updated = ledger.record_payment(inv, payment, self.policy)
        self.gateway.append_payment(inv.id, payment)
        updated = self.gateway.save_document(updated)
        logger.info(
            "Payment of %s recorded on %s (paid %s, balance %s)",
            payment.amount, inv.invoice_number, updated.amount_paid, updated.balance_due,
        )
        if updated.status != inv.status:
            logger.info("Invoice %s is now %s", inv.invoice_number, updated.status)
        return updated

    def delete_payment(self, invoice_id: str, payment_id: str) -> Invoice:
        inv = self.invoices.get_by_id(invoice_id)
        updated = ledger.delete_payment(inv, payment_id)
        self.gateway.remove_payment(payment_id)
        updated = self.gateway.save_document(updated)
        logger.info("Payment %s removed from %s", payment_id, inv.invoice_number)
        return updated

    def void_payment(self, invoice_id: str, payment_id: str) -> Invoice:
        inv = self.invoices.get_by_id(invoice_id)
        updated = self.gateway.save_document(ledger.void_payment(inv, payment_id))
        logger.info("Payment %s voided on %s", payment_id, inv.invoice_number)
        return updated

    def list_payments(self, invoice_id: Optional[str] = None) -> List[Payment]:
        if invoice_id is not None:
            return list(self.invoices.get_by_id(invoice_id).payments)
        out: List[Payment] = []
        for inv in self.invoices.list_invoices():
            out.extend(inv.payments)
        return sorted(out, key=lambda p: (p.payment_date, p.created_at), reverse=True)
