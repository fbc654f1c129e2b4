from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple, Union

from buildledger.ledger.transitions import can_transition, is_settled
from buildledger.models.invoice import Invoice
from buildledger.models.quote import Quote
from buildledger.services.branding_service import BrandingService
from buildledger.services.client_service import ClientService
from buildledger.services.dashboard_service import DashboardService
from buildledger.services.email_service import EmailService
from buildledger.services.invoice_service import InvoiceService
from buildledger.services.payment_service import PaymentService
from buildledger.services.pdf_service import PdfService
from buildledger.services.project_service import ProjectService
from buildledger.services.quote_service import QuoteService
from buildledger.services.session_service import SessionService
from buildledger.settings import AppSettings, load_settings
from buildledger.storage.gateway import JsonGateway

logger = logging.getLogger(__name__)


class WorkflowService:
    """Wires every service on one data dir and runs the multi-step flows
    (quote accepted -> invoice, payment -> settlement)."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        session: Optional[SessionService] = None,
        email: Optional[EmailService] = None,
    ):
        self.settings = settings or load_settings()
        data_dir = self.settings.data_dir
        self.session = session or SessionService(self.settings.user_id)
        self.gateway = JsonGateway(data_dir)

        self.clients = ClientService(self.session, data_dir)
        self.projects = ProjectService(self.session, self.clients, data_dir)
        self.branding = BrandingService(self.session, data_dir)
        self.pdf = PdfService(self.settings.pdf)
        # SES client is only built when e-mail is actually needed
        self._email = email

        self.quotes = QuoteService(self.gateway, self.session, self.projects, self.clients, self.branding, self.pdf, email)
        self.invoices = InvoiceService(
            self.gateway, self.session, self.projects, self.clients, self.branding, self.quotes, self.pdf, email
        )
        self.payments = PaymentService(self.gateway, self.invoices, self.settings.payments.policy())
        self.dashboard = DashboardService(self.clients, self.projects, self.quotes, self.invoices)

    def _ensure_email(self) -> EmailService:
        if self._email is None:
            self._email = EmailService(self.settings.email)
            self.quotes.email = self._email
            self.invoices.email = self._email
        return self._email

    # quote accepted -> optional draft invoice
    def accept_quote(self, quote_id: str, create_invoice: bool = True) -> Tuple[Quote, Optional[Invoice]]:
        q = self.quotes.accept(quote_id)
        if q.project_id:
            self.projects.set_status(q.project_id, "approved")
        inv = self.invoices.create_from_quote(q.id) if create_invoice else None
        return q, inv

    def reject_quote(self, quote_id: str) -> Quote:
        return self.quotes.reject(quote_id)

    # payment -> invoice paid once the balance reaches zero
    def record_payment_and_settle(
        self,
        invoice_id: str,
        amount: Union[Decimal, int, float, str],
        payment_date: Optional[date] = None,
        payment_method: str = "other",
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        inv = self.payments.record_payment(invoice_id, amount, payment_date, payment_method, reference_number, notes)
        if inv.status != "paid" and is_settled(inv) and can_transition(inv, "paid"):
            inv = self.invoices.mark_paid(invoice_id, on=payment_date)
        return inv

    def send_quote(self, quote_id: str, recipient_email: Optional[str] = None, message: Optional[str] = None) -> str:
        self._ensure_email()
        return self.quotes.email_quote(quote_id, recipient_email, message)

    def send_invoice(self, invoice_id: str, recipient_email: Optional[str] = None, message: Optional[str] = None) -> str:
        self._ensure_email()
        return self.invoices.email_invoice(invoice_id, recipient_email, message)
