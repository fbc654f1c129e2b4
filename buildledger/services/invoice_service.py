# buildledger/services/invoice_service.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterable, List, Optional, Union

from buildledger.ledger.errors import NotFoundError
from buildledger.ledger.totals import compute_subtotal, compute_tax, to_decimal
from buildledger.ledger.transitions import ensure_deletable, transition
from buildledger.models.invoice import Invoice
from buildledger.models.line_item import LineItem
from buildledger.services.branding_service import BrandingService
from buildledger.services.client_service import ClientService
from buildledger.services.email_service import EmailService, PdfAttachment, build_invoice_email
from buildledger.services.numbering import next_document_number
from buildledger.services.pdf_service import PdfService, format_money
from buildledger.services.project_service import ProjectService
from buildledger.services.quote_service import QuoteService
from buildledger.services.session_service import SessionService
from buildledger.storage.gateway import JsonGateway

logger = logging.getLogger(__name__)

_UNSET = object()


class InvoiceService:
    def __init__(
        self,
        gateway: JsonGateway,
        session: SessionService,
        projects: ProjectService,
        clients: ClientService,
        branding: BrandingService,
        quotes: QuoteService,
        pdf: Optional[PdfService] = None,
        email: Optional[EmailService] = None,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self.projects = projects
        self.clients = clients
        self.branding = branding
        self.quotes = quotes
        self.pdf = pdf
        self.email = email

    # ----------- lookups -----------
    def list_invoices(self, status: Optional[str] = None, today: Optional[date] = None) -> List[Invoice]:
        """``status`` filters on the displayed status, so "overdue" works too."""
        out = self.gateway.list_documents("invoice", user_id=self.session.get_current_user_id())
        if status:
            out = [inv for inv in out if inv.display_status(today) == status]
        return sorted(out, key=lambda inv: inv.created_at, reverse=True)

    def list_open(self) -> List[Invoice]:
        """Invoices a payment can be recorded against."""
        return [inv for inv in self.list_invoices() if inv.status == "sent"]

    def list_by_quote(self, quote_id: str) -> List[Invoice]:
        return [inv for inv in self.list_invoices() if inv.quote_id == quote_id]

    def get_by_id(self, invoice_id: str) -> Invoice:
        inv = self.gateway.load_document("invoice", invoice_id)
        if inv.user_id != self.session.get_current_user_id():
            raise NotFoundError("invoice", invoice_id)
        return inv

    # ----------- creation -----------
    def _next_invoice_number(self) -> str:
        prefix = self.branding.get_profile().invoice_prefix
        rows = self.gateway.docs["invoice"].list_all()
        return next_document_number(prefix, (r.get("invoice_number") for r in rows))

    def _default_due_date(self) -> date:
        return date.today() + timedelta(days=self.branding.get_profile().default_payment_terms)

    def create_invoice(
        self,
        project_id: str,
        line_items: Iterable[LineItem],
        tax_rate: Union[Decimal, int, float, str] = 0,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
        terms: Optional[str] = None,
        invoice_number: Optional[str] = None,
        quote_id: Optional[str] = None,
    ) -> Invoice:
        self.projects.get_by_id(project_id)
        items = list(line_items)
        rate = to_decimal(tax_rate)
        compute_tax(compute_subtotal(items), rate)

        inv = Invoice(
            invoice_number=invoice_number or self._next_invoice_number(),
            user_id=self.session.get_current_user_id(),
            project_id=project_id,
            quote_id=quote_id,
            line_items=items,
            tax_rate=rate,
            due_date=due_date or self._default_due_date(),
            notes=notes,
            terms=terms,
        )
        inv = self.gateway.save_document(inv)
        logger.info("Invoice %s created (%s, total %s)", inv.invoice_number, inv.id, inv.total_amount)
        return inv

    def create_from_quote(self, quote_id: str, due_date: Optional[date] = None) -> Invoice:
        """Draft invoice carrying the quote's line items, tax rate, notes and terms."""
        q = self.quotes.get_by_id(quote_id)
        items = [
            LineItem(
                item_type=it.item_type,
                description=it.description,
                quantity=it.quantity,
                unit_price=it.unit_price,
            )
            for it in q.line_items
        ]
        inv = self.create_invoice(
            q.project_id,
            items,
            tax_rate=q.tax_rate,
            due_date=due_date,
            notes=q.notes,
            terms=q.terms,
            quote_id=q.id,
        )
        logger.info("Invoice %s generated from quote %s", inv.invoice_number, q.quote_number)
        return inv

    def update_invoice(
        self,
        invoice_id: str,
        *,
        line_items: Optional[Iterable[LineItem]] = None,
        tax_rate: Optional[Union[Decimal, int, float, str]] = None,
        due_date=_UNSET,
        notes=_UNSET,
        terms=_UNSET,
    ) -> Invoice:
        """Edit an invoice. Line items, when given, replace the current set."""
        inv = self.get_by_id(invoice_id)
        update: dict = {}
        if line_items is not None:
            update["line_items"] = list(line_items)
        if tax_rate is not None:
            update["tax_rate"] = to_decimal(tax_rate)
        for name, value in (("due_date", due_date), ("notes", notes), ("terms", terms)):
            if value is not _UNSET:
                update[name] = value
        inv = inv.model_copy(update=update)
        compute_tax(compute_subtotal(inv.line_items), inv.tax_rate)
        return self.gateway.save_document(inv)

    def delete_invoice(self, invoice_id: str) -> None:
        inv = self.get_by_id(invoice_id)
        ensure_deletable(inv)
        self.gateway.delete_document("invoice", invoice_id)
        logger.info("Invoice %s deleted", inv.invoice_number)

    # ----------- status -----------
    def change_status(self, invoice_id: str, target: str, on: Optional[date] = None) -> Invoice:
        inv = self.get_by_id(invoice_id)
        inv = self.gateway.save_document(transition(inv, target, on=on))
        logger.info("Invoice %s is now %s (paid %s of %s)", inv.invoice_number, inv.status, inv.amount_paid, inv.total_amount)
        return inv

    def send(self, invoice_id: str) -> Invoice:
        return self.change_status(invoice_id, "sent")

    def mark_paid(self, invoice_id: str, on: Optional[date] = None) -> Invoice:
        return self.change_status(invoice_id, "paid", on=on)

    def cancel(self, invoice_id: str) -> Invoice:
        return self.change_status(invoice_id, "cancelled")

    # ----------- PDF / e-mail -----------
    def _require_pdf(self) -> PdfService:
        if self.pdf is None:
            self.pdf = PdfService()
        return self.pdf

    def _client_for(self, inv: Invoice):
        if not inv.project_id:
            return None
        try:
            project = self.projects.get_by_id(inv.project_id)
        except NotFoundError:
            return None
        return self.clients.find(project.client_id)

    def render_pdf(self, invoice_id: str) -> bytes:
        inv = self.get_by_id(invoice_id)
        return self._require_pdf().render_document_to_pdf(inv, inv.line_items, self._client_for(inv), self.branding.get_profile())

    def export_pdf(self, invoice_id: str, out_dir: Optional[Union[str, Path]] = None) -> Path:
        inv = self.get_by_id(invoice_id)
        return self._require_pdf().export_pdf(inv, inv.line_items, self._client_for(inv), self.branding.get_profile(), out_dir)

    def email_invoice(
        self,
        invoice_id: str,
        recipient_email: Optional[str] = None,
        message: Optional[str] = None,
        sender_email: Optional[str] = None,
        attach_pdf: bool = True,
    ) -> str:
        """E-mail the invoice to the client; a draft invoice is marked as sent."""
        if self.email is None:
            raise RuntimeError("InvoiceService was built without an EmailService")
        inv = self.get_by_id(invoice_id)
        client = self._client_for(inv)
        profile = self.branding.get_profile()

        sent = transition(inv, "sent") if inv.status == "draft" else None

        to = recipient_email or (client.email if client else None)
        due = inv.due_date.strftime("%m/%d/%Y") if inv.due_date else "upon receipt"
        content = build_invoice_email(
            client.display_name if client else "Client",
            inv.invoice_number or inv.id,
            profile.display_name,
            due,
            format_money(inv.total_amount, profile.default_currency),
            message,
        )
        attachment = None
        if attach_pdf:
            pdf = self._require_pdf().render_document_to_pdf(inv, inv.line_items, client, profile)
            attachment = PdfAttachment(f"Invoice-{inv.invoice_number}.pdf", pdf)

        message_id = self.email.send_document_email(
            to, sender_email or (str(profile.email) if profile.email else None),
            content.subject, content.text, content.html, attachment,
        )
        if sent is not None:
            self.gateway.save_document(sent)
            logger.info("Invoice %s is now sent", inv.invoice_number)
        return message_id
