from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterable, List, Optional, Union

from buildledger.ledger.errors import NotFoundError
from buildledger.ledger.totals import compute_subtotal, compute_tax, to_decimal
from buildledger.ledger.transitions import ensure_deletable, transition
from buildledger.models.line_item import LineItem
from buildledger.models.quote import Quote
from buildledger.services.branding_service import BrandingService
from buildledger.services.client_service import ClientService
from buildledger.services.email_service import EmailService, PdfAttachment, build_quote_email
from buildledger.services.numbering import next_document_number
from buildledger.services.pdf_service import PdfService
from buildledger.services.project_service import ProjectService
from buildledger.services.session_service import SessionService
from buildledger.storage.gateway import JsonGateway

logger = logging.getLogger(__name__)

_UNSET = object()


class QuoteService:
    def __init__(
        self,
        gateway: JsonGateway,
        session: SessionService,
        projects: ProjectService,
        clients: ClientService,
        branding: BrandingService,
        pdf: Optional[PdfService] = None,
        email: Optional[EmailService] = None,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self.projects = projects
        self.clients = clients
        self.branding = branding
        self.pdf = pdf
        self.email = email

    # ----- Lookups ----- #

    def list_quotes(self, status: Optional[str] = None, today: Optional[date] = None) -> List[Quote]:
        """All quotes of the user; ``status`` filters on the displayed status (so "expired" works)."""
        quotes = self.gateway.list_documents("quote", user_id=self.session.get_current_user_id())
        if status:
            quotes = [q for q in quotes if q.display_status(today) == status]
        return sorted(quotes, key=lambda q: q.created_at, reverse=True)

    def list_by_project(self, project_id: str) -> List[Quote]:
        return [q for q in self.list_quotes() if q.project_id == project_id]

    def get_by_id(self, quote_id: str) -> Quote:
        q = self.gateway.load_document("quote", quote_id)
        if q.user_id != self.session.get_current_user_id():
            raise NotFoundError("quote", quote_id)
        return q

    # ----- CRUD ----- #

    def _next_quote_number(self) -> str:
        prefix = self.branding.get_profile().quote_prefix
        rows = self.gateway.docs["quote"].list_all()
        return next_document_number(prefix, (r.get("quote_number") for r in rows))

    @staticmethod
    def _check_amounts(line_items: Iterable[LineItem], tax_rate: Decimal) -> None:
        # raises InvalidInputError before anything is written
        compute_tax(compute_subtotal(line_items), tax_rate)

    def create_quote(
        self,
        project_id: str,
        line_items: Iterable[LineItem],
        tax_rate: Union[Decimal, int, float, str] = 0,
        valid_until: Optional[date] = None,
        notes: Optional[str] = None,
        terms: Optional[str] = None,
        quote_number: Optional[str] = None,
    ) -> Quote:
        self.projects.get_by_id(project_id)
        items = list(line_items)
        rate = to_decimal(tax_rate)
        self._check_amounts(items, rate)

        q = Quote(
            quote_number=quote_number or self._next_quote_number(),
            user_id=self.session.get_current_user_id(),
            project_id=project_id,
            line_items=items,
            tax_rate=rate,
            valid_until=valid_until,
            notes=notes,
            terms=terms,
        )
        q = self.gateway.save_document(q)
        logger.info("Quote %s created (%s, total %s)", q.quote_number, q.id, q.total_amount)
        return q

    def update_quote(
        self,
        quote_id: str,
        *,
        line_items: Optional[Iterable[LineItem]] = None,
        tax_rate: Optional[Union[Decimal, int, float, str]] = None,
        valid_until=_UNSET,
        notes=_UNSET,
        terms=_UNSET,
    ) -> Quote:
        """Edit a quote. Line items, when given, replace the current set."""
        q = self.get_by_id(quote_id)
        update: dict = {}
        if line_items is not None:
            update["line_items"] = list(line_items)
        if tax_rate is not None:
            update["tax_rate"] = to_decimal(tax_rate)
        for name, value in (("valid_until", valid_until), ("notes", notes), ("terms", terms)):
            if value is not _UNSET:
                update[name] = value
        q = q.model_copy(update=update)
        self._check_amounts(q.line_items, q.tax_rate)
        return self.gateway.save_document(q)

    def delete_quote(self, quote_id: str) -> None:
        q = self.get_by_id(quote_id)
        ensure_deletable(q)
        self.gateway.delete_document("quote", quote_id)
        logger.info("Quote %s deleted", q.quote_number)

    # ----- Status ----- #

    def change_status(self, quote_id: str, target: str) -> Quote:
        q = self.get_by_id(quote_id)
        q = self.gateway.save_document(transition(q, target))
        logger.info("Quote %s is now %s", q.quote_number, q.status)
        return q

    def send(self, quote_id: str) -> Quote:
        return self.change_status(quote_id, "sent")

    def accept(self, quote_id: str) -> Quote:
        return self.change_status(quote_id, "accepted")

    def reject(self, quote_id: str) -> Quote:
        return self.change_status(quote_id, "rejected")

    # ----- PDF / e-mail ----- #

    def _require_pdf(self) -> PdfService:
        if self.pdf is None:
            self.pdf = PdfService()
        return self.pdf

    def _client_for(self, q: Quote):
        if not q.project_id:
            return None
        try:
            project = self.projects.get_by_id(q.project_id)
        except NotFoundError:
            return None
        return self.clients.find(project.client_id)

    def render_pdf(self, quote_id: str) -> bytes:
        q = self.get_by_id(quote_id)
        return self._require_pdf().render_document_to_pdf(q, q.line_items, self._client_for(q), self.branding.get_profile())

    def export_pdf(self, quote_id: str, out_dir: Optional[Union[str, Path]] = None) -> Path:
        q = self.get_by_id(quote_id)
        return self._require_pdf().export_pdf(q, q.line_items, self._client_for(q), self.branding.get_profile(), out_dir)

    def email_quote(
        self,
        quote_id: str,
        recipient_email: Optional[str] = None,
        message: Optional[str] = None,
        sender_email: Optional[str] = None,
        attach_pdf: bool = True,
    ) -> str:
        """E-mail the quote to the client; a draft quote is marked as sent."""
        if self.email is None:
            raise RuntimeError("QuoteService was built without an EmailService")
        q = self.get_by_id(quote_id)
        client = self._client_for(q)
        profile = self.branding.get_profile()

        # validate the status change before anything leaves the building
        sent = transition(q, "sent") if q.status == "draft" else None

        to = recipient_email or (client.email if client else None)
        content = build_quote_email(client.display_name if client else "Client", q.quote_number or q.id, profile.display_name, message)
        attachment = None
        if attach_pdf:
            pdf = self._require_pdf().render_document_to_pdf(q, q.line_items, client, profile)
            attachment = PdfAttachment(f"Quote-{q.quote_number}.pdf", pdf)

        message_id = self.email.send_document_email(
            to, sender_email or (str(profile.email) if profile.email else None),
            content.subject, content.text, content.html, attachment,
        )
        if sent is not None:
            self.gateway.save_document(sent)
            logger.info("Quote %s is now sent", q.quote_number)
        return message_id
