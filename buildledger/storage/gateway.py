"""Persistence gateway: documents, their line items and payments on top of
``JsonRepository`` files in the data dir."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import ValidationError

from buildledger.ledger.errors import NotFoundError
from buildledger.ledger.totals import refresh_totals
from buildledger.models.common import utcnow
from buildledger.models.invoice import Invoice
from buildledger.models.line_item import LineItem
from buildledger.models.payment import Payment
from buildledger.models.quote import Quote
from buildledger.storage.repo import JsonRepository

logger = logging.getLogger(__name__)

DocumentKind = Literal["quote", "invoice"]
Document = Union[Quote, Invoice]

_MODELS = {"quote": Quote, "invoice": Invoice}
# rows are stored flat, children live in their own files
_CHILDREN = {"line_items", "payments"}


class JsonGateway:
    def __init__(self, data_dir: Union[str, Path]) -> None:
        base = Path(data_dir)
        self.docs = {
            "quote": JsonRepository(base / "quotes.json", entity_name="quote"),
            "invoice": JsonRepository(base / "invoices.json", entity_name="invoice"),
        }
        self.line_items = JsonRepository(base / "line_items.json", entity_name="line item")
        self.payments = JsonRepository(base / "payments.json", entity_name="payment")

    @staticmethod
    def kind_of(doc: Document) -> DocumentKind:
        return "invoice" if isinstance(doc, Invoice) else "quote"

    # ---------- hydration ---------- #

    def _hydrate(self, kind: DocumentKind, row: Dict[str, Any]) -> Document:
        d = dict(row)
        d["line_items"] = self.list_line_items(d.get("project_id"), document_id=d["id"])
        if kind == "invoice":
            d["payments"] = self.list_payments(d["id"])
        return refresh_totals(_MODELS[kind].model_validate(d))

    # ---------- documents ---------- #

    def load_document(self, kind: DocumentKind, doc_id: str) -> Document:
        row = self.docs[kind].get_by_id(doc_id)
        if row is None:
            raise NotFoundError(kind, doc_id)
        return self._hydrate(kind, row)

    def list_documents(self, kind: DocumentKind, user_id: Optional[str] = None) -> List[Document]:
        out: List[Document] = []
        for row in self.docs[kind].list_all():
            if user_id is not None and row.get("user_id") != user_id:
                continue
            try:
                out.append(self._hydrate(kind, row))
            except ValidationError as e:
                logger.warning("Skipping invalid %s row %s: %s", kind, row.get("id"), e)
        return out

    def save_document(self, doc: Document) -> Document:
        kind = self.kind_of(doc)
        doc = refresh_totals(doc).model_copy(update={"updated_at": utcnow()})
        self.docs[kind].upsert(doc.model_dump(mode="json", exclude=_CHILDREN))
        owned = self.replace_line_items(doc.project_id, doc.line_items, document_id=doc.id)
        doc = doc.model_copy(update={"line_items": owned})
        if isinstance(doc, Invoice):
            payments = [p.model_copy(update={"invoice_id": doc.id}) for p in doc.payments]
            self.payments.replace_where(lambda r: r.get("invoice_id") == doc.id, payments)
            doc = doc.model_copy(update={"payments": payments})
        return doc

    def delete_document(self, kind: DocumentKind, doc_id: str) -> bool:
        removed = self.docs[kind].delete(doc_id)
        self.line_items.delete_where(lambda r: r.get("document_id") == doc_id)
        if kind == "invoice":
            self.payments.delete_where(lambda r: r.get("invoice_id") == doc_id)
        return removed

    # ---------- line items ---------- #

    def list_line_items(self, project_id: Optional[str], document_id: Optional[str] = None) -> List[LineItem]:
        def match(r: Dict[str, Any]) -> bool:
            if document_id is not None:
                return r.get("document_id") == document_id
            return r.get("project_id") == project_id

        return [LineItem.model_validate(r) for r in self.line_items.find(match)]

    def replace_line_items(
        self,
        project_id: Optional[str],
        items: Iterable[LineItem],
        document_id: Optional[str] = None,
    ) -> List[LineItem]:
        """Set-replace: every stored row of the document (or project) goes, ``items`` come in."""
        def match(r: Dict[str, Any]) -> bool:
            if document_id is not None:
                return r.get("document_id") == document_id
            return r.get("project_id") == project_id

        owned = [
            it.model_copy(update={"project_id": project_id, "document_id": document_id or it.document_id})
            for it in items
        ]
        self.line_items.replace_where(match, [it.model_dump(mode="json") for it in owned])
        return owned

    # ---------- payments ---------- #

    def list_payments(self, invoice_id: Optional[str] = None) -> List[Payment]:
        rows = self.payments.list_all() if invoice_id is None else self.payments.find(
            lambda r: r.get("invoice_id") == invoice_id
        )
        return [Payment.model_validate(r) for r in rows]

    def append_payment(self, invoice_id: str, payment: Payment) -> Payment:
        pay = payment.model_copy(update={"invoice_id": invoice_id})
        self.payments.add(pay.model_dump(mode="json"))
        return pay

    def remove_payment(self, payment_id: str) -> None:
        if not self.payments.delete(payment_id):
            raise NotFoundError("payment", payment_id)
