# buildledger/services/pdf_service.py
from __future__ import annotations

import logging
import os
import re
from decimal import Decimal
from pathlib import Path
from shutil import which
from typing import Any, Dict, List, Optional, Sequence, Union

import pdfkit
from jinja2 import Environment, FileSystemLoader, select_autoescape

from buildledger.errors import PdfRenderError
from buildledger.ledger.totals import compute_document_totals, round_money
from buildledger.models.client import Client
from buildledger.models.invoice import Invoice
from buildledger.models.line_item import LineItem
from buildledger.models.profile import Profile
from buildledger.models.quote import Quote
from buildledger.settings import TEMPLATES_DIR, PdfSettings

logger = logging.getLogger(__name__)

PDF_TEMPLATES_DIR = TEMPLATES_DIR / "pdf"
Document = Union[Quote, Invoice]

LOGO_WIDTHS = {"small": 80, "medium": 120, "large": 180}


# ---------- Formats ----------
def format_money(value: Any, currency: str = "USD") -> str:
    amount = round_money(value if value is not None else 0)
    sign = "-" if amount < 0 else ""
    body = f"{abs(amount):,.2f}"
    if currency == "USD":
        return f"{sign}${body}"
    return f"{sign}{body} {currency}"


def format_quantity(value: Any) -> str:
    d = Decimal(str(value))
    return f"{d.normalize():f}" if d == d.to_integral() else f"{d:f}".rstrip("0")


def slug(text: str) -> str:
    text = (text or "").strip()
    text = re.sub(r'[\\/:*?"<>|\n\r\t]', "_", text)
    text = re.sub(r"\s+", " ", text)
    return text or "Client"


# ---------- PDF helpers ----------
def _clean_path(p: str) -> str:
    if not p:
        return ""
    p = p.strip().strip('"').strip("'")
    return os.path.normpath(p)


def find_wkhtmltopdf(settings: Optional[PdfSettings] = None) -> Optional[str]:
    """
    Locate wkhtmltopdf:
    - env vars (WKHTMLTOPDF, WKHTMLTOPDF_PATH)
    - pdf.wkhtmltopdf_path in settings.json
    - PATH
    """
    for env_key in ("WKHTMLTOPDF", "WKHTMLTOPDF_PATH"):
        val = os.environ.get(env_key)
        if val and Path(_clean_path(val)).is_file():
            return _clean_path(val)

    if settings and settings.wkhtmltopdf_path:
        path = _clean_path(settings.wkhtmltopdf_path)
        if Path(path).is_file():
            return path

    found = which("wkhtmltopdf")
    return _clean_path(found) if found else None


def _render_pdf_with_weasyprint(html: str, base_url: Optional[str]) -> bytes:
    """WeasyPrint fallback when wkhtmltopdf is missing or fails."""
    try:
        from weasyprint import CSS, HTML
    except ImportError as e:
        raise PdfRenderError(
            "wkhtmltopdf not found and WeasyPrint is not installed. "
            "Install WeasyPrint (pip install weasyprint) or configure wkhtmltopdf."
        ) from e

    css_file = PDF_TEMPLATES_DIR / "stylesheet.css"
    styles = [CSS(filename=str(css_file))] if css_file.exists() else None
    return HTML(string=html, base_url=base_url).write_pdf(stylesheets=styles)


# ---------- Service ----------
class PdfService:
    def __init__(self, settings: Optional[PdfSettings] = None, exports_dir: Optional[Union[str, Path]] = None):
        self.settings = settings or PdfSettings()
        self.exports_dir = Path(exports_dir) if exports_dir else Path(__file__).resolve().parents[2] / "exports"
        self.env = Environment(
            loader=FileSystemLoader(str(PDF_TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def build_context(
        self,
        doc: Document,
        line_items: Sequence[LineItem],
        client: Optional[Client],
        profile: Profile,
    ) -> Dict[str, Any]:
        currency = profile.default_currency
        is_invoice = isinstance(doc, Invoice)
        totals = compute_document_totals(line_items, doc.tax_rate, doc.payments if is_invoice else ())
        shown = totals.rounded()

        rows: List[Dict[str, Any]] = [
            {
                "item_type": it.item_type.capitalize(),
                "description": it.description,
                "quantity": format_quantity(it.quantity),
                "unit_price": format_money(it.unit_price, currency),
                "total_price": format_money(it.total_price, currency),
            }
            for it in line_items
        ]

        logo_uri = None
        if profile.logo_enabled and profile.logo_path and Path(profile.logo_path).is_file():
            logo_uri = Path(profile.logo_path).resolve().as_uri()

        return {
            "kind": "Invoice" if is_invoice else "Quote",
            "number": (doc.invoice_number if is_invoice else doc.quote_number) or doc.id[:8],
            "status": doc.display_status(),
            "issued": doc.created_at.strftime("%B %d, %Y"),
            "due_date": doc.due_date.strftime("%B %d, %Y") if is_invoice and doc.due_date else None,
            "valid_until": doc.valid_until.strftime("%B %d, %Y") if not is_invoice and doc.valid_until else None,
            "notes": doc.notes,
            "terms": doc.terms,
            "lines": rows,
            "totals": {
                "subtotal": format_money(shown["subtotal"], currency),
                "tax_rate": format_quantity(shown["tax_rate"]),
                "show_tax": shown["tax_rate"] > 0,
                "tax_amount": format_money(shown["tax_amount"], currency),
                "total_amount": format_money(shown["total_amount"], currency),
                "show_paid": is_invoice and shown["amount_paid"] > 0,
                "amount_paid": format_money(shown["amount_paid"], currency),
                "balance_due": format_money(shown["balance_due"], currency),
            },
            "client": {
                "name": client.display_name if client else "Client",
                "contact": client.name if client and client.company_name else None,
                "email": client.email if client else None,
                "phone": client.phone if client else None,
                "address_lines": client.address_lines() if client else [],
            },
            "company": {
                "name": profile.display_name,
                "email": profile.email or "",
                "phone": profile.phone or "",
                "address": ", ".join(p for p in (profile.address, profile.city, profile.state, profile.zip_code) if p),
                "license_number": profile.license_number or "",
                "logo_uri": logo_uri,
                "logo_position": profile.logo_position,
                "logo_width": LOGO_WIDTHS.get(profile.logo_size, 120),
            },
        }

    def render_html(self, doc: Document, line_items: Sequence[LineItem], client: Optional[Client], profile: Profile) -> str:
        tpl = self.env.get_template("document.html")
        return tpl.render(**self.build_context(doc, line_items, client, profile))

    def render_document_to_pdf(
        self,
        doc: Document,
        line_items: Sequence[LineItem],
        client: Optional[Client],
        profile: Profile,
    ) -> bytes:
        """
        PDF bytes for a quote or invoice.
        wkhtmltopdf (pdfkit) first, WeasyPrint as fallback.
        """
        html = self.render_html(doc, line_items, client, profile)
        base_url = str(PDF_TEMPLATES_DIR.resolve())

        wkhtml = find_wkhtmltopdf(self.settings)
        if wkhtml:
            try:
                config = pdfkit.configuration(wkhtmltopdf=wkhtml)
                options = {
                    "enable-local-file-access": None,
                    "quiet": "",
                    "encoding": "UTF-8",
                    "page-size": self.settings.page_size,
                }
                css_path = str((PDF_TEMPLATES_DIR / "stylesheet.css").resolve())
                return pdfkit.from_string(html, False, options=options, configuration=config, css=css_path)
            except OSError as e:
                logger.warning("wkhtmltopdf failed (%s), falling back to WeasyPrint", e)

        return _render_pdf_with_weasyprint(html, base_url=base_url)

    def export_pdf(
        self,
        doc: Document,
        line_items: Sequence[LineItem],
        client: Optional[Client],
        profile: Profile,
        out_dir: Optional[Union[str, Path]] = None,
    ) -> Path:
        is_invoice = isinstance(doc, Invoice)
        target_dir = Path(out_dir) if out_dir else self.exports_dir / ("invoices" if is_invoice else "quotes")
        target_dir.mkdir(parents=True, exist_ok=True)
        number = (doc.invoice_number if is_invoice else doc.quote_number) or doc.id
        out_path = target_dir / f"{number} ({slug(client.display_name if client else '')}).pdf"
        out_path.write_bytes(self.render_document_to_pdf(doc, line_items, client, profile))
        logger.info("Exported %s to %s", number, out_path)
        return out_path
