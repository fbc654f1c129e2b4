from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from buildledger.errors import PdfRenderError
from buildledger.models.client import Client
from buildledger.models.invoice import Invoice
from buildledger.models.payment import Payment
from buildledger.models.profile import Profile
from buildledger.models.quote import Quote
from buildledger.services import pdf_service
from buildledger.services.pdf_service import PdfService, find_wkhtmltopdf, format_money, format_quantity, slug
from buildledger.settings import PdfSettings

from conftest import make_items


@pytest.fixture(autouse=True)
def no_wkhtmltopdf_env(monkeypatch):
    monkeypatch.delenv("WKHTMLTOPDF", raising=False)
    monkeypatch.delenv("WKHTMLTOPDF_PATH", raising=False)


@pytest.fixture
def profile():
    return Profile(company_name="Acme Builders", phone="555-0100", city="Austin", state="TX")


@pytest.fixture
def client():
    return Client(name="Jane Homeowner", email="jane@homeowner.net", address="12 Elm St")


@pytest.mark.parametrize("value, currency, expected", [
    (Decimal("1234.5"), "USD", "$1,234.50"),
    (Decimal("-5"), "USD", "-$5.00"),
    (Decimal("0.005"), "USD", "$0.01"),
    (Decimal("1"), "EUR", "1.00 EUR"),
    (None, "USD", "$0.00"),
])
def test_format_money(value, currency, expected):
    assert format_money(value, currency) == expected


def test_format_quantity():
    assert format_quantity(Decimal("2.00")) == "2"
    assert format_quantity(Decimal("1.50")) == "1.5"


def test_slug():
    assert slug('Smith / "Jones"') == "Smith _ _Jones_"
    assert slug("") == "Client"


def test_quote_html(profile, client):
    quote = Quote(quote_number="QUO-1", line_items=make_items(), tax_rate=Decimal("8.5"), valid_until=date(2030, 1, 31))
    html = PdfService().render_html(quote, quote.line_items, client, profile)

    assert "QUO-1" in html
    assert "Acme Builders" in html
    assert "Jane Homeowner" in html
    assert "$135.63" in html
    assert "$10.63" in html
    assert "January 31, 2030" in html


def test_invoice_context_shows_payments(profile, client):
    invoice = Invoice(invoice_number="INV-1", line_items=make_items(), tax_rate=Decimal("8.5"),
                      payments=[Payment(amount=Decimal("35.63"))])
    ctx = PdfService().build_context(invoice, invoice.line_items, client, profile)

    assert ctx["kind"] == "Invoice"
    assert ctx["totals"]["show_paid"]
    assert ctx["totals"]["amount_paid"] == "$35.63"
    assert ctx["totals"]["balance_due"] == "$100.00"
    assert ctx["client"]["address_lines"] == ["12 Elm St"]


def test_find_wkhtmltopdf_prefers_env(tmp_path, monkeypatch):
    binary = tmp_path / "wkhtmltopdf"
    binary.write_text("")
    monkeypatch.setenv("WKHTMLTOPDF_PATH", f'"{binary}"')
    assert find_wkhtmltopdf(PdfSettings(wkhtmltopdf_path="/nowhere")) == str(binary)


def test_find_wkhtmltopdf_from_settings(tmp_path, monkeypatch):
    binary = tmp_path / "wkhtmltopdf"
    binary.write_text("")
    monkeypatch.setattr(pdf_service, "which", lambda name: None)
    assert find_wkhtmltopdf(PdfSettings(wkhtmltopdf_path=str(binary))) == str(binary)
    assert find_wkhtmltopdf(PdfSettings()) is None


def test_render_with_wkhtmltopdf(monkeypatch, profile, client):
    monkeypatch.setattr(pdf_service, "find_wkhtmltopdf", lambda settings: "/usr/bin/wkhtmltopdf")
    monkeypatch.setattr(pdf_service.pdfkit, "configuration", MagicMock())
    from_string = MagicMock(return_value=b"%PDF-1.4")
    monkeypatch.setattr(pdf_service.pdfkit, "from_string", from_string)

    quote = Quote(quote_number="QUO-1", line_items=make_items())
    assert PdfService(PdfSettings(page_size="A4")).render_document_to_pdf(quote, quote.line_items, client, profile) == b"%PDF-1.4"

    args, kwargs = from_string.call_args
    assert args[1] is False
    assert kwargs["options"]["page-size"] == "A4"


def test_wkhtmltopdf_failure_falls_back(monkeypatch, profile, client):
    monkeypatch.setattr(pdf_service, "find_wkhtmltopdf", lambda settings: "/usr/bin/wkhtmltopdf")
    monkeypatch.setattr(pdf_service.pdfkit, "configuration", MagicMock())
    monkeypatch.setattr(pdf_service.pdfkit, "from_string", MagicMock(side_effect=OSError("wkhtmltopdf exited with 1")))
    fallback = MagicMock(return_value=b"%PDF-weasy")
    monkeypatch.setattr(pdf_service, "_render_pdf_with_weasyprint", fallback)

    quote = Quote(quote_number="QUO-1", line_items=make_items())
    assert PdfService().render_document_to_pdf(quote, quote.line_items, client, profile) == b"%PDF-weasy"


def test_no_renderer_available(monkeypatch, profile, client):
    monkeypatch.setattr(pdf_service, "find_wkhtmltopdf", lambda settings: None)

    def missing(html, base_url):
        raise PdfRenderError("wkhtmltopdf not found and WeasyPrint is not installed.")

    monkeypatch.setattr(pdf_service, "_render_pdf_with_weasyprint", missing)
    quote = Quote(line_items=make_items())
    with pytest.raises(PdfRenderError):
        PdfService().render_document_to_pdf(quote, quote.line_items, client, profile)


def test_export_pdf_writes_file(tmp_path, fake_pdf, profile, client):
    invoice = Invoice(invoice_number="INV-7", line_items=make_items())
    path = PdfService(exports_dir=tmp_path).export_pdf(invoice, invoice.line_items, client, profile)

    assert path == tmp_path / "invoices" / "INV-7 (Jane Homeowner).pdf"
    assert path.read_bytes() == b"%PDF-1.4 stub"
