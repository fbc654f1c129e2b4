from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from buildledger.models.client import Client
from buildledger.models.line_item import LineItem
from buildledger.models.project import Project
from buildledger.services.email_service import EmailService
from buildledger.services.session_service import SessionService
from buildledger.services.workflow_service import WorkflowService
from buildledger.settings import AppSettings, EmailSettings

USER_ID = "user-1"


def make_items():
    """Two rows worth 125.00 before tax."""
    return [
        LineItem(item_type="labor", description="Install cabinets", quantity=Decimal("2"), unit_price=Decimal("50.00")),
        LineItem(item_type="material", description="Hinges", quantity=Decimal("1"), unit_price=Decimal("25.00")),
    ]


@pytest.fixture
def items():
    return make_items()


@pytest.fixture
def ses_client():
    client = MagicMock()
    client.send_raw_email.return_value = {"MessageId": "msg-0001"}
    return client


@pytest.fixture
def settings(tmp_path):
    return AppSettings(data_dir=tmp_path)


@pytest.fixture
def app(settings, ses_client):
    email = EmailService(EmailSettings(from_address="billing@acmebuilders.com"), ses_client=ses_client)
    return WorkflowService(settings, SessionService(USER_ID), email)


@pytest.fixture
def client(app):
    return app.clients.add_client(Client(name="Jane Homeowner", email="jane@homeowner.net", city="Austin", state="TX"))


@pytest.fixture
def project(app, client):
    return app.projects.add_project(Project(client_id=client.id, name="Kitchen remodel"))


@pytest.fixture
def fake_pdf(monkeypatch):
    """Skip wkhtmltopdf/WeasyPrint; every rendered document is the same stub."""
    from buildledger.services.pdf_service import PdfService

    rendered = []

    def render(self, doc, line_items, client, profile):
        rendered.append(doc.id)
        return b"%PDF-1.4 stub"

    monkeypatch.setattr(PdfService, "render_document_to_pdf", render)
    return rendered
