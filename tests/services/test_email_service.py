import email
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from buildledger.errors import EmailError
from buildledger.services.email_service import (
    EmailService,
    PdfAttachment,
    build_invoice_email,
    build_quote_email,
)
from buildledger.settings import EmailSettings


@pytest.fixture
def service(ses_client):
    return EmailService(EmailSettings(from_address="billing@acmebuilders.com", from_name="Acme Builders"), ses_client=ses_client)


def test_quote_email_defaults():
    content = build_quote_email("Jane Homeowner", "QUO-20240101-001", "Acme Builders")

    assert content.subject == "Quote QUO-20240101-001 from Acme Builders"
    assert content.text.startswith("Dear Jane Homeowner,")
    assert content.text.rstrip().endswith("Acme Builders")
    assert "<br>" in content.html


def test_custom_message_replaces_body():
    content = build_quote_email("Jane", "QUO-1", "Acme", message="See attached.\nThanks!")
    assert content.text == "See attached.\nThanks!"
    assert "See attached.<br>Thanks!" in content.html


def test_invoice_email_mentions_due_date_and_total():
    content = build_invoice_email("Jane", "INV-1", "Acme", "03/01/2030", "$135.63")
    assert content.subject == "Invoice INV-1 from Acme"
    assert "03/01/2030" in content.text
    assert "$135.63" in content.text


def test_html_body_is_escaped():
    content = build_quote_email("Jane", "QUO-1", "Acme", message="<script>x</script>")
    assert "<script>" not in content.html


def test_send_with_attachment(service, ses_client):
    message_id = service.send_document_email(
        "jane@homeowner.net", None, "Quote QUO-1", "Hello", "<p>Hello</p>",
        PdfAttachment("Quote-QUO-1.pdf", b"%PDF-1.4"),
    )

    assert message_id == "msg-0001"
    kwargs = ses_client.send_raw_email.call_args.kwargs
    assert kwargs["Source"] == "Acme Builders <billing@acmebuilders.com>"
    assert "ConfigurationSetName" not in kwargs

    msg = email.message_from_string(kwargs["RawMessage"]["Data"])
    assert msg["To"] == "jane@homeowner.net"
    parts = [p for p in msg.walk() if p.get_filename()]
    assert [p.get_filename() for p in parts] == ["Quote-QUO-1.pdf"]
    assert parts[0].get_payload(decode=True) == b"%PDF-1.4"


def test_configuration_set_is_passed(ses_client):
    settings = EmailSettings(from_address="billing@acmebuilders.com", configuration_set="transactional")
    EmailService(settings, ses_client=ses_client).send_document_email("a@b.co", None, "s", "t", "<p>t</p>")
    assert ses_client.send_raw_email.call_args.kwargs["ConfigurationSetName"] == "transactional"


def test_missing_addresses(ses_client):
    no_sender = EmailService(EmailSettings(), ses_client=ses_client)
    with pytest.raises(EmailError):
        no_sender.send_document_email("jane@homeowner.net", None, "s", "t", "h")
    with pytest.raises(EmailError):
        no_sender.send_document_email("", "me@acmebuilders.com", "s", "t", "h")
    ses_client.send_raw_email.assert_not_called()


def test_ses_client_error(service, ses_client):
    ses_client.send_raw_email.side_effect = ClientError(
        {"Error": {"Code": "Throttling", "Message": "Maximum sending rate exceeded."}}, "SendRawEmail"
    )
    with pytest.raises(EmailError) as exc:
        service.send_document_email("jane@homeowner.net", None, "s", "t", "h")
    assert exc.value.code == "Throttling"
    assert "Maximum sending rate exceeded." in str(exc.value)


def test_ses_unreachable(service, ses_client):
    ses_client.send_raw_email.side_effect = EndpointConnectionError(endpoint_url="https://email.us-east-1.amazonaws.com")
    with pytest.raises(EmailError) as exc:
        service.send_document_email("jane@homeowner.net", None, "s", "t", "h")
    assert exc.value.code is None


def test_client_is_built_from_region(monkeypatch):
    factory = MagicMock()
    monkeypatch.setattr("buildledger.services.email_service.boto3.client", factory)
    EmailService(EmailSettings(aws_region="eu-west-1"))
    factory.assert_called_once_with("ses", region_name="eu-west-1")
