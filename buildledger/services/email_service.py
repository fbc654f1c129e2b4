"""Outgoing document e-mail through Amazon SES."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from jinja2 import Environment, FileSystemLoader, select_autoescape

from buildledger.errors import EmailError
from buildledger.settings import TEMPLATES_DIR, EmailSettings

logger = logging.getLogger(__name__)

EMAIL_TEMPLATES_DIR = TEMPLATES_DIR / "email"
FOOTER = "This email was sent from BuildLedger - Professional invoicing for tradespeople"


@dataclass(frozen=True)
class EmailContent:
    subject: str
    text: str
    html: str


@dataclass(frozen=True)
class PdfAttachment:
    filename: str
    content: bytes


_env = Environment(
    loader=FileSystemLoader(str(EMAIL_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    keep_trailing_newline=False,
)


def _render(name: str, **ctx: Any) -> str:
    return _env.get_template(name).render(footer=FOOTER, **ctx).strip()


def build_quote_email(client_name: str, quote_number: str, company_name: str, message: Optional[str] = None) -> EmailContent:
    text = message or _render("quote.txt", client_name=client_name, quote_number=quote_number, company_name=company_name)
    return EmailContent(
        subject=f"Quote {quote_number} from {company_name}",
        text=text,
        html=_render("quote.html", quote_number=quote_number, paragraphs=text.split("\n")),
    )


def build_invoice_email(
    client_name: str,
    invoice_number: str,
    company_name: str,
    due_date: str,
    total_amount: str,
    message: Optional[str] = None,
) -> EmailContent:
    text = message or _render(
        "invoice.txt",
        client_name=client_name,
        invoice_number=invoice_number,
        company_name=company_name,
        due_date=due_date,
        total_amount=total_amount,
    )
    return EmailContent(
        subject=f"Invoice {invoice_number} from {company_name}",
        text=text,
        html=_render(
            "invoice.html",
            invoice_number=invoice_number,
            due_date=due_date,
            total_amount=total_amount,
            paragraphs=text.split("\n"),
        ),
    )


class EmailService:
    """Send documents through SES (raw message, so that a PDF can be attached)."""

    def __init__(self, settings: Optional[EmailSettings] = None, ses_client: Any = None) -> None:
        self.settings = settings or EmailSettings()
        self.ses_client = ses_client or boto3.client("ses", region_name=self.settings.aws_region)
        if not self.settings.from_address:
            logger.warning("EMAIL_FROM_ADDRESS not configured - a sender must be given per message")

    def _build_message(
        self,
        recipient_email: str,
        sender: str,
        subject: str,
        body_text: str,
        body_html: str,
        pdf_attachment: Optional[PdfAttachment],
    ) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = recipient_email

        body = MIMEMultipart("alternative")
        body.attach(MIMEText(body_text, "plain", "utf-8"))
        body.attach(MIMEText(body_html, "html", "utf-8"))
        msg.attach(body)

        if pdf_attachment is not None:
            part = MIMEApplication(pdf_attachment.content, _subtype="pdf")
            part.add_header("Content-Disposition", "attachment", filename=pdf_attachment.filename)
            msg.attach(part)
        return msg

    def send_document_email(
        self,
        recipient_email: str,
        sender_email: Optional[str],
        subject: str,
        body_text: str,
        body_html: str,
        pdf_attachment: Optional[PdfAttachment] = None,
    ) -> str:
        """Send one message and return the SES message id. Raises ``EmailError``."""
        from_address = sender_email or self.settings.from_address
        if not from_address:
            raise EmailError("no sender address configured")
        if not recipient_email:
            raise EmailError("recipient email is required")

        sender = formataddr((self.settings.from_name, from_address))
        msg = self._build_message(recipient_email, sender, subject, body_text, body_html, pdf_attachment)

        kwargs: dict[str, Any] = {
            "Source": sender,
            "Destinations": [recipient_email],
            "RawMessage": {"Data": msg.as_string()},
        }
        if self.settings.configuration_set:
            kwargs["ConfigurationSetName"] = self.settings.configuration_set

        try:
            response = self.ses_client.send_raw_email(**kwargs)
        except ClientError as e:
            code = e.response["Error"]["Code"]
            message = e.response["Error"]["Message"]
            if code == "MessageRejected":
                logger.error("SES rejected email to %s: %s", recipient_email, message)
            elif code == "MailFromDomainNotVerified":
                logger.error("SES sender domain not verified: %s", from_address)
            else:
                logger.error("AWS SES error sending to %s: %s - %s", recipient_email, code, message)
            raise EmailError(f"Failed to send email: {message}", code=code) from e
        except BotoCoreError as e:
            logger.error("SES unavailable sending to %s: %s", recipient_email, e)
            raise EmailError(f"Failed to send email: {e}") from e

        message_id = response["MessageId"]
        logger.info("Sent '%s' to %s. MessageId: %s", subject, recipient_email, message_id)
        return message_id
