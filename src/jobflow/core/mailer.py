from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from jobflow.config import Settings, get_settings
from jobflow.errors import TransportFailure

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[\w.-]+@[\w.-]+\.\w+")


@dataclass(slots=True)
class EmailMessage:
    to: str
    sender: str
    subject: str
    text: str
    html: str


class EmailTransport(Protocol):
    @property
    def is_configured(self) -> bool: ...

    def send(self, message: EmailMessage) -> bool: ...


class SendGridTransport:
    """Transactional mail through SendGrid.

    ``send`` reports delivery as a bool; an unconfigured client or a rejected
    request is logged and returns False instead of raising.
    """

    def __init__(self, api_key: str, client: SendGridAPIClient | None = None):
        self._api_key = api_key
        self._client = client or (SendGridAPIClient(api_key) if api_key else None)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SendGridTransport:
        settings = settings or get_settings()
        return cls(settings.sendgrid_api_key)

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def send(self, message: EmailMessage) -> bool:
        if self._client is None:
            logger.warning("SendGrid not configured, email to %s not sent", message.to)
            return False

        mail = Mail(
            from_email=message.sender,
            to_emails=message.to,
            subject=message.subject,
            plain_text_content=message.text,
            html_content=message.html,
        )
        try:
            response = self._client.send(mail)
        except Exception as exc:
            logger.error("SendGrid error sending to %s: %s", message.to, exc)
            return False

        if response.status_code >= 300:
            logger.error("SendGrid rejected email to %s with status %s", message.to, response.status_code)
            return False

        logger.info("Email sent to %s with status %s", message.to, response.status_code)
        return True


class RecordingTransport:
    """In-memory transport for local runs: accepts every message and keeps it."""

    def __init__(self, *, fail_for: set[str] | None = None):
        self.sent: list[EmailMessage] = []
        self.fail_for = fail_for or set()

    @property
    def is_configured(self) -> bool:
        return True

    def send(self, message: EmailMessage) -> bool:
        if message.to in self.fail_for:
            raise TransportFailure(f"recipient {message.to} rejected")
        self.sent.append(message)
        return True


def extract_sender(signature: str | None, default: str) -> str:
    if signature:
        match = EMAIL_PATTERN.search(signature)
        if match:
            return match.group(0)
    return default


def render_template(template: str, *, name: str | None, company: str | None) -> str:
    rendered = template
    if name:
        rendered = rendered.replace("[Name]", name)
    if company:
        rendered = rendered.replace("[Company]", company)
    return rendered


def to_html(text: str) -> str:
    return text.replace("\n", "<br>")
