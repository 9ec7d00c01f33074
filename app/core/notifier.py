"""
Outbound email through SendGrid.
Credentials come from SENDGRID_API_KEY / SENDGRID_FROM_EMAIL.
"""

import logging
from typing import Optional, Protocol

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

from app.core.config import settings
from app.core.exceptions import NotificationError

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, to_email: str, subject: str, body: str) -> None:
        ...


class SendGridNotifier:
    """Blocking email sender. Raises NotificationError when the message is not accepted."""

    def __init__(self, api_key: Optional[str], from_email: Optional[str]) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._client: Optional[SendGridAPIClient] = None

    @classmethod
    def from_settings(cls) -> "SendGridNotifier":
        return cls(settings.sendgrid_api_key, settings.sendgrid_from_email)

    def _get_client(self) -> SendGridAPIClient:
        if not self._api_key:
            raise NotificationError("SENDGRID_API_KEY not configured - email disabled")
        if self._client is None:
            self._client = SendGridAPIClient(api_key=self._api_key)
        return self._client

    def send(self, to_email: str, subject: str, body: str) -> None:
        client = self._get_client()
        if not self._from_email:
            raise NotificationError("SENDGRID_FROM_EMAIL not configured")

        message = Mail(
            from_email=Email(self._from_email),
            to_emails=To(to_email),
            subject=subject,
        )
        message.add_content(Content("text/plain", body))

        try:
            response = client.send(message)
        except Exception as e:
            raise NotificationError(f"Failed to send email to {to_email}: {e}") from e

        if response.status_code not in (200, 201, 202):
            raise NotificationError(f"SendGrid rejected email to {to_email}: status={response.status_code}")
        logger.info("Email sent: to=%s subject=%r status=%s", to_email, subject, response.status_code)
