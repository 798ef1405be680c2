"""
Email transports for call notifications.

Transports report delivery through a SendResult instead of raising.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass
class SendResult:
    """Outcome of a send attempt."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "message_id": self.message_id,
            "error": self.error,
        }


class EmailTransport(ABC):
    """Base class for email transports."""

    @abstractmethod
    async def send(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        html: Optional[str] = None,
    ) -> SendResult:
        """
        Send an email with a plain-text body and an optional HTML alternative.

        Args:
            recipients: Destination addresses
            subject: Subject line
            body: Plain-text body
            html: HTML body

        Returns:
            SendResult with success flag and error message on failure
        """
        pass


class SendGridTransport(EmailTransport):
    """Sends email through the SendGrid v3 API."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str = "Cascade Connect AI",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout
        self._transport = transport

    def _build_message(self, recipients: list[str], subject: str, body: str, html: Optional[str]) -> dict:
        content = [{"type": "text/plain", "value": body}]
        if html:
            content.append({"type": "text/html", "value": html})
        return {
            "personalizations": [{"to": [{"email": r} for r in recipients]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": content,
            "tracking_settings": {"open_tracking": {"enable": True}},
        }

    async def send(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        html: Optional[str] = None,
    ) -> SendResult:
        if not recipients:
            return SendResult(success=False, error="No recipients")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    SENDGRID_SEND_URL,
                    json=self._build_message(recipients, subject, body, html),
                    headers=headers,
                )
        except httpx.RequestError as e:
            logger.error(f"SendGrid request failed: {e}")
            return SendResult(success=False, error=f"SendGrid request failed: {e}")

        if response.status_code >= 400:
            error = f"SendGrid error {response.status_code}: {response.text[:200]}"
            if response.status_code in (401, 403):
                logger.error("SENDGRID_API_KEY may be invalid or expired")
            logger.error(error)
            return SendResult(success=False, error=error)

        message_id = response.headers.get("x-message-id")
        logger.info(f"Email sent via SendGrid ({response.status_code}, id={message_id})")
        return SendResult(success=True, message_id=message_id)


class LoggingTransport(EmailTransport):
    """Logs notifications instead of sending them (no SendGrid key configured)."""

    def __init__(self):
        self.sent: list[tuple[list[str], str, str]] = []
        self.sent_html: list[Optional[str]] = []

    async def send(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        html: Optional[str] = None,
    ) -> SendResult:
        logger.warning(f"SendGrid not configured - notification only logged: {subject!r} -> {recipients}")
        logger.debug(f"Notification body:\n{body}")
        self.sent.append((list(recipients), subject, body))
        self.sent_html.append(html)
        return SendResult(success=True, message_id=None)


def create_transport(
    sendgrid_api_key: Optional[str],
    from_email: str,
) -> EmailTransport:
    """Factory: SendGrid when a key is configured, logging otherwise."""
    if sendgrid_api_key:
        return SendGridTransport(api_key=sendgrid_api_key, from_email=from_email)
    return LoggingTransport()
