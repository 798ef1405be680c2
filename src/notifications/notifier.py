"""
Best-effort notifier for finished intake calls.

Renders the scenario template and hands it to the email transport. Transport
failures are logged and returned, never raised.
"""

import logging
from typing import Optional

from ..intake.schema import NotificationScenario
from .templates import NotificationData, render_notification
from .transport import EmailTransport, SendResult

logger = logging.getLogger(__name__)


class Notifier:
    """
    Sends one notification per finished call.

    Usage:
        notifier = Notifier(transport, recipients=["ops@example.com"])
        result = await notifier.notify(NotificationScenario.NO_MATCH, data)
    """

    def __init__(
        self,
        transport: EmailTransport,
        recipients: Optional[list[str]] = None,
        default_recipient: str = "info@cascadebuilderservices.com",
        app_url: str = "https://www.cascadeconnect.app",
    ):
        """
        Initialize the notifier.

        Args:
            transport: Email transport
            recipients: Configured recipients
            default_recipient: Used when no recipients are configured
            app_url: Dashboard URL for links in the body
        """
        self.transport = transport
        self.recipients = [r for r in (recipients or []) if r]
        self.default_recipient = default_recipient
        self.app_url = app_url

    def resolve_recipients(self) -> list[str]:
        """Configured recipients, or the static default."""
        return self.recipients or [self.default_recipient]

    async def notify(self, scenario: NotificationScenario, data: NotificationData) -> SendResult:
        """
        Render and send the notification for a scenario.

        Returns:
            SendResult from the transport; failures are converted, not raised
        """
        recipients = self.resolve_recipients()
        logger.info(
            f"Sending '{scenario.value}' notification for call {data.vapi_call_id} "
            f"to {len(recipients)} recipient(s)"
        )

        try:
            rendered = render_notification(scenario, data, self.app_url)
            result = await self.transport.send(recipients, rendered.subject, rendered.body, html=rendered.html)
        except Exception as e:
            logger.exception(f"Notification failed for scenario '{scenario.value}'")
            return SendResult(success=False, error=str(e))

        if result.success:
            logger.info(
                f"Sent '{scenario.value}' notification for call {data.vapi_call_id} "
                f"(message id: {result.message_id})"
            )
        else:
            logger.error(f"Failed to send '{scenario.value}' notification: {result.error}")
        return result
