"""Call notification module: templates, transports and the notifier."""

from .notifier import Notifier
from .templates import NotificationData, RenderedNotification, render_notification
from .transport import (
    EmailTransport,
    LoggingTransport,
    SendGridTransport,
    SendResult,
    create_transport,
)

__all__ = [
    "Notifier",
    "NotificationData",
    "RenderedNotification",
    "render_notification",
    "EmailTransport",
    "LoggingTransport",
    "SendGridTransport",
    "SendResult",
    "create_transport",
]
