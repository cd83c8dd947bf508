"""Outbound notification channels."""

from mailpulse.infrastructure.notifications.base import HttpNotifier, NotificationResult
from mailpulse.infrastructure.notifications.composite import CompositeNotifier
from mailpulse.infrastructure.notifications.slack import SlackNotifier
from mailpulse.infrastructure.notifications.webhook import WebhookNotifier

__all__ = [
    "CompositeNotifier",
    "HttpNotifier",
    "NotificationResult",
    "SlackNotifier",
    "WebhookNotifier",
]
