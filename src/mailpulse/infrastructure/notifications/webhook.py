"""Generic JSON webhook notifier."""

from __future__ import annotations

from datetime import datetime, timezone

from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.infrastructure.notifications.base import HttpNotifier

EVENT_NAME = "email.interested"
BODY_CHARS = 500


def build_webhook_payload(msg: EmailMessage) -> dict:
    return {
        "event": EVENT_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": {
            "id": msg.id,
            "from": msg.sender,
            "subject": msg.subject,
            "accountEmail": msg.account,
            "category": msg.category.value,
            "body": msg.text[:BODY_CHARS],
        },
    }


class WebhookNotifier(HttpNotifier):
    """POSTs an ``email.interested`` event to an arbitrary URL."""

    channel = "webhook"

    def build_payload(self, msg: EmailMessage) -> dict:
        return build_webhook_payload(msg)
