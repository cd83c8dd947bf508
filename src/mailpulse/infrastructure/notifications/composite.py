"""Fan one notification out to every configured channel."""

from __future__ import annotations

from loguru import logger

from mailpulse.application.ports.notifier import Notifier
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.infrastructure.notifications.base import NotificationResult


class CompositeNotifier:
    """Each channel is attempted independently; failures are logged, never raised."""

    def __init__(self, notifiers: list[Notifier]):
        self.notifiers = notifiers

    def notify(self, msg: EmailMessage) -> list[NotificationResult]:
        results: list[NotificationResult] = []
        for notifier in self.notifiers:
            channel = getattr(notifier, "channel", type(notifier).__name__)
            try:
                result = notifier.notify(msg)
            except Exception as e:
                logger.error(f"Notifier {channel} raised for {msg.id}: {e}")
                result = NotificationResult(success=False, channel=channel, error=str(e))
            if isinstance(result, NotificationResult):
                results.append(result)
        if not self.notifiers:
            logger.debug(f"No notification channels configured, skipping {msg.id}")
        return results
