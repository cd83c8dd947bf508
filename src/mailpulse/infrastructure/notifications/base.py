"""Shared HTTP delivery for notification channels."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
from loguru import logger

from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.errors import NotificationError


@dataclass
class NotificationResult:
    """Result of delivering one notification."""

    success: bool
    channel: str
    status_code: int | None = None
    error: str | None = None


class HttpNotifier(ABC):
    """POSTs a JSON payload built from the email to a fixed URL."""

    channel = "http"

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.Client | None = None):
        if not url:
            raise ValueError(f"{self.channel} URL is required")
        self.url = url
        self.timeout = timeout
        self._client = client

    @abstractmethod
    def build_payload(self, msg: EmailMessage) -> dict:
        """JSON body for this channel."""

    def _post(self, payload: dict) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.url, json=payload, timeout=self.timeout)
        with httpx.Client() as client:
            return client.post(self.url, json=payload, timeout=self.timeout)

    def send(self, msg: EmailMessage) -> httpx.Response:
        """Deliver one notification. Raises NotificationError on any failure."""
        try:
            response = self._post(self.build_payload(msg))
        except httpx.TimeoutException as e:
            raise NotificationError(f"{self.channel} request timeout") from e
        except Exception as e:
            raise NotificationError(f"{self.channel} request failed: {e}") from e

        if response.status_code >= 400:
            raise NotificationError(f"{self.channel} HTTP {response.status_code}: {response.text[:200]}")
        return response

    def notify(self, msg: EmailMessage) -> NotificationResult:
        try:
            response = self.send(msg)
        except NotificationError as e:
            logger.error(f"Notification failed for {msg.id}: {e}")
            return NotificationResult(success=False, channel=self.channel, error=str(e))

        logger.info(f"{self.channel} notification sent for {msg.id}")
        return NotificationResult(success=True, channel=self.channel, status_code=response.status_code)
