"""Mailbox sessions and the coordinator that supervises them."""

from mailpulse.application.ingestion.backoff import BackoffPolicy
from mailpulse.application.ingestion.coordinator import IngestionCoordinator, IngestionStats
from mailpulse.application.ingestion.session import MailboxSession

__all__ = [
    "BackoffPolicy",
    "IngestionCoordinator",
    "IngestionStats",
    "MailboxSession",
]
