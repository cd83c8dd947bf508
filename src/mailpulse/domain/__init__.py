"""Domain models and entities."""

from mailpulse.domain.entities.account import Account
from mailpulse.domain.entities.attachment import AttachmentMeta
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.errors import (
    AuthError,
    ClassificationError,
    IndexWriteError,
    MailPulseError,
    NotFound,
    NotificationError,
    ParseError,
    TransportError,
)
from mailpulse.domain.models import Category, SessionSnapshot, SessionStatus

__all__ = [
    "Account",
    "AttachmentMeta",
    "EmailMessage",
    "Category",
    "SessionStatus",
    "SessionSnapshot",
    "MailPulseError",
    "AuthError",
    "TransportError",
    "ParseError",
    "ClassificationError",
    "IndexWriteError",
    "NotificationError",
    "NotFound",
]
