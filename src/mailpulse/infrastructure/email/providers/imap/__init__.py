"""Generic IMAP provider (imapclient based)."""

from mailpulse.infrastructure.email.providers.imap.auth import ImapAuthenticator
from mailpulse.infrastructure.email.providers.imap.client import (
    ImapMailboxTransport,
    imap_transport_factory,
)
from mailpulse.infrastructure.email.providers.imap.mapper import (
    NO_SUBJECT,
    make_email_id,
    rfc822_to_email_message,
)

__all__ = [
    "ImapAuthenticator",
    "ImapMailboxTransport",
    "imap_transport_factory",
    "NO_SUBJECT",
    "make_email_id",
    "rfc822_to_email_message",
]
