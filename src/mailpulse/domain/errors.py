"""Error taxonomy for ingestion and processing."""


class MailPulseError(Exception):
    """Base class for all MailPulse errors."""


class AuthError(MailPulseError):
    """Mailbox rejected the credentials. Never retried automatically."""

    def __init__(self, account: str, message: str = "authentication failed"):
        super().__init__(f"{account}: {message}")
        self.account = account


class TransportError(MailPulseError):
    """Network, TLS or protocol failure. Always retried by the session."""


class ParseError(MailPulseError):
    """A single raw message could not be parsed."""


class ClassificationError(MailPulseError):
    """The classifier failed for one message."""


class IndexWriteError(MailPulseError):
    """The search index rejected a write. Propagated to the caller."""


class NotificationError(MailPulseError):
    """A notification channel failed for one message."""


class NotFound(MailPulseError):
    """No indexed message with the requested id."""

    def __init__(self, message_id: str):
        super().__init__(f"Email not found: {message_id}")
        self.message_id = message_id
