"""Domain models for MailPulse."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class Category(str, Enum):
    """Classification labels assigned to ingested emails."""

    INTERESTED = "Interested"
    MEETING_BOOKED = "Meeting Booked"
    NOT_INTERESTED = "Not Interested"
    SPAM = "Spam"
    OUT_OF_OFFICE = "Out of Office"
    UNCATEGORIZED = "Uncategorized"

    @classmethod
    def parse(cls, value: str | None) -> "Category":
        """Map a free-form label onto a category, case-insensitively."""
        if not value:
            return cls.UNCATEGORIZED
        wanted = value.strip().strip(".").lower()
        for category in cls:
            if category.value.lower() == wanted:
                return category
        return cls.UNCATEGORIZED


class SessionStatus(str, Enum):
    """Connection lifecycle of a single mailbox session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED_PUSH = "connected_push"
    CONNECTED_POLL = "connected_poll"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"

    @property
    def is_connected(self) -> bool:
        return self in (SessionStatus.CONNECTED_PUSH, SessionStatus.CONNECTED_POLL)


class SessionSnapshot(BaseModel):
    """Point-in-time view of a mailbox session, for health reporting."""

    account: str
    status: SessionStatus
    last_connected_at: datetime | None = None
    retry_delay_seconds: float = 0.0
    last_error: str | None = None
