from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Protocol


@dataclass(frozen=True)
class RawEmail:
    provider: str
    account: str
    folder: str
    uid: int
    rfc822_bytes: bytes


class MailboxTransport(Protocol):
    """Single IMAP connection as seen by a mailbox session.

    Implementations raise ``AuthError`` for rejected credentials and
    ``TransportError`` for everything network or protocol related.
    """

    def connect(self) -> None: ...

    def select_folder(self, folder: str) -> int:
        """Select ``folder`` read-only and return its UIDVALIDITY."""
        ...

    def supports_push(self) -> bool: ...

    def search_since(self, since: date) -> list[int]: ...

    def search_unseen(self) -> list[int]: ...

    def fetch(self, uids: list[int]) -> dict[int, bytes]:
        """Fetch full messages without touching the \\Seen flag."""
        ...

    def wait_for_push(self, timeout: float) -> bool:
        """Block in IDLE until new mail arrives or ``timeout`` expires."""
        ...

    def close(self) -> None: ...
