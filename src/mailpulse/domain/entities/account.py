from __future__ import annotations
from dataclasses import dataclass, field

DEFAULT_IMAP_PORT = 993


@dataclass(frozen=True)
class Account:
    """
    One configured mailbox. The address doubles as the account id.
    """
    email: str
    password: str = field(repr=False)
    host: str
    port: int = DEFAULT_IMAP_PORT
    tls: bool = True
    folder: str = "INBOX"

    @property
    def id(self) -> str:
        return self.email
