from __future__ import annotations
from typing import Protocol
from mailpulse.domain.entities.email_message import EmailMessage


class Notifier(Protocol):
    def notify(self, msg: EmailMessage) -> None: ...
