from __future__ import annotations
from typing import Protocol
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.models import Category


class Classifier(Protocol):
    def classify(self, msg: EmailMessage) -> Category: ...
