"""In-process SearchIndex, for development and tests."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Optional

from mailpulse.application.ports.search_index import AGGREGATABLE_FIELDS, SearchFilter
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.models import Category


class InMemoryEmailStore:
    """Dict-backed email index keyed by email id (last write wins)."""

    def __init__(self) -> None:
        self._emails: dict[str, EmailMessage] = {}
        self._lock = threading.Lock()

    def ensure_schema(self) -> None:
        return None

    def upsert_one(self, msg: EmailMessage) -> None:
        with self._lock:
            self._emails[msg.id] = msg.model_copy(deep=True)

    def upsert_many(self, msgs: list[EmailMessage]) -> None:
        with self._lock:
            for msg in msgs:
                self._emails[msg.id] = msg.model_copy(deep=True)

    def get_by_id(self, email_id: str) -> Optional[EmailMessage]:
        with self._lock:
            msg = self._emails.get(email_id)
        return msg.model_copy(deep=True) if msg else None

    @staticmethod
    def _matches(msg: EmailMessage, flt: SearchFilter) -> bool:
        if flt.account and msg.account != flt.account:
            return False
        if flt.folder and msg.folder != flt.folder:
            return False
        if flt.category and msg.category != Category(flt.category):
            return False
        if flt.query:
            needle = flt.query.lower()
            haystack = f"{msg.subject}\n{msg.text}\n{msg.sender}".lower()
            if needle not in haystack:
                return False
        return True

    def search(self, flt: SearchFilter) -> list[EmailMessage]:
        with self._lock:
            hits = [m for m in self._emails.values() if self._matches(m, flt)]
        hits.sort(key=lambda m: m.date, reverse=True)
        return [m.model_copy(deep=True) for m in hits[flt.offset : flt.offset + flt.size]]

    def count(self) -> int:
        with self._lock:
            return len(self._emails)

    def aggregate_by(self, field: str) -> dict[str, int]:
        if field not in AGGREGATABLE_FIELDS:
            raise ValueError(f"Cannot aggregate by {field!r}")
        with self._lock:
            values = [getattr(m, field) for m in self._emails.values()]
        return dict(Counter(v.value if isinstance(v, Category) else v for v in values))
