from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Protocol

from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.models import Category

# Fields that can be passed to SearchIndex.aggregate_by
AGGREGATABLE_FIELDS = ("category", "account", "folder", "sender")


@dataclass(frozen=True)
class SearchFilter:
    query: Optional[str] = None
    account: Optional[str] = None
    folder: Optional[str] = None
    category: Optional[Category] = None
    offset: int = 0
    size: int = 50


class SearchIndex(Protocol):
    def ensure_schema(self) -> None: ...
    def upsert_one(self, msg: EmailMessage) -> None: ...
    def upsert_many(self, msgs: list[EmailMessage]) -> None: ...
    def get_by_id(self, email_id: str) -> Optional[EmailMessage]: ...
    def search(self, flt: SearchFilter) -> list[EmailMessage]: ...
    def count(self) -> int: ...
    def aggregate_by(self, field: str) -> dict[str, int]: ...
