"""Milvus implementation of SearchIndex for emails."""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from loguru import logger

from mailpulse.application.ports.search_index import AGGREGATABLE_FIELDS, SearchFilter
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.errors import IndexWriteError
from mailpulse.domain.models import Category
from mailpulse.infrastructure.embeddings import Embedder
from mailpulse.infrastructure.milvus_client import MilvusClientWrapper

COLLECTION_NAME = "emails"
UPSERT_BATCH = 100
SCAN_BATCH = 1000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MAX_TEXT = 20000
MAX_HTML = 20000
MAX_HEADER = 1000


def _quote(value: str) -> str:
    # JSON string escaping is valid Milvus string literal syntax
    return json.dumps(value)


def _date_key(value: Any) -> datetime:
    # Stored dates keep their original offsets, so compare as datetimes
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return _EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def build_filter(flt: SearchFilter) -> str:
    """Translate a SearchFilter into a Milvus boolean expression."""
    clauses: list[str] = []
    if flt.account:
        clauses.append(f"account == {_quote(flt.account)}")
    if flt.folder:
        clauses.append(f"folder == {_quote(flt.folder)}")
    if flt.category:
        clauses.append(f"category == {_quote(Category(flt.category).value)}")
    if flt.query:
        needle = flt.query.replace("%", "").replace("_", "\\_")
        pattern = _quote(f"%{needle}%")
        clauses.append(f"(subject like {pattern} or text like {pattern} or sender like {pattern})")
    return " and ".join(clauses) if clauses else 'id != ""'


class MilvusEmailStore:
    """Store, search and aggregate emails in Milvus."""

    def __init__(
        self,
        client: MilvusClientWrapper,
        embedder: Embedder,
        collection_name: str = COLLECTION_NAME,
    ):
        self.client = client
        self.embedder = embedder
        self.collection_name = collection_name

    def ensure_schema(self) -> None:
        """Create emails collection if it doesn't exist."""
        self.client.ensure_collection(self.collection_name, self.embedder.dimension)

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def to_row(msg: EmailMessage, embedding: list[float]) -> dict[str, Any]:
        return {
            "id": msg.id,
            "embedding": embedding,
            "message_id": msg.message_id,
            "account": msg.account,
            "folder": msg.folder,
            "sender": msg.sender,
            "sender_name": msg.sender_name or "",
            "to": msg.to,
            "cc": msg.cc,
            "subject": msg.subject[:1000],
            "text": msg.text[:MAX_TEXT],
            "html": (msg.html or "")[:MAX_HTML],
            "date": msg.date.isoformat(),
            "category": msg.category.value,
            "attachments": [
                {"filename": a.filename, "content_type": a.content_type, "size_bytes": a.size_bytes}
                for a in msg.attachments
            ],
            "headers": {k: v[:MAX_HEADER] for k, v in msg.headers.items()},
        }

    @staticmethod
    def from_row(row: dict[str, Any]) -> EmailMessage:
        data = {k: v for k, v in row.items() if k not in ("embedding", "$meta")}
        data["sender_name"] = data.get("sender_name") or None
        data["html"] = data.get("html") or None
        data["category"] = Category.parse(data.get("category"))
        return EmailMessage.model_validate(data)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_one(self, msg: EmailMessage) -> None:
        """Insert or update an email with its embedding."""
        self.upsert_many([msg])

    def upsert_many(self, msgs: list[EmailMessage]) -> None:
        """Bulk insert or update; rows are keyed by email id."""
        if not msgs:
            return

        try:
            for i in range(0, len(msgs), UPSERT_BATCH):
                batch = msgs[i : i + UPSERT_BATCH]
                embeddings = self.embedder.embed_batch([m.text or m.subject for m in batch])
                rows = [self.to_row(m, e) for m, e in zip(batch, embeddings, strict=True)]
                self.client.client.upsert(collection_name=self.collection_name, data=rows)
        except Exception as e:
            raise IndexWriteError(f"Milvus upsert into {self.collection_name} failed: {e}") from e

        logger.debug(f"Upserted {len(msgs)} email(s) into {self.collection_name}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, email_id: str) -> Optional[EmailMessage]:
        results = self.client.client.get(
            collection_name=self.collection_name,
            ids=[email_id],
            output_fields=["*"],
        )
        if not results:
            return None
        return self.from_row(results[0])

    def _scan(self, expr: str, fields: list[str]) -> Iterator[dict[str, Any]]:
        """Every row matching expr, in batches. A single query is capped by Milvus."""
        iterator = self.client.client.query_iterator(
            collection_name=self.collection_name,
            batch_size=SCAN_BATCH,
            filter=expr,
            output_fields=fields,
        )
        try:
            while True:
                batch = iterator.next()
                if not batch:
                    return
                yield from batch
        finally:
            iterator.close()

    def search(self, flt: SearchFilter) -> list[EmailMessage]:
        """Matching emails, newest first.

        Only ids and dates are scanned to order the full match set; the
        requested page is then loaded by id.
        """
        keys = sorted(
            ((_date_key(r.get("date")), r["id"]) for r in self._scan(build_filter(flt), ["date"])),
            reverse=True,
        )
        page_ids = [email_id for _, email_id in keys[flt.offset : flt.offset + flt.size]]
        if not page_ids:
            return []

        rows = self.client.client.get(
            collection_name=self.collection_name,
            ids=page_ids,
            output_fields=["*"],
        )
        by_id = {r["id"]: r for r in rows}
        return [self.from_row(by_id[i]) for i in page_ids if i in by_id]

    def count(self) -> int:
        result = self.client.client.query(
            collection_name=self.collection_name,
            filter="",
            output_fields=["count(*)"],
        )
        return int(result[0]["count(*)"]) if result else 0

    def aggregate_by(self, field: str) -> dict[str, int]:
        if field not in AGGREGATABLE_FIELDS:
            raise ValueError(f"Cannot aggregate by {field!r}")

        default = Category.UNCATEGORIZED.value if field == "category" else ""
        return dict(Counter(r.get(field) or default for r in self._scan('id != ""', [field])))
