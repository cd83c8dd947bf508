"""Milvus-backed nearest-context lookup for reply suggestions."""

from __future__ import annotations

from loguru import logger

from mailpulse.application.ports.context_store import ContextHit
from mailpulse.infrastructure.embeddings import Embedder
from mailpulse.infrastructure.milvus_client import MilvusClientWrapper

COLLECTION_NAME = "email_context"
PRODUCT_CONTEXT_ID = "product_context"


class MilvusContextStore:
    """Snippets of product/service context, searched by similarity."""

    def __init__(
        self,
        client: MilvusClientWrapper,
        embedder: Embedder,
        collection_name: str = COLLECTION_NAME,
        product_info: str = "",
        meeting_link: str = "",
    ):
        self.client = client
        self.embedder = embedder
        self.collection_name = collection_name
        self.product_info = product_info
        self.meeting_link = meeting_link

    def ensure_schema(self) -> None:
        """Create the collection; seed it with the product context on first run."""
        created = self.client.ensure_collection(self.collection_name, self.embedder.dimension)
        if created and self.product_info:
            text = self.product_info
            if self.meeting_link:
                text = f"{text}\nMeeting booking link: {self.meeting_link}"
            self.add_context(PRODUCT_CONTEXT_ID, text, kind="product_info")
            logger.info("Indexed product context")

    def add_context(self, context_id: str, text: str, kind: str = "snippet") -> None:
        self.client.client.upsert(
            collection_name=self.collection_name,
            data=[{
                "id": context_id,
                "embedding": self.embedder.embed(text),
                "text": text,
                "type": kind,
            }],
        )
        logger.debug(f"Upserted context {context_id}")

    def nearest(self, text: str, k: int = 1) -> list[ContextHit]:
        results = self.client.client.search(
            collection_name=self.collection_name,
            data=[self.embedder.embed(text)],
            limit=k,
            output_fields=["text"],
        )
        if not results:
            return []
        return [
            ContextHit(text=hit["entity"].get("text", ""), score=float(hit["distance"]))
            for hit in results[0]
        ]
