"""Embeddings infrastructure."""

from mailpulse.infrastructure.embeddings.factory import (
    Embedder,
    EmbeddingsFactory,
    HashingEmbedder,
    SentenceTransformerEmbedder,
)

__all__ = [
    "Embedder",
    "EmbeddingsFactory",
    "HashingEmbedder",
    "SentenceTransformerEmbedder",
]
