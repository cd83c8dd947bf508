"""Text embedders for the email index and the reply context store."""

from __future__ import annotations

import math
from typing import Protocol

from loguru import logger

from mailpulse.infrastructure.settings import Settings, get_settings

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class Embedder(Protocol):
    """Anything that maps text to fixed-size float vectors."""

    def embed(self, text: str) -> list[float]:
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        ...

    @property
    def dimension(self) -> int:
        ...


class SentenceTransformerEmbedder:
    """Local sentence-transformers model, normalized for cosine search."""

    def __init__(self, model_name: str = DEFAULT_MODEL, batch_size: int = 32):
        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading sentence-transformers model {model_name}")
        self.model = SentenceTransformer(model_name)
        self.batch_size = batch_size
        self._dimension = int(self.model.get_sentence_embedding_dimension())
        logger.info(f"Model {model_name} ready ({self._dimension} dims)")

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = self.model.encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return [v.tolist() for v in vectors]

    @property
    def dimension(self) -> int:
        return self._dimension


class HashingEmbedder:
    """Deterministic character-folding embedder.

    Not semantic. Useful for development without downloading a model, and
    for tests that need stable vectors.
    """

    def __init__(self, dimension: int = 384):
        self._dimension = dimension

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for i, ch in enumerate(text):
            idx = i % self._dimension
            vector[idx] = (vector[idx] + (ord(ch) % 256) / 255) / 2
        magnitude = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / magnitude for v in vector]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]

    @property
    def dimension(self) -> int:
        return self._dimension


class EmbeddingsFactory:
    """Pick an embedder by provider name."""

    @staticmethod
    def from_settings(settings: Settings | None = None) -> Embedder:
        settings = settings or get_settings()
        embedder = EmbeddingsFactory.create(
            provider=settings.embedding_provider,
            model_name=settings.embedding_model,
            dimension=settings.embedding_dimension,
        )
        if embedder.dimension != settings.embedding_dimension:
            logger.warning(
                f"Embedding model produces {embedder.dimension} dims, "
                f"settings say {settings.embedding_dimension}; collections use the model's"
            )
        return embedder

    @staticmethod
    def create(
        provider: str = "sentence-transformers",
        model_name: str | None = None,
        dimension: int = 384,
    ) -> Embedder:
        if provider == "sentence-transformers":
            return SentenceTransformerEmbedder(model_name or DEFAULT_MODEL)
        if provider == "hashing":
            logger.warning("Using hashing embedder: similarity results are not semantic")
            return HashingEmbedder(dimension)
        raise ValueError(f"Unknown embedding provider: {provider}")
