"""Store implementations."""

from mailpulse.infrastructure.stores.memory_email_store import InMemoryEmailStore
from mailpulse.infrastructure.stores.milvus_context_store import MilvusContextStore
from mailpulse.infrastructure.stores.milvus_email_store import MilvusEmailStore

__all__ = [
    "InMemoryEmailStore",
    "MilvusContextStore",
    "MilvusEmailStore",
]
