"""Shared Milvus connection for the email index and the reply context store.

Watcher threads, the API and the CLI all go through one wrapper per process,
so opening the connection is guarded by a lock.
"""

import threading
from typing import Any

from loguru import logger
from pymilvus import DataType, MilvusClient

from mailpulse.infrastructure.settings import Settings, get_settings

# Email ids are sha256 hex digests; context ids are short slugs
ID_MAX_LENGTH = 256


class MilvusClientWrapper:
    """Lazily opened MilvusClient plus the collection bootstrap both stores need."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._client: MilvusClient | None = None
        self._lock = threading.Lock()

    @property
    def uri(self) -> str:
        return self.settings.milvus_uri

    def connect(self) -> MilvusClient:
        with self._lock:
            if self._client is None:
                logger.info(f"Opening Milvus connection to {self.uri}")
                self._client = MilvusClient(uri=self.uri)
            return self._client

    def disconnect(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()
            logger.info(f"Milvus connection to {self.uri} closed")

    @property
    def client(self) -> MilvusClient:
        return self._client if self._client is not None else self.connect()

    def health_check(self) -> dict[str, Any]:
        """Report reachability and the collections the server knows about."""
        report: dict[str, Any] = {"uri": self.uri}
        try:
            report["collections"] = self.client.list_collections()
            report["status"] = "healthy"
        except Exception as e:
            logger.error(f"Milvus at {self.uri} is unreachable: {e}")
            report["status"] = "unhealthy"
            report["error"] = str(e)
        return report

    def ensure_collection(self, collection_name: str, dimension: int, recreate: bool = False) -> bool:
        """Create a string-keyed cosine collection unless one exists.

        Returns True when the collection was (re)created. Extra record fields
        are stored through the dynamic field, so both stores share this layout.
        """
        exists = self.client.has_collection(collection_name)
        if exists and not recreate:
            logger.debug(f"Milvus collection {collection_name} present")
            return False
        if exists:
            logger.warning(f"Recreating Milvus collection {collection_name}")
            self.client.drop_collection(collection_name)

        logger.info(f"Creating Milvus collection {collection_name} (dim={dimension})")
        self.client.create_collection(
            collection_name=collection_name,
            dimension=dimension,
            primary_field_name="id",
            id_type=DataType.VARCHAR,
            max_length=ID_MAX_LENGTH,
            vector_field_name="embedding",
            metric_type="COSINE",
            auto_id=False,
            enable_dynamic_field=True,
        )
        return True


_milvus_client: MilvusClientWrapper | None = None
_singleton_lock = threading.Lock()


def get_milvus_client(settings: Settings | None = None) -> MilvusClientWrapper:
    """Process-wide wrapper. Settings only matter on the first call."""
    global _milvus_client
    with _singleton_lock:
        if _milvus_client is None:
            _milvus_client = MilvusClientWrapper(settings)
        return _milvus_client
