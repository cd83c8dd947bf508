"""Infrastructure layer - external services, storage and configuration."""

from mailpulse.infrastructure.milvus_client import MilvusClientWrapper, get_milvus_client
from mailpulse.infrastructure.settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Milvus
    "MilvusClientWrapper",
    "get_milvus_client",
]
