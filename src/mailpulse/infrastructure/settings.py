"""Application settings using Pydantic Settings for configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mailpulse.domain.entities.account import Account


class AccountSettings(BaseModel):
    """One mailbox entry of EMAIL_ACCOUNTS."""

    email: str
    password: SecretStr
    host: str = "imap.gmail.com"
    port: int = 993
    tls: bool = True
    folder: str = "INBOX"

    def to_account(self) -> Account:
        return Account(
            email=self.email,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            tls=self.tls,
            folder=self.folder,
        )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    app_name: str = "MailPulse"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_start_ingestion: bool = True

    # Mailboxes (EMAIL_ACCOUNTS is a JSON list)
    email_accounts: list[AccountSettings] = Field(default_factory=list)
    sync_days: int = Field(default=30, ge=0)

    # Session behaviour
    poll_interval_seconds: float = 30.0
    idle_timeout_seconds: float = 300.0
    reconnect_base_delay: float = 5.0
    reconnect_max_delay: float = 300.0
    reconnect_jitter: float = 0.0
    imap_connect_timeout: float = 60.0
    imap_auth_timeout: float = 10.0
    imap_read_timeout: float = 120.0

    # Search index
    index_backend: Literal["milvus", "memory"] = "milvus"

    # Milvus Vector Database
    milvus_host: str = "localhost"
    milvus_port: int = 19530
    milvus_email_collection: str = "emails"
    milvus_context_collection: str = "email_context"

    # Embeddings
    embedding_provider: Literal["sentence-transformers", "hashing"] = "sentence-transformers"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimension: int = 384

    # Notifications
    slack_webhook_url: SecretStr | None = None
    webhook_url: str | None = None
    notification_workers: int = 4
    notification_timeout: float = 10.0

    # Reply suggestions
    product_info: str = ""
    meeting_link: str = ""

    # Classification / LLM Configuration
    classifier: Literal["keyword", "llm"] = "keyword"
    llm_provider: Literal["none", "groq", "openai", "local"] = "none"
    llm_model: str = "llama-3.3-70b-versatile"
    groq_api_key: SecretStr | None = None
    openai_api_key: SecretStr | None = None

    # Local vLLM (for local inference)
    vllm_base_url: str = "http://localhost:8000/v1"
    vllm_model_name: str = "gpt-oss-20b"

    @computed_field
    @property
    def milvus_uri(self) -> str:
        """Construct Milvus connection URI."""
        return f"http://{self.milvus_host}:{self.milvus_port}"

    def accounts(self) -> list[Account]:
        """Configured mailboxes as domain accounts."""
        return [a.to_account() for a in self.email_accounts]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
