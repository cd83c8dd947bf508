"""Build the ingestion and reply components from settings."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from mailpulse.application.classification import KeywordClassifier
from mailpulse.application.ingestion import BackoffPolicy, IngestionCoordinator, MailboxSession
from mailpulse.application.ports import Classifier, ContextStore, Notifier, ReplySynthesizer, SearchIndex
from mailpulse.application.use_cases import ProcessingPipeline, ReplyContextResolver
from mailpulse.domain.entities.account import Account
from mailpulse.infrastructure.email.providers.imap import imap_transport_factory
from mailpulse.infrastructure.embeddings import EmbeddingsFactory
from mailpulse.infrastructure.milvus_client import get_milvus_client
from mailpulse.infrastructure.notifications import CompositeNotifier, SlackNotifier, WebhookNotifier
from mailpulse.infrastructure.settings import Settings, get_settings
from mailpulse.infrastructure.stores import InMemoryEmailStore, MilvusContextStore, MilvusEmailStore


class Container:
    """Lazily built, shared service graph for the API and the CLI workers."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._index: Optional[SearchIndex] = None
        self._context_store: Optional[ContextStore] = None
        self._embedder = None
        self._llm = None

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    @property
    def embedder(self):
        if self._embedder is None:
            self._embedder = EmbeddingsFactory.from_settings(self.settings)
        return self._embedder

    @property
    def index(self) -> SearchIndex:
        if self._index is None:
            if self.settings.index_backend == "memory":
                logger.warning("Using in-memory search index: nothing survives a restart")
                self._index = InMemoryEmailStore()
            else:
                milvus = get_milvus_client(self.settings)
                milvus.connect()
                self._index = MilvusEmailStore(milvus, self.embedder, self.settings.milvus_email_collection)
        return self._index

    @property
    def context_store(self) -> Optional[ContextStore]:
        if self._context_store is None and self.settings.index_backend == "milvus":
            self._context_store = MilvusContextStore(
                get_milvus_client(self.settings),
                self.embedder,
                collection_name=self.settings.milvus_context_collection,
                product_info=self.settings.product_info,
                meeting_link=self.settings.meeting_link,
            )
        return self._context_store

    def ensure_schema(self) -> None:
        self.index.ensure_schema()
        store = self.context_store
        if isinstance(store, MilvusContextStore):
            store.ensure_schema()

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    @property
    def llm(self):
        if self._llm is None and self.settings.llm_provider != "none":
            from mailpulse.infrastructure.llm import create_llm

            self._llm = create_llm(self.settings)
        return self._llm

    def build_classifier(self) -> Classifier:
        if self.settings.classifier == "llm":
            if self.llm is None:
                logger.warning("CLASSIFIER=llm but LLM_PROVIDER=none, using keyword rules")
                return KeywordClassifier()
            from mailpulse.infrastructure.llm import LlmClassifier

            return LlmClassifier(self.llm)
        return KeywordClassifier()

    def build_notifier(self) -> Notifier:
        channels: list[Notifier] = []
        timeout = self.settings.notification_timeout
        if self.settings.slack_webhook_url:
            channels.append(SlackNotifier(self.settings.slack_webhook_url.get_secret_value(), timeout=timeout))
        if self.settings.webhook_url:
            channels.append(WebhookNotifier(self.settings.webhook_url, timeout=timeout))
        logger.info(f"Notification channels: {[getattr(c, 'channel', '?') for c in channels] or 'none'}")
        return CompositeNotifier(channels)

    def build_pipeline(self) -> ProcessingPipeline:
        return ProcessingPipeline(
            index=self.index,
            classifier=self.build_classifier(),
            notifier=self.build_notifier(),
            notification_workers=self.settings.notification_workers,
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def build_session(self, account: Account) -> MailboxSession:
        s = self.settings
        return MailboxSession(
            account,
            transport_factory=imap_transport_factory(
                connect_timeout=s.imap_connect_timeout,
                auth_timeout=s.imap_auth_timeout,
                read_timeout=s.imap_read_timeout,
            ),
            poll_interval=s.poll_interval_seconds,
            idle_timeout=s.idle_timeout_seconds,
            backoff=BackoffPolicy(
                base_delay=s.reconnect_base_delay,
                max_delay=s.reconnect_max_delay,
                jitter=s.reconnect_jitter,
            ),
        )

    def build_coordinator(self, sync_days: int | None = None) -> IngestionCoordinator:
        return IngestionCoordinator(
            pipeline=self.build_pipeline(),
            session_factory=self.build_session,
            sync_window_days=self.settings.sync_days if sync_days is None else sync_days,
        )

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    def build_reply_synthesizer(self) -> Optional[ReplySynthesizer]:
        if self.llm is None:
            return None
        from mailpulse.infrastructure.llm import LlmReplySynthesizer

        return LlmReplySynthesizer(self.llm)

    def build_resolver(self) -> ReplyContextResolver:
        product_context = self.settings.product_info
        if product_context and self.settings.meeting_link:
            product_context = f"{product_context}\nMeeting booking link: {self.settings.meeting_link}"
        return ReplyContextResolver(
            index=self.index,
            context_store=self.context_store,
            synthesizer=self.build_reply_synthesizer(),
            product_context=product_context,
            meeting_link=self.settings.meeting_link,
        )

    def close(self) -> None:
        if self.settings.index_backend == "milvus" and self._index is not None:
            get_milvus_client(self.settings).disconnect()
