"""
Test service wiring from settings.
"""
from unittest.mock import patch

import pytest

from mailpulse.application.classification import KeywordClassifier
from mailpulse.domain import Account
from mailpulse.infrastructure.container import Container
from mailpulse.infrastructure.llm import LlmClassifier
from mailpulse.infrastructure.notifications import SlackNotifier, WebhookNotifier
from mailpulse.infrastructure.settings import Settings
from mailpulse.infrastructure.stores import InMemoryEmailStore


def _settings(**overrides) -> Settings:
    overrides.setdefault("index_backend", "memory")
    return Settings(_env_file=None, **overrides)


class TestContainer:
    def test_memory_backend(self):
        container = Container(_settings())

        assert isinstance(container.index, InMemoryEmailStore)
        assert container.context_store is None

    def test_keyword_classifier_by_default(self):
        assert isinstance(Container(_settings()).build_classifier(), KeywordClassifier)

    def test_llm_classifier_without_provider_falls_back(self):
        container = Container(_settings(classifier="llm", llm_provider="none"))
        assert isinstance(container.build_classifier(), KeywordClassifier)

    def test_llm_classifier(self):
        container = Container(_settings(classifier="llm", llm_provider="groq", groq_api_key="gsk-test"))
        with patch("mailpulse.infrastructure.llm.create_llm") as create_llm:
            classifier = container.build_classifier()

        assert isinstance(classifier, LlmClassifier)
        assert classifier.llm is create_llm.return_value

    def test_notifier_channels(self):
        container = Container(_settings(
            slack_webhook_url="https://hooks.slack.test/x",
            webhook_url="https://hooks.example.com/mail",
        ))

        channels = container.build_notifier().notifiers

        assert [type(c) for c in channels] == [SlackNotifier, WebhookNotifier]

    def test_no_notifier_channels(self):
        assert Container(_settings()).build_notifier().notifiers == []

    def test_session_uses_settings(self):
        container = Container(_settings(
            poll_interval_seconds=12,
            idle_timeout_seconds=60,
            reconnect_base_delay=2,
            reconnect_max_delay=20,
        ))

        session = container.build_session(Account(email="me@example.com", password="pw", host="imap.example.com"))

        assert session.poll_interval == 12
        assert session.idle_timeout == 60
        assert session.backoff.base_delay == 2
        assert session.backoff.max_delay == 20

    @pytest.mark.parametrize("days,expected", [(None, 30), (7, 7)])
    def test_coordinator_sync_window(self, days, expected):
        coordinator = Container(_settings()).build_coordinator(sync_days=days)
        try:
            assert coordinator.sync_window_days == expected
        finally:
            coordinator.pipeline.close()
