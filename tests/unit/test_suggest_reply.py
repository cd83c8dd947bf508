"""
Test reply suggestions and their fallbacks.
"""
from unittest.mock import MagicMock

import pytest
from conftest import make_email

from mailpulse.application.ports import ContextHit
from mailpulse.application.replies import TemplateReplySynthesizer
from mailpulse.application.use_cases import ReplyContextResolver
from mailpulse.domain import NotFound

LINK = "https://cal.example.com/me"


@pytest.fixture
def stored(index):
    index.upsert_one(make_email("e1", text="We'd like to schedule a call to discuss"))
    return index


class TestResolveContext:
    def test_nearest_snippet(self, stored):
        store = MagicMock()
        store.nearest.return_value = [ContextHit(text="We build CRM tooling.", score=0.9)]
        resolver = ReplyContextResolver(stored, store, product_context="default")

        assert resolver.resolve_context("hello") == "We build CRM tooling."
        store.nearest.assert_called_once_with("hello", k=1)

    def test_no_hits_uses_product_context(self, stored):
        store = MagicMock()
        store.nearest.return_value = []
        resolver = ReplyContextResolver(stored, store, product_context="default")

        assert resolver.resolve_context("hello") == "default"

    def test_lookup_failure_uses_product_context(self, stored):
        store = MagicMock()
        store.nearest.side_effect = ConnectionError("milvus down")
        resolver = ReplyContextResolver(stored, store, product_context="default")

        assert resolver.resolve_context("hello") == "default"

    def test_without_store(self, stored):
        resolver = ReplyContextResolver(stored, None, product_context="default")
        assert resolver.resolve_context("hello") == "default"


class TestSuggestReply:
    """Test the full reply path"""

    def test_unknown_id(self, index):
        resolver = ReplyContextResolver(index, None)

        with pytest.raises(NotFound) as exc:
            resolver.suggest_reply("missing")
        assert exc.value.message_id == "missing"

    def test_template_reply_with_meeting_link(self, stored):
        resolver = ReplyContextResolver(stored, None, product_context="We build CRM tooling.", meeting_link=LINK)

        reply = resolver.suggest_reply("e1")

        assert LINK in reply
        assert "schedule a meeting" in reply

    def test_synthesizer_output_is_used(self, stored):
        synthesizer = MagicMock()
        synthesizer.synthesize.return_value = "  Happy to chat!  "
        resolver = ReplyContextResolver(stored, None, synthesizer=synthesizer, product_context="ctx")

        assert resolver.suggest_reply("e1") == "Happy to chat!"
        synthesizer.synthesize.assert_called_once_with("We'd like to schedule a call to discuss", "ctx")

    def test_synthesizer_failure_falls_back_to_template(self, stored):
        synthesizer = MagicMock()
        synthesizer.synthesize.side_effect = RuntimeError("quota exceeded")
        resolver = ReplyContextResolver(stored, None, synthesizer=synthesizer, meeting_link=LINK)

        reply = resolver.suggest_reply("e1")

        assert reply
        assert LINK in reply

    def test_empty_synthesizer_output_falls_back(self, stored):
        synthesizer = MagicMock()
        synthesizer.synthesize.return_value = "   "
        resolver = ReplyContextResolver(stored, None, synthesizer=synthesizer, meeting_link=LINK)

        assert LINK in resolver.suggest_reply("e1")


class TestTemplates:
    """Test template selection"""

    @pytest.mark.parametrize(
        "body,marker",
        [
            ("You have been shortlisted for the technical round", "book a convenient time for the interview"),
            ("Can we schedule a call?", "schedule a meeting"),
            ("We have an open position", "very interested in learning more"),
            ("Hello there", "interested in discussing this further"),
        ],
    )
    def test_pick(self, body, marker):
        reply = TemplateReplySynthesizer(meeting_link=LINK).synthesize(body, "Context line.")
        assert marker in reply
        assert LINK in reply

    def test_context_is_included(self):
        reply = TemplateReplySynthesizer(meeting_link=LINK).synthesize("Hello", "We build CRM tooling.")
        assert "We build CRM tooling." in reply
