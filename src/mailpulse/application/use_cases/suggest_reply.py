"""Suggest a reply for a stored email using the nearest product context."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from mailpulse.application.ports.context_store import ContextStore
from mailpulse.application.ports.reply_synthesizer import ReplySynthesizer
from mailpulse.application.ports.search_index import SearchIndex
from mailpulse.application.replies.templates import TemplateReplySynthesizer
from mailpulse.domain.errors import NotFound


class ReplyContextResolver:
    """Build reply suggestions.

    Context comes from the similarity lookup, falling back to the configured
    product context. The synthesizer (usually an LLM) falls back to the
    template synthesizer, so a found email always gets some text back.
    """

    def __init__(
        self,
        index: SearchIndex,
        context_store: Optional[ContextStore],
        synthesizer: Optional[ReplySynthesizer] = None,
        fallback: Optional[TemplateReplySynthesizer] = None,
        product_context: str = "",
        meeting_link: str = "",
    ) -> None:
        self.index = index
        self.context_store = context_store
        self.synthesizer = synthesizer
        self.fallback = fallback or TemplateReplySynthesizer(meeting_link=meeting_link)
        self.product_context = product_context

    def resolve_context(self, text: str) -> str:
        if self.context_store is None:
            return self.product_context
        try:
            hits = self.context_store.nearest(text, k=1)
        except Exception as e:
            logger.warning(f"Context lookup failed, using product context: {e}")
            return self.product_context

        if hits and hits[0].text.strip():
            logger.debug(f"Using context snippet (score {hits[0].score:.3f})")
            return hits[0].text
        return self.product_context

    def suggest_reply(self, email_id: str) -> str:
        msg = self.index.get_by_id(email_id)
        if msg is None:
            raise NotFound(email_id)

        body = msg.text or msg.subject
        context = self.resolve_context(body)

        if self.synthesizer is not None:
            try:
                reply = self.synthesizer.synthesize(body, context)
                if reply and reply.strip():
                    return reply.strip()
                logger.warning(f"Empty reply from synthesizer for {email_id}, using template")
            except Exception as e:
                logger.warning(f"Reply generation failed for {email_id}, using template: {e}")

        return self.fallback.synthesize(body, context)
