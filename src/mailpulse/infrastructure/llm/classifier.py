"""LLM-backed category classifier with keyword fallback."""

from __future__ import annotations

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from loguru import logger

from mailpulse.application.classification.keyword import KeywordClassifier
from mailpulse.application.ports.classifier import Classifier
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.errors import ClassificationError
from mailpulse.domain.models import Category

BODY_CHARS = 2000

SYSTEM_PROMPT = """You are an email categorization assistant for a sales outreach inbox.

Assign exactly one of these categories to the email:
- Interested: the sender shows interest, wants to talk, asks for details or next steps
- Meeting Booked: a meeting or call has been confirmed or scheduled
- Not Interested: the sender declines, unsubscribes or asks not to be contacted
- Spam: unsolicited promotions, prize notices, phishing
- Out of Office: automatic away or vacation replies

Respond with the category name only, nothing else."""


def parse_category(content: str) -> Category:
    """Map a model reply onto a category; unknown text becomes UNCATEGORIZED."""
    answer = content.strip().strip(".\"'").lower()
    for category in Category:
        if category is Category.UNCATEGORIZED:
            continue
        if answer == category.value.lower():
            return category
    # Models sometimes wrap the label in a sentence; longest label first so
    # "not interested" is not read as "interested"
    for category in sorted(Category, key=lambda c: len(c.value), reverse=True):
        if category is not Category.UNCATEGORIZED and category.value.lower() in answer:
            return category
    return Category.UNCATEGORIZED


class LlmClassifier:
    def __init__(self, llm: BaseChatModel, fallback: Classifier | None = None):
        self.llm = llm
        self.fallback = fallback or KeywordClassifier()

    def ask(self, msg: EmailMessage) -> Category:
        """Ask the model. Raises ClassificationError when there is no usable answer."""
        prompt = f"Subject: {msg.subject}\nFrom: {msg.sender}\n\n{msg.text[:BODY_CHARS]}"
        try:
            response = self.llm.invoke([SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)])
        except Exception as e:
            raise ClassificationError(f"LLM call failed: {e}") from e

        category = parse_category(str(response.content))
        if category is Category.UNCATEGORIZED:
            raise ClassificationError(f"Unrecognized category answer: {str(response.content)[:80]!r}")
        return category

    def classify(self, msg: EmailMessage) -> Category:
        try:
            return self.ask(msg)
        except ClassificationError as e:
            logger.warning(f"LLM classification failed for {msg.id}, using keyword rules: {e}")
            return self.fallback.classify(msg)
