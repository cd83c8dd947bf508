"""Keyword-based email classification (no API calls)."""

from __future__ import annotations

from loguru import logger

from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.models import Category

# Checked in order; the first category with a matching rule wins.
# A rule is a tuple of phrases that must all be present.
RULES: list[tuple[Category, tuple[tuple[str, ...], ...]]] = [
    # Negative answers go first: "not interested" contains "interested"
    (
        Category.NOT_INTERESTED,
        (
            ("not interested",),
            ("no thank",),
            ("remove me",),
            ("not a good fit",),
            ("pass on this",),
            ("decline",),
        ),
    ),
    (
        Category.INTERESTED,
        (
            ("interested",),
            ("sounds good",),
            ("let's discuss",),
            ("would like to",),
            ("want to know more",),
            ("tell me more",),
            ("looking forward",),
            ("excited about",),
            ("great opportunity",),
            ("sounds interesting",),
            ("resume", "shortlisted"),
            ("congratulations", "selected"),
        ),
    ),
    (
        Category.MEETING_BOOKED,
        (
            ("meeting",),
            ("schedule",),
            ("calendar",),
            ("appointment",),
            ("interview scheduled",),
            ("confirmed",),
            ("booked",),
            ("see you on",),
        ),
    ),
    (
        Category.OUT_OF_OFFICE,
        (
            ("out of office",),
            ("vacation",),
            ("away from",),
            ("automatic reply",),
            ("will respond when",),
            ("currently unavailable",),
            ("on leave",),
        ),
    ),
    (
        Category.SPAM,
        (
            ("click here",),
            ("buy now",),
            ("limited offer",),
            ("you won",),
            ("free money",),
            ("act now",),
            ("special promotion",),
            ("discount",),
            ("% off",),
            ("subscribe now",),
            ("unsubscribe",),
        ),
    ),
]


def _normalize_quotes(text: str) -> str:
    return text.replace("’", "'").replace("‘", "'")


class KeywordClassifier:
    """Classifier that matches phrases in the subject and body."""

    def __init__(self, rules: list[tuple[Category, tuple[tuple[str, ...], ...]]] | None = None):
        self.rules = rules or RULES

    def classify(self, msg: EmailMessage) -> Category:
        combined = _normalize_quotes(f"{msg.text} {msg.subject}".lower())

        for category, phrases in self.rules:
            if any(all(p in combined for p in rule) for rule in phrases):
                logger.debug(f"Category: {category.value} - {msg.subject[:50]!r}")
                return category

        logger.debug(f"Category: {Category.UNCATEGORIZED.value} - {msg.subject[:50]!r}")
        return Category.UNCATEGORIZED
