"""Ports the application layer depends on."""

from mailpulse.application.ports.classifier import Classifier
from mailpulse.application.ports.context_store import ContextHit, ContextStore
from mailpulse.application.ports.email_source import MailboxTransport, RawEmail
from mailpulse.application.ports.notifier import Notifier
from mailpulse.application.ports.reply_synthesizer import ReplySynthesizer
from mailpulse.application.ports.search_index import SearchFilter, SearchIndex

__all__ = [
    "Classifier",
    "ContextHit",
    "ContextStore",
    "MailboxTransport",
    "RawEmail",
    "Notifier",
    "ReplySynthesizer",
    "SearchFilter",
    "SearchIndex",
]
