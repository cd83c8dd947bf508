"""Use cases: processing ingested mail and suggesting replies."""

from mailpulse.application.use_cases.process_email import NOTIFY_CATEGORIES, ProcessingPipeline
from mailpulse.application.use_cases.suggest_reply import ReplyContextResolver

__all__ = ["NOTIFY_CATEGORIES", "ProcessingPipeline", "ReplyContextResolver"]
