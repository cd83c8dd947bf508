"""Reply suggestion helpers."""

from mailpulse.application.replies.templates import TemplateReplySynthesizer

__all__ = ["TemplateReplySynthesizer"]
