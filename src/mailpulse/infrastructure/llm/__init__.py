"""LLM-backed classifier and reply drafting."""

from mailpulse.infrastructure.llm.classifier import LlmClassifier, parse_category
from mailpulse.infrastructure.llm.factory import create_llm
from mailpulse.infrastructure.llm.reply_synthesizer import LlmReplySynthesizer

__all__ = ["LlmClassifier", "LlmReplySynthesizer", "create_llm", "parse_category"]
