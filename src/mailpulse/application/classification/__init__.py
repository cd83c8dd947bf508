"""Email classifiers that need no external service."""

from mailpulse.application.classification.keyword import KeywordClassifier

__all__ = ["KeywordClassifier"]
