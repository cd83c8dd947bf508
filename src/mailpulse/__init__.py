"""MailPulse: multi-account mail ingestion, classification and search."""
