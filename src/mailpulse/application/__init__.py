"""Application layer - ingestion, processing and reply use cases."""
