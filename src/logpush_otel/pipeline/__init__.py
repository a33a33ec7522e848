"""Request-level ingestion orchestration."""
