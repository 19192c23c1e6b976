"""Per-assistant vector store reconciliation."""
