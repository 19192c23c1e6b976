"""Shared configuration, persistence, security and error types."""
