"""Shared helpers: command execution, retries, templating, logging."""
