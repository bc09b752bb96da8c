"""Traceable errors with user messages, fields, error kinds, aggregates and HTTP JSON round trips."""

__version__ = "0.1.0"

__all__ = ["chain", "errors", "frames", "httplib", "trace"]