"""Observability module for storyloom.

Provides structured logging via structlog with rich console output and
story-scoped context binding.
"""

from storyloom.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    story_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "story_context",
]
