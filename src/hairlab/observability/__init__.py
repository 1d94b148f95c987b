"""Observability module for hairlab.

Provides structured logging.
"""

from hairlab.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
]
