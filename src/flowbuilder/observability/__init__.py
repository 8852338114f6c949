"""Observability module for flowbuilder.

Provides structured logging for graph commits, rejections and persistence.
"""

from flowbuilder.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
]
