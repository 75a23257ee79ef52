"""Observability utilities for the reliable submission protocol.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for server outcomes and client retries
- Structured logging with contextual information
"""

from reliable_submit.observability.logging import configure_logging, get_logger
from reliable_submit.observability.metrics import (
    record_client_retry,
    record_client_terminal,
    record_status_query,
    record_submit,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_submit",
    "record_status_query",
    "record_client_retry",
    "record_client_terminal",
]
