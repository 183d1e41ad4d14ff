"""Observability: structured logging and Prometheus metrics."""

from conductor.observability.logging import execution_log_context, get_logger, setup_logging

__all__ = ["execution_log_context", "get_logger", "setup_logging"]
