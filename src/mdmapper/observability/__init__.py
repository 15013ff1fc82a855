"""Observability helpers: structured JSON logging and timing."""

from mdmapper.observability.logger import StructuredFormatter, get_logger, log_elapsed

__all__ = ["StructuredFormatter", "get_logger", "log_elapsed"]
