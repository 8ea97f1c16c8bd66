"""Shared utilities."""

from .logging_setup import get_logger, log_operation, log_stage, setup_logging

__all__ = ["get_logger", "log_operation", "log_stage", "setup_logging"]
