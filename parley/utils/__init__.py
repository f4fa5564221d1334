"""Utility modules for Parley."""

from parley.utils.logging import event_context, get_logger, setup_logging

__all__ = ["event_context", "get_logger", "setup_logging"]
