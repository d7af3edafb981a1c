"""Utility modules for logging and date helpers."""

from coachboard.utils.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
