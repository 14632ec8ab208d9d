"""Utility functions and helpers."""

from heston_fft.utils.logging import get_contextual_logger, get_logger, setup_logging

__all__ = [
    "get_contextual_logger",
    "get_logger",
    "setup_logging",
]
