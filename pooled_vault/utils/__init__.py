"""Вспомогательные утилиты (logging)."""

from .logger_utils import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
