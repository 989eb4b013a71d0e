"""Utility helpers for emerald services."""

from ._logging import SERVICES_LOG_FILE, LogFormatType, create_services_logger

__all__ = [
    "SERVICES_LOG_FILE",
    "LogFormatType",
    "create_services_logger",
]
