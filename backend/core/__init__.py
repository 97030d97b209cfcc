# backend/core/__init__.py
"""
Core package for configuration, logging, and shared utilities.
"""

from backend.core.config import Settings, get_settings
from backend.core.logging import configure_structlog, get_structlog_logger

__all__ = [
    "Settings",
    "get_settings",
    "configure_structlog",
    "get_structlog_logger",
]
