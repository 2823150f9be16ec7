# src/apmtools/core/__init__.py
"""Shared infrastructure: configuration and logging."""

from apmtools.core.config import ElasticsearchSettings
from apmtools.core.logging import configure_logging, get_logger

__all__ = [
    "ElasticsearchSettings",
    "configure_logging",
    "get_logger",
]
