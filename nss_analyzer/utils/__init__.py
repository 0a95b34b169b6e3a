"""
Utility module for NSS Analyzer.

Contains helper functions used by the core and by host applications.
"""

from .formatting import (
    NOT_AVAILABLE,
    format_db,
    format_delay,
    format_frequency,
    format_optional,
    format_percent,
    format_seconds,
)

__all__ = [
    "NOT_AVAILABLE",
    "format_db",
    "format_delay",
    "format_frequency",
    "format_optional",
    "format_percent",
    "format_seconds",
]
