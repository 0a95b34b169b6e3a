"""
Formatting functions for reports and log messages.

Converts numeric values into readable strings.
"""

from typing import Optional

NOT_AVAILABLE = "N/A"


def format_optional(value: Optional[float], precision: int = 3) -> str:
    """
    Format a possibly missing value.

    Args:
        value: Number or None
        precision: Decimal places

    Returns:
        Formatted string or "N/A"
    """
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.{precision}f}"


def format_frequency(hz: float) -> str:
    """
    Format frequency in readable form.

    Returns:
        Formatted string (e.g. "1.5 kHz" or "250 Hz")
    """
    if hz >= 1000:
        return f"{hz/1000:.1f} kHz"
    else:
        return f"{hz:.0f} Hz"


def format_db(db: float, precision: int = 1) -> str:
    """
    Format dB value.

    Returns:
        Formatted string (e.g. "-12.3 dB")
    """
    if db == float('-inf'):
        return "-∞ dB"
    return f"{db:.{precision}f} dB"


def format_delay(delay_ms: Optional[float]) -> str:
    """Format a delay in milliseconds (e.g. "5.00 ms")."""
    if delay_ms is None:
        return NOT_AVAILABLE
    return f"{delay_ms:.2f} ms"


def format_seconds(seconds: Optional[float]) -> str:
    """Format a reverberation time (e.g. "0.45 s")."""
    if seconds is None:
        return NOT_AVAILABLE
    return f"{seconds:.2f} s"


def format_percent(fraction: float) -> str:
    """Format a 0..1 confidence as percentage."""
    return f"{fraction * 100:.0f}%"
