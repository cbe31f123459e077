"""
Human-readable formatting for log output.
"""

import math


def format_amount(value: float) -> str:
    """Round half up and group thousands: 90198.5 -> "90,199"."""
    if math.isnan(value):
        return "NaN"
    return f"{math.floor(value + 0.5):,}"


def parse_remaining_time(seconds: float) -> str:
    """
    Describe a duration, skipping zero parts.

    >>> parse_remaining_time(3725)
    '01 hours, 02 minutes, 05 seconds'
    """
    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours:02d} hours")
    if minutes > 0:
        parts.append(f"{minutes:02d} minutes")
    if secs > 0:
        parts.append(f"{secs:02d} seconds")

    return ", ".join(parts)
