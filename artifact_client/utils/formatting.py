"""
Helper functions for formatting data into human-readable strings.
"""

from datetime import datetime
from typing import Optional


def format_size(bytes_size: Optional[int]) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size is None:
        return "unknown"
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size = float(bytes_size)
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{size:.1f} {units[i]}"


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def mask_token(token: Optional[str], visible: int = 8) -> str:
    """Shortens a token for display so it can't be copied out of logs."""
    if not token:
        return "-"
    if len(token) <= visible:
        return token
    return f"{token[:visible]}..."
